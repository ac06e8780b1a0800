"""Local-network control of Plum Lightpad dimmers using the Plum cloud topology."""

__version__ = "0.3.0"
