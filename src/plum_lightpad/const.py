import os

from plum_lightpad import __version__

__all__ = [
    "BROADCAST_ADDRESS",
    "DEFAULT_STREAM_PORT",
    "DEVICE_LEVEL_MAX",
    "DISCOVERY_PAYLOAD",
    "DISCOVERY_PORT",
    "HOUSE_TOKEN_HEADER",
    "PERCENT_MAX",
    "PLUM_API_BASE",
    "PLUM_API_TIMEOUT",
    "PLUM_COMMAND_TIMEOUT",
    "PLUM_DEBUG",
    "PLUM_DISCOVERY_INTERVAL",
    "PLUM_EXPORT_FILE_PATH",
    "PLUM_LOG_FORMAT",
    "PLUM_LOG_HUMAN_OUTPUT",
    "PLUM_LOG_JSON_FILE",
    "PLUM_PERF_THRESHOLD_MS",
    "PLUM_PERF_TRACKING",
    "PLUM_USER_AGENT",
    "PLUM_VERSION",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
PLUM_VERSION: str = __version__

PLUM_USER_AGENT: str = "Plum/2.3.0 (iPhone; iOS 9.2.1; Scale/2.00)"
HOUSE_TOKEN_HEADER: str = "X-Plum-House-Access-Token"

# defaults, overridden by PLUM_API_BASE, PLUM_API_TIMEOUT etc. in PlumConfig.from_env
PLUM_API_BASE: str = "https://production.plum.technology/v2/"
PLUM_API_TIMEOUT: float = 8.0
PLUM_COMMAND_TIMEOUT: float = 5.0
# 0 disables periodic re-broadcast
PLUM_DISCOVERY_INTERVAL: float = 0.0

# UDP discovery
DISCOVERY_PAYLOAD: bytes = b"PLUM"
DISCOVERY_PORT: int = 43770
BROADCAST_ADDRESS: str = "255.255.255.255"
# not carried in the discovery response
DEFAULT_STREAM_PORT: int = 2708

DEVICE_LEVEL_MAX: int = 255
PERCENT_MAX: int = 100

PLUM_DEBUG: bool = os.environ.get("PLUM_DEBUG", "0").casefold() in YES_ANSWER
PLUM_EXPORT_FILE_PATH: str = os.environ.get("PLUM_EXPORT_FILE_PATH", "plum_topology.yaml")

# Logging Configuration
PLUM_LOG_FORMAT: str = os.environ.get("PLUM_LOG_FORMAT", "human")  # "json", "human", or "both"
PLUM_LOG_JSON_FILE: str | None = os.environ.get("PLUM_LOG_JSON_FILE") or None
PLUM_LOG_HUMAN_OUTPUT: str = os.environ.get("PLUM_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

# Performance Instrumentation
PLUM_PERF_TRACKING: bool = os.environ.get("PLUM_PERF_TRACKING", "true").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("PLUM_PERF_THRESHOLD_MS", "1000")
PLUM_PERF_THRESHOLD_MS: int = int(_perf_threshold) if _perf_threshold and _perf_threshold.isdigit() else 1000
