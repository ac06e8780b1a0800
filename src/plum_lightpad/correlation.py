"""
Correlation IDs for tying together log lines from one sync or one command.

A topology sync fans out into dozens of concurrent cloud requests and a
single brightness change crosses discovery, registry and controller code;
the id lives in a contextvar so every task spawned inside the scope
inherits it.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "get_correlation_id",
    "new_correlation_id",
]

_current_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("plum_correlation_id", default=None)


def new_correlation_id() -> str:
    """Return a fresh correlation id (uuid4 hex)."""
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    return _current_id.get()


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str]:
    """
    Run the enclosed block under a correlation id.

    Args:
        correlation_id: id to use; a new one is generated when omitted

    Yields:
        The id in effect inside the block. The previous id is restored on exit.
    """
    cid = correlation_id or new_correlation_id()
    token = _current_id.set(cid)
    try:
        yield cid
    finally:
        _current_id.reset(token)

