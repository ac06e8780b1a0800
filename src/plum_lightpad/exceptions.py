"""Exception hierarchy for plum-lightpad.

Discovery errors never leave the discovery module, cloud errors abort one
topology fetch, and command errors fail one set/get call. None of them
remove a device from the registry.
"""

from __future__ import annotations

from enum import StrEnum


class PlumError(Exception):
    """Base exception for all plum-lightpad errors."""


class DiscoveryParseError(PlumError):
    """UDP discovery response did not match ``PLUM <ttl> <lpid> <port>``.

    Attributes:
        data_preview: First 32 bytes of the datagram

    """

    def __init__(self, reason: str, data: bytes = b"") -> None:
        self.reason: str = reason
        self.data_preview: bytes = data[:32]
        super().__init__(f"Discovery response rejected: {reason}")


class CloudError(PlumError):
    """A request in the cloud topology fetch failed.

    Raised for network errors, timeouts, HTTP error statuses, bad credentials
    and response bodies that cannot be parsed. The fetch it belongs to is
    abandoned as a whole.

    Attributes:
        endpoint: Cloud endpoint that failed (e.g. "getRoom")
        reason: Specific failure reason

    """

    def __init__(self, endpoint: str, reason: str) -> None:
        self.endpoint: str = endpoint
        self.reason: str = reason
        super().__init__(f"Cloud request {endpoint} failed: {reason}")


class CommandErrorKind(StrEnum):
    UNREACHABLE = "unreachable"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"


class CommandError(PlumError):
    """A lightpad command (set or get level) failed.

    Attributes:
        kind: UNREACHABLE (no known address, nothing was sent), TRANSPORT
            (network/TLS/timeout) or PROTOCOL (unexpected status or body)
        lpid: Lightpad the command targeted
        reason: Specific failure reason

    """

    def __init__(self, kind: CommandErrorKind, lpid: str, reason: str = "") -> None:
        self.kind: CommandErrorKind = kind
        self.lpid: str = lpid
        self.reason: str = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Command to lightpad {lpid} failed ({kind}){detail}")
