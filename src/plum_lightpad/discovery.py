"""Lightpad discovery over UDP broadcast.

Lightpads answer a broadcast ``PLUM`` datagram on port 43770 with
``PLUM <ttl> <lpid> <command port>``. The sender address of each answer is
the lightpad's current IP. The channel is best-effort: answers may be lost,
repeated or arrive long after the broadcast, and malformed ones are dropped.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import override

from plum_lightpad.const import BROADCAST_ADDRESS, DEFAULT_STREAM_PORT, DISCOVERY_PAYLOAD, DISCOVERY_PORT
from plum_lightpad.exceptions import DiscoveryParseError
from plum_lightpad.logging_abstraction import get_logger
from plum_lightpad.structs import AddressEvent, AddressRecord, Reachable, Unreachable

logger = get_logger(__name__)

RESPONSE_PATTERN = re.compile(r"PLUM (\d+) ([a-f0-9\-]+) (\d+)")

AddressListener = Callable[[AddressEvent], None]


def parse_response(data: bytes) -> tuple[int, str, int]:
    """Parse a discovery answer into ``(ttl, lpid, command_port)``.

    Raises:
        DiscoveryParseError: the datagram is not text, does not match, or
            carries a port outside 1-65535

    """
    try:
        text = data.decode("ascii")
    except UnicodeDecodeError as e:
        raise DiscoveryParseError("not ASCII text", data) from e
    match = RESPONSE_PATTERN.search(text)
    if match is None:
        raise DiscoveryParseError("pattern mismatch", data)
    port = int(match.group(3))
    if not 0 < port < 65536:
        raise DiscoveryParseError("port out of range", data)
    return int(match.group(1)), match.group(2), port


class _DiscoveryProtocol(asyncio.DatagramProtocol):
    """Feeds every received datagram to the resolver."""

    def __init__(self, resolver: AddressResolver) -> None:
        self.resolver: AddressResolver = resolver

    @override
    def datagram_received(self, data: bytes, addr: tuple[str | object, int]) -> None:
        self.resolver.on_datagram(data, addr)

    @override
    def error_received(self, exc: Exception) -> None:
        logger.warning("Discovery socket error: %s", exc)


class AddressResolver:
    """Owns the lpid -> AddressRecord table.

    Records are overwritten by every answer and exist only in memory; a
    missing record means the lightpad is currently unreachable.
    """

    lp: str = "AddressResolver"

    def __init__(self, listener: AddressListener | None = None) -> None:
        self._records: dict[str, AddressRecord] = {}
        self.listener: AddressListener | None = listener
        self.transport: asyncio.DatagramTransport | None = None
        self._periodic_task: asyncio.Task[None] | None = None

    @property
    def records(self) -> Mapping[str, AddressRecord]:
        return MappingProxyType(self._records)

    def lookup(self, lpid: str) -> AddressRecord | None:
        return self._records.get(lpid)

    def forget(self, lpid: str) -> Unreachable | None:
        """Drop the address of ``lpid`` and tell the listener it is unreachable.

        Returns:
            An Unreachable event, or None if no address was known.

        """
        if self._records.pop(lpid, None) is None:
            return None
        logger.info("%s:forget: Lightpad %s address dropped", self.lp, lpid, extra={"lpid": lpid})
        event = Unreachable(lpid)
        if self.listener is not None:
            self.listener(event)
        return event

    def handle_response(self, data: bytes, sender: tuple[str | object, int]) -> Reachable | None:
        """Upsert the sender's address for the lpid in ``data``.

        Returns:
            A Reachable event, or None if the datagram was not a valid answer.

        """
        lp = f"{self.lp}:handle_response:"
        try:
            _ttl, lpid, command_port = parse_response(data)
        except DiscoveryParseError as e:
            logger.debug("%s Ignoring datagram from %s: %s (%r)", lp, sender, e.reason, e.data_preview)
            return None

        record = AddressRecord(
            lpid=lpid,
            address=str(sender[0]),
            command_port=command_port,
            stream_port=DEFAULT_STREAM_PORT,
        )
        previous = self._records.get(lpid)
        self._records[lpid] = record
        if previous != record:
            logger.info(
                "%s Lightpad %s at %s:%s",
                lp,
                lpid,
                record.address,
                record.command_port,
                extra={"lpid": lpid, "address": record.address, "command_port": command_port},
            )
        return Reachable(lpid)

    def on_datagram(self, data: bytes, sender: tuple[str | object, int]) -> None:
        event = self.handle_response(data, sender)
        if event is not None and self.listener is not None:
            self.listener(event)

    async def start_discovery(self) -> None:
        """Broadcast a discovery request, opening the UDP endpoint on first use."""
        if self.transport is None or self.transport.is_closing():
            loop = asyncio.get_running_loop()
            self.transport, _ = await loop.create_datagram_endpoint(
                lambda: _DiscoveryProtocol(self),
                local_addr=("0.0.0.0", 0),
                allow_broadcast=True,
            )
        logger.debug("%s:start_discovery: Broadcasting to %s:%d", self.lp, BROADCAST_ADDRESS, DISCOVERY_PORT)
        self.transport.sendto(DISCOVERY_PAYLOAD, (BROADCAST_ADDRESS, DISCOVERY_PORT))

    async def _periodic_discovery(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.start_discovery()
            except OSError:
                logger.exception("%s Periodic discovery broadcast failed", self.lp)

    def run_periodic_discovery(self, interval: float) -> asyncio.Task[None] | None:
        """Re-broadcast every ``interval`` seconds until close(). 0 disables."""
        if interval <= 0:
            return None
        if self._periodic_task is None or self._periodic_task.done():
            self._periodic_task = asyncio.create_task(
                self._periodic_discovery(interval),
                name="plum_periodic_discovery",
            )
        return self._periodic_task

    async def close(self) -> None:
        if self._periodic_task is not None:
            _ = self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                logger.debug("%s Periodic discovery stopped", self.lp)
            self._periodic_task = None
        if self.transport is not None:
            self.transport.close()
            self.transport = None
