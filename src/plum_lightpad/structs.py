"""Core data structures and typing protocols for plum-lightpad."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from pydantic import BaseModel


class House(BaseModel):
    """House detail from ``getHouse``.

    API response structure:
        {
            'hid': '...',
            'house_name': 'Home',
            'house_access_token': '...',
            'rids': ['...', '...'],
            ...
        }
    """

    hid: str
    house_name: str = ""
    house_access_token: str
    rids: list[str] = []


class Room(BaseModel):
    """Room detail from ``getRoom``."""

    rid: str
    room_name: str = ""
    llids: list[str] = []


class LogicalLoad(BaseModel):
    """Logical load detail from ``getLogicalLoad``.

    ``level`` is the device-scale (0-255) level the cloud last saw; the
    lightpad itself is authoritative.
    """

    llid: str
    logical_load_name: str = ""
    lpids: list[str] = []
    level: int = 0


@dataclass(frozen=True)
class DeviceContext:
    """Snapshot of where a lightpad sits in the cloud topology."""

    house: House
    room: Room
    load: LogicalLoad

    @property
    def display_name(self) -> str:
        return f"{self.room.room_name} {self.load.logical_load_name}"


@dataclass
class Topology:
    """Result of one full cloud fetch.

    ``lightpads`` is the flattened join of the four fetch levels. When an
    lpid appears in more than one load, the last one in house -> room ->
    load order wins.
    """

    houses: dict[str, House] = field(default_factory=dict)
    rooms: dict[str, Room] = field(default_factory=dict)
    loads: dict[str, LogicalLoad] = field(default_factory=dict)
    lightpads: dict[str, DeviceContext] = field(default_factory=dict)


@dataclass(frozen=True)
class AddressRecord:
    """Where a lightpad was last heard from. Never persisted."""

    lpid: str
    address: str
    command_port: int
    stream_port: int


@dataclass(frozen=True)
class Reachable:
    """Emitted when a discovery response arrives for ``lpid``."""

    lpid: str


@dataclass(frozen=True)
class Unreachable:
    """Emitted when the address of ``lpid`` is forgotten."""

    lpid: str


AddressEvent = Reachable | Unreachable


@dataclass
class DeviceHandle:
    """The unit exposed to the accessory layer, one per lightpad id."""

    lpid: str
    name: str
    context: DeviceContext
    reachable: bool = False
    brightness: int = 0
    on: bool = False

    @property
    def llid(self) -> str:
        return self.context.load.llid

    @property
    def house_access_token(self) -> str:
        return self.context.house.house_access_token


@dataclass
class ReconcileResult:
    to_add: list[tuple[str, str, DeviceContext]] = field(default_factory=list)
    to_update: list[tuple[str, DeviceContext]] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)


class AccessoryLayer(Protocol):
    """Host framework that exposes handles to the smart-home ecosystem."""

    def register(self, handle: DeviceHandle) -> None:
        """Expose a newly found lightpad."""
        ...

    def unregister(self, handle: DeviceHandle) -> None:
        """Withdraw a lightpad that left the cloud topology."""
        ...

    def update_reachability(self, handle: DeviceHandle) -> None:
        """Push ``handle.reachable`` to the host."""
        ...

    def update_characteristics(self, handle: DeviceHandle, on: bool, brightness: int) -> None:
        """Push fresh on/off and brightness values to the host's cache."""
        ...
