"""Shared fixtures for unit tests."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from plum_lightpad.config import PlumConfig
from plum_lightpad.discovery import AddressResolver
from plum_lightpad.structs import DeviceContext, DeviceHandle, House, LogicalLoad, Room
from tests.helpers.fakes import LPID_A, FakePlumCloud, make_dummy_secret, make_response


@pytest.fixture
def house_token_secret() -> str:
    return make_dummy_secret("house")


@pytest.fixture
def plum_config() -> PlumConfig:
    return PlumConfig(username="user@example.com", password=SecretStr(make_dummy_secret("pw")))


@pytest.fixture
def fake_cloud(house_token_secret: str) -> FakePlumCloud:
    return FakePlumCloud(house_token_secret)


@pytest.fixture
def cloud_session(fake_cloud: FakePlumCloud) -> MagicMock:
    """Mock aiohttp.ClientSession routed to ``fake_cloud``."""
    session = MagicMock()
    session.closed = False
    session.get = AsyncMock(side_effect=fake_cloud)
    session.post = AsyncMock(side_effect=fake_cloud)
    session.close = AsyncMock()
    return session


@pytest.fixture
def device_session() -> MagicMock:
    """Mock aiohttp.ClientSession for lightpad commands; tests replace ``post`` as needed."""
    session = MagicMock()
    session.closed = False
    session.post = AsyncMock(return_value=make_response(text=""))
    session.close = AsyncMock()
    return session


@pytest.fixture
def accessory_layer() -> MagicMock:
    """Mock AccessoryLayer recording register/unregister/update calls."""
    return MagicMock()


@pytest.fixture
def resolver() -> AddressResolver:
    return AddressResolver()


@pytest.fixture
def make_context(house_token_secret: str) -> Callable[..., DeviceContext]:
    def _make(
        room_name: str = "Kitchen",
        load_name: str = "Island",
        llid: str = "l1",
        lpids: list[str] | None = None,
    ) -> DeviceContext:
        return DeviceContext(
            house=House(hid="h1", house_name="Home", house_access_token=house_token_secret, rids=["r1"]),
            room=Room(rid="r1", room_name=room_name, llids=[llid]),
            load=LogicalLoad(llid=llid, logical_load_name=load_name, lpids=lpids or [LPID_A]),
        )

    return _make


@pytest.fixture
def handle(make_context: Callable[..., DeviceContext]) -> DeviceHandle:
    return DeviceHandle(lpid=LPID_A, name="Kitchen Island", context=make_context())
