"""Plum cloud API client for fetching the house/room/load/lightpad topology.

The cloud only knows the structure (which lightpads belong to which logical
load, room and house) and each house's access token. It is never used to
send commands; those go straight to the lightpads on the LAN.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine, Iterable
from pathlib import Path
from typing import Any, TypeVar, cast

import aiohttp
import yaml
from pydantic import BaseModel, ValidationError

from plum_lightpad.config import PlumConfig
from plum_lightpad.const import PLUM_USER_AGENT
from plum_lightpad.exceptions import CloudError
from plum_lightpad.instrumentation import timed_async
from plum_lightpad.logging_abstraction import get_logger
from plum_lightpad.structs import DeviceContext, House, LogicalLoad, Room, Topology

logger = get_logger(__name__)

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

RoomTree = tuple[Room, list[LogicalLoad]]
HouseTree = tuple[House, list[RoomTree]]


def _first_error(group: BaseExceptionGroup[Exception]) -> CloudError:
    leaf: BaseException = group
    while isinstance(leaf, BaseExceptionGroup):
        leaf = leaf.exceptions[0]
    if isinstance(leaf, CloudError):
        return leaf
    return CloudError("topology", f"{type(leaf).__name__}: {leaf}")


async def _gather_all(coros: Iterable[Coroutine[Any, Any, T]]) -> list[T]:
    """Run ``coros`` concurrently and return their results in order.

    Returns only once every coroutine has finished. The first failure
    cancels the rest and is raised as a single CloudError.
    """
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise _first_error(eg) from None
    return [task.result() for task in tasks]


class PlumCloudAPI:
    """Read-only client for the Plum cloud topology endpoints.

    Every request carries HTTP basic auth from the configured account and
    the app User-Agent. A topology fetch either returns the whole tree or
    raises CloudError; there is no partial result.
    """

    lp: str = "PlumCloudAPI"

    def __init__(self, config: PlumConfig, http_session: aiohttp.ClientSession | None = None) -> None:
        self.config: PlumConfig = config
        self.http_session: aiohttp.ClientSession | None = http_session

    async def close(self) -> None:
        """Close the aiohttp session if it exists and is not closed."""
        if self.http_session and not self.http_session.closed:
            logger.debug("%s:close: Closing aiohttp ClientSession", self.lp)
            await self.http_session.close()
        self.http_session = None

    async def _check_session(self) -> aiohttp.ClientSession:
        if not self.http_session or self.http_session.closed:
            logger.debug("%s:_check_session: Creating new aiohttp ClientSession", self.lp)
            self.http_session = aiohttp.ClientSession()
        return self.http_session

    def _auth(self, endpoint: str) -> aiohttp.BasicAuth:
        if not self.config.has_credentials or self.config.password is None:
            raise CloudError(endpoint, "Plum account username or password not set")
        return aiohttp.BasicAuth(str(self.config.username), self.config.password.get_secret_value())

    async def _request(self, endpoint: str, payload: dict[str, str] | None = None) -> object:
        """GET (no payload) or POST ``payload`` to ``endpoint`` and return the decoded JSON body."""
        sesh = await self._check_session()
        url = f"{self.config.api_base}{endpoint}"
        request_kwargs: dict[str, Any] = {
            "auth": self._auth(endpoint),
            "headers": {"User-Agent": PLUM_USER_AGENT},
            "timeout": aiohttp.ClientTimeout(total=self.config.api_timeout),
        }
        try:
            if payload is None:
                r = await sesh.get(url, **request_kwargs)
            else:
                r = await sesh.post(url, json=payload, **request_kwargs)
            r.raise_for_status()
            return cast("object", await r.json())
        except aiohttp.ContentTypeError as e:
            raise CloudError(endpoint, f"response is not JSON ({e.message})") from e
        except aiohttp.ClientResponseError as e:
            raise CloudError(endpoint, f"HTTP {e.status} {e.message}") from e
        except aiohttp.ClientError as e:
            raise CloudError(endpoint, f"{type(e).__name__}: {e}") from e
        except TimeoutError as e:
            raise CloudError(endpoint, f"timed out after {self.config.api_timeout}s") from e
        except json.JSONDecodeError as e:
            raise CloudError(endpoint, f"invalid JSON: {e}") from e

    @staticmethod
    def _parse(endpoint: str, model: type[ModelT], ident: dict[str, str], body: object) -> ModelT:
        if not isinstance(body, dict):
            raise CloudError(endpoint, f"expected an object, got {type(body).__name__}")
        # the request id fills in for a response that omits it
        data = ident | cast("dict[str, object]", body)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise CloudError(endpoint, f"malformed response: {e.error_count()} validation error(s)") from e

    async def get_houses(self) -> list[str]:
        logger.debug("%s Getting houses...", self.lp)
        body = await self._request("getHouses")
        if not isinstance(body, list) or not all(isinstance(hid, str) for hid in body):
            raise CloudError("getHouses", "expected a list of house ids")
        hids = cast("list[str]", body)
        logger.debug("%s Found houses: %s", self.lp, hids)
        return hids

    async def get_house(self, hid: str) -> House:
        logger.debug("%s Getting house %s...", self.lp, hid)
        body = await self._request("getHouse", {"hid": hid})
        return self._parse("getHouse", House, {"hid": hid}, body)

    async def get_room(self, rid: str) -> Room:
        logger.debug("%s Getting room %s...", self.lp, rid)
        body = await self._request("getRoom", {"rid": rid})
        return self._parse("getRoom", Room, {"rid": rid}, body)

    async def get_logical_load(self, llid: str) -> LogicalLoad:
        logger.debug("%s Getting logical load %s...", self.lp, llid)
        body = await self._request("getLogicalLoad", {"llid": llid})
        return self._parse("getLogicalLoad", LogicalLoad, {"llid": llid}, body)

    async def _fetch_room(self, rid: str) -> RoomTree:
        room = await self.get_room(rid)
        loads = await _gather_all(self.get_logical_load(llid) for llid in room.llids)
        return room, loads

    async def _fetch_house(self, hid: str) -> HouseTree:
        house = await self.get_house(hid)
        rooms = await _gather_all(self._fetch_room(rid) for rid in house.rids)
        return house, rooms

    @timed_async("cloud_fetch_topology")
    async def fetch_topology(self) -> Topology:
        """Fetch every house, room and logical load on the account.

        Siblings at each level are fetched concurrently.

        Raises:
            CloudError: any single request failed

        """
        hids = await self.get_houses()
        trees = await _gather_all(self._fetch_house(hid) for hid in hids)
        topology = flatten(trees)
        logger.info(
            "%s Fetched topology",
            self.lp,
            extra={
                "houses": len(topology.houses),
                "rooms": len(topology.rooms),
                "loads": len(topology.loads),
                "lightpads": len(topology.lightpads),
            },
        )
        return topology

    async def export_topology(self, path: Path, topology: Topology | None = None) -> Path:
        """Write a YAML summary of the topology to ``path``. House access tokens are left out."""
        if topology is None:
            topology = await self.fetch_topology()
        document = topology_to_config(topology)

        def _write_yaml() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                _ = f.write(yaml.safe_dump(document, sort_keys=False))

        await asyncio.to_thread(_write_yaml)
        logger.info("%s Topology written to %s", self.lp, path)
        return path


def flatten(trees: list[HouseTree]) -> Topology:
    """Join the fetched levels into a Topology, walking house -> room -> load -> lpid."""
    topology = Topology()
    for house, rooms in trees:
        topology.houses[house.hid] = house
        for room, loads in rooms:
            topology.rooms[room.rid] = room
            for load in loads:
                topology.loads[load.llid] = load
                for lpid in load.lpids:
                    if lpid in topology.lightpads:
                        logger.debug("Lightpad %s listed in more than one load, using %s", lpid, load.llid)
                    topology.lightpads[lpid] = DeviceContext(house=house, room=room, load=load)
    return topology


def topology_to_config(topology: Topology) -> dict[str, object]:
    houses: dict[str, object] = {}
    for house in topology.houses.values():
        rooms: dict[str, object] = {}
        for rid in house.rids:
            room = topology.rooms.get(rid)
            if room is None:
                continue
            rooms[room.room_name or rid] = {
                "id": room.rid,
                "loads": {
                    load.logical_load_name or load.llid: {
                        "id": load.llid,
                        "level": load.level,
                        "lightpads": list(load.lpids),
                    }
                    for load in (topology.loads[llid] for llid in room.llids if llid in topology.loads)
                },
            }
        houses[house.house_name or house.hid] = {"id": house.hid, "rooms": rooms}
    return {"houses": houses}
