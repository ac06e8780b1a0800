"""Local HTTPS commands to lightpads.

Each command goes to the address discovery last saw for the lightpad and
is authenticated with the SHA-256 hex digest of the owning house's access
token. Lightpads present self-issued certificates, so TLS verification is
switched off for these requests.
"""

from __future__ import annotations

import hashlib
import json
import ssl
from typing import cast

import aiohttp

from plum_lightpad.const import DEVICE_LEVEL_MAX, HOUSE_TOKEN_HEADER, PERCENT_MAX, PLUM_COMMAND_TIMEOUT, PLUM_USER_AGENT
from plum_lightpad.discovery import AddressResolver
from plum_lightpad.exceptions import CommandError, CommandErrorKind
from plum_lightpad.instrumentation import timed_async
from plum_lightpad.logging_abstraction import get_logger
from plum_lightpad.structs import AccessoryLayer, DeviceHandle

logger = get_logger(__name__)

SET_LEVEL_PATH = "/v2/setLogicalLoadLevel"
GET_METRICS_PATH = "/v2/getLogicalLoadMetrics"


def to_device_level(percent: float) -> int:
    """0-100 percent -> 0-255 device level."""
    return max(0, min(DEVICE_LEVEL_MAX, round(percent / PERCENT_MAX * DEVICE_LEVEL_MAX)))


def to_percent(level: float) -> int:
    """0-255 device level -> 0-100 percent."""
    return max(0, min(PERCENT_MAX, round(level / DEVICE_LEVEL_MAX * PERCENT_MAX)))


def house_token(house_access_token: str) -> str:
    return hashlib.sha256(house_access_token.encode("utf-8")).hexdigest()


def lightpad_ssl_context() -> ssl.SSLContext:
    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE
    return ssl_context


class DeviceController:
    """Set and read logical load levels through a lightpad.

    Any lightpad in a load controls the whole load. Commands are neither
    queued nor serialized; two concurrent calls for one lightpad are two
    independent requests.
    """

    lp: str = "DeviceController"

    def __init__(
        self,
        resolver: AddressResolver,
        accessory_layer: AccessoryLayer,
        command_timeout: float = PLUM_COMMAND_TIMEOUT,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.resolver: AddressResolver = resolver
        self.accessory_layer: AccessoryLayer = accessory_layer
        self.command_timeout: float = command_timeout
        self.http_session: aiohttp.ClientSession | None = http_session
        self.ssl_context: ssl.SSLContext = lightpad_ssl_context()

    async def close(self) -> None:
        if self.http_session and not self.http_session.closed:
            logger.debug("%s:close: Closing aiohttp ClientSession", self.lp)
            await self.http_session.close()
        self.http_session = None

    async def _check_session(self) -> aiohttp.ClientSession:
        if not self.http_session or self.http_session.closed:
            self.http_session = aiohttp.ClientSession()
        return self.http_session

    async def _post(self, handle: DeviceHandle, path: str, body: dict[str, object]) -> object:
        """POST ``body`` to the lightpad and return its decoded JSON reply (None if empty)."""
        address = self.resolver.lookup(handle.lpid)
        if address is None:
            raise CommandError(CommandErrorKind.UNREACHABLE, handle.lpid, "no address discovered")

        headers = {
            "User-Agent": PLUM_USER_AGENT,
            HOUSE_TOKEN_HEADER: house_token(handle.house_access_token),
        }
        url = f"https://{address.address}:{address.command_port}{path}"
        sesh = await self._check_session()
        try:
            r = await sesh.post(
                url,
                json=body,
                headers=headers,
                ssl=self.ssl_context,
                timeout=aiohttp.ClientTimeout(total=self.command_timeout),
            )
            text = await r.text()
        except TimeoutError as e:
            raise CommandError(
                CommandErrorKind.TRANSPORT,
                handle.lpid,
                f"timed out after {self.command_timeout}s",
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            raise CommandError(CommandErrorKind.TRANSPORT, handle.lpid, f"{type(e).__name__}: {e}") from e

        logger.debug("%s %s from %s(%s)", self.lp, r.status, path, handle.name)
        if r.status != 200:
            raise CommandError(CommandErrorKind.PROTOCOL, handle.lpid, f"HTTP {r.status} from {path}")
        if not text.strip():
            return None
        try:
            return cast("object", json.loads(text))
        except json.JSONDecodeError as e:
            raise CommandError(CommandErrorKind.PROTOCOL, handle.lpid, f"invalid JSON from {path}") from e

    def _update_state(self, handle: DeviceHandle, percent: int) -> None:
        handle.brightness = percent
        handle.on = percent > 0
        self.accessory_layer.update_characteristics(handle, handle.on, handle.brightness)

    @timed_async("lightpad_set_level")
    async def set_level(self, handle: DeviceHandle, percent: int) -> None:
        """Set the handle's logical load to ``percent`` (0-100).

        Raises:
            CommandError: unreachable, transport failure or bad response

        """
        level = to_device_level(percent)
        _ = await self._post(handle, SET_LEVEL_PATH, {"level": level, "llid": handle.llid})
        logger.info("%s %s -> %s%%", self.lp, handle.name, percent, extra={"lpid": handle.lpid, "level": level})
        self._update_state(handle, to_percent(level))

    @timed_async("lightpad_get_level")
    async def get_level(self, handle: DeviceHandle) -> int:
        """Read the handle's logical load level as a percent (0-100).

        Raises:
            CommandError: unreachable, transport failure or bad response

        """
        reply = await self._post(handle, GET_METRICS_PATH, {"llid": handle.llid})
        level: object = cast("dict[str, object]", reply).get("level") if isinstance(reply, dict) else None
        if isinstance(level, bool) or not isinstance(level, (int, float)):
            raise CommandError(CommandErrorKind.PROTOCOL, handle.lpid, f"no level in reply: {reply!r}")
        percent = to_percent(level)
        logger.debug("%s level=%s (%s%%) from %s", self.lp, level, percent, handle.name)
        self._update_state(handle, percent)
        return percent

    async def set_on(self, handle: DeviceHandle, value: bool) -> None:
        """Switch on to full brightness when dark, off when lit; no-op otherwise."""
        if value and handle.brightness == 0:
            await self.set_level(handle, PERCENT_MAX)
        elif not value and handle.brightness > 0:
            await self.set_level(handle, 0)
        else:
            logger.debug("%s %s already %s", self.lp, handle.name, "on" if value else "off")

    async def get_on(self, handle: DeviceHandle) -> bool:
        return await self.get_level(handle) > 0
