"""Wires discovery, the cloud client, the registry and the controller together.

One PlumPlatform per host plugin instance. The host calls ``start`` once it
has finished restoring cached accessories, routes on/off and brightness
requests to the ``set_*``/``get_*`` handlers, and calls ``stop`` on
shutdown.
"""

from __future__ import annotations

from plum_lightpad.cloud_api import PlumCloudAPI
from plum_lightpad.config import PlumConfig
from plum_lightpad.controller import DeviceController
from plum_lightpad.correlation import correlation_context
from plum_lightpad.discovery import AddressResolver
from plum_lightpad.exceptions import CloudError
from plum_lightpad.logging_abstraction import get_logger
from plum_lightpad.reconciler import reconcile
from plum_lightpad.registry import DeviceRegistry
from plum_lightpad.structs import AccessoryLayer, DeviceContext, DeviceHandle

logger = get_logger(__name__)


class PlumPlatform:
    lp: str = "PlumPlatform"

    def __init__(
        self,
        config: PlumConfig,
        accessory_layer: AccessoryLayer,
        cloud_api: PlumCloudAPI | None = None,
    ) -> None:
        self.config: PlumConfig = config
        self.accessory_layer: AccessoryLayer = accessory_layer
        self.resolver: AddressResolver = AddressResolver()
        self.registry: DeviceRegistry = DeviceRegistry(accessory_layer, self.resolver)
        self.resolver.listener = self.registry.apply_reachability
        self.cloud_api: PlumCloudAPI = cloud_api or PlumCloudAPI(config)
        self.controller: DeviceController = DeviceController(
            self.resolver,
            accessory_layer,
            command_timeout=config.command_timeout,
        )

    def configure_accessory(self, lpid: str, name: str, context: DeviceContext) -> DeviceHandle:
        """Hand a lightpad restored from the host's cache back to the registry."""
        return self.registry.restore(lpid, name, context)

    async def start(self) -> bool:
        """Broadcast discovery, then load lightpads from the cloud.

        Returns:
            bool: whether the cloud sync succeeded

        """
        try:
            await self.resolver.start_discovery()
        except OSError:
            logger.exception("%s Failed to broadcast discovery request", self.lp)
        _ = self.resolver.run_periodic_discovery(self.config.discovery_interval)
        return await self.sync_topology()

    async def sync_topology(self) -> bool:
        """Fetch the cloud topology and reconcile the registry with it.

        On CloudError the registry is left exactly as it was.
        """
        with correlation_context():
            try:
                topology = await self.cloud_api.fetch_topology()
            except CloudError as e:
                logger.error(
                    "%s Failed to get devices from cloud",
                    self.lp,
                    extra={"endpoint": e.endpoint, "reason": e.reason},
                )
                return False
            self.registry.apply(reconcile(topology, self.registry.handles))
            logger.info("%s Loaded lightpads from cloud", self.lp, extra={"lightpads": len(self.registry)})
            return True

    def _handle(self, lpid: str) -> DeviceHandle:
        handle = self.registry.get(lpid)
        if handle is None:
            msg = f"Unknown lightpad: {lpid}"
            raise KeyError(msg)
        return handle

    async def set_on(self, lpid: str, value: bool) -> None:
        handle = self._handle(lpid)
        with correlation_context():
            logger.info("%s %s Light -> %s", self.lp, handle.name, value)
            await self.controller.set_on(handle, value)

    async def get_on(self, lpid: str) -> bool:
        with correlation_context():
            return await self.controller.get_on(self._handle(lpid))

    async def set_brightness(self, lpid: str, percent: int) -> None:
        handle = self._handle(lpid)
        with correlation_context():
            logger.info("%s %s Light -> %s", self.lp, handle.name, percent)
            await self.controller.set_level(handle, percent)

    async def get_brightness(self, lpid: str) -> int:
        with correlation_context():
            return await self.controller.get_level(self._handle(lpid))

    async def stop(self) -> None:
        await self.resolver.close()
        await self.cloud_api.close()
        await self.controller.close()
        logger.debug("%s Stopped", self.lp)
