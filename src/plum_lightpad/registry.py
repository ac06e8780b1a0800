"""In-memory store of lightpad handles shared with the accessory layer."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from plum_lightpad.discovery import AddressResolver
from plum_lightpad.logging_abstraction import get_logger
from plum_lightpad.structs import AccessoryLayer, AddressEvent, DeviceContext, DeviceHandle, Reachable, ReconcileResult

logger = get_logger(__name__)


class DeviceRegistry:
    """Single owner of the lpid -> DeviceHandle map.

    Handles are created and destroyed only by ``apply`` (topology
    reconciliation) and ``restore`` (host cache). Failed commands and lost
    addresses never remove a handle.
    """

    lp: str = "DeviceRegistry"

    def __init__(self, accessory_layer: AccessoryLayer, resolver: AddressResolver) -> None:
        self.accessory_layer: AccessoryLayer = accessory_layer
        self.resolver: AddressResolver = resolver
        self._handles: dict[str, DeviceHandle] = {}

    @property
    def handles(self) -> Mapping[str, DeviceHandle]:
        return MappingProxyType(self._handles)

    def __contains__(self, lpid: object) -> bool:
        return lpid in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def get(self, lpid: str) -> DeviceHandle | None:
        return self._handles.get(lpid)

    def _new_handle(self, name: str, lpid: str, context: DeviceContext) -> DeviceHandle:
        handle = DeviceHandle(
            lpid=lpid,
            name=name,
            context=context,
            reachable=self.resolver.lookup(lpid) is not None,
        )
        self._handles[lpid] = handle
        return handle

    def restore(self, lpid: str, name: str, context: DeviceContext) -> DeviceHandle:
        """Re-register a handle the host persisted from an earlier run.

        The host already knows about it, so ``register`` is not called.
        """
        logger.debug("%s Restoring cached lightpad %s %s", self.lp, name, lpid)
        return self._new_handle(name, lpid, context)

    def apply(self, result: ReconcileResult) -> None:
        for name, lpid, context in result.to_add:
            logger.info("%s Adding lightpad %s", self.lp, name, extra={"lpid": lpid})
            handle = self._new_handle(name, lpid, context)
            self.accessory_layer.register(handle)

        for lpid, context in result.to_update:
            handle = self._handles.get(lpid)
            if handle is None:
                logger.warning("%s Update for unknown lightpad %s ignored", self.lp, lpid)
                continue
            handle.context = context

        for lpid in result.to_remove:
            handle = self._handles.pop(lpid, None)
            if handle is None:
                continue
            logger.info("%s Removing lightpad %s", self.lp, handle.name, extra={"lpid": lpid})
            self.accessory_layer.unregister(handle)

    def apply_reachability(self, event: AddressEvent) -> None:
        """Apply an address event from discovery to the matching handle."""
        handle = self._handles.get(event.lpid)
        if handle is None:
            # not in the topology yet; _new_handle reads the resolver when it is
            return
        reachable = isinstance(event, Reachable)
        if handle.reachable == reachable:
            return
        handle.reachable = reachable
        logger.debug(
            "%s Lightpad %s is %s",
            self.lp,
            handle.name,
            "reachable" if reachable else "unreachable",
            extra={"lpid": event.lpid},
        )
        self.accessory_layer.update_reachability(handle)
