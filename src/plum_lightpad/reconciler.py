"""Diff a fetched cloud topology against the handles already registered."""

from __future__ import annotations

from collections.abc import Mapping

from plum_lightpad.logging_abstraction import get_logger
from plum_lightpad.structs import DeviceHandle, ReconcileResult, Topology

logger = get_logger(__name__)


def reconcile(topology: Topology, existing_handles: Mapping[str, DeviceHandle]) -> ReconcileResult:
    """Work out which handles to add, update and remove.

    Every lightpad in the topology is either an update (a handle exists; its
    context is replaced wholesale) or an add named "{room} {load}". Handles
    whose lpid no longer appears in any load are removed. Reachability plays
    no part: an offline lightpad that is still in the topology stays.
    """
    result = ReconcileResult()
    for lpid, context in topology.lightpads.items():
        if lpid in existing_handles:
            result.to_update.append((lpid, context))
        else:
            result.to_add.append((context.display_name, lpid, context))

    result.to_remove = [lpid for lpid in existing_handles if lpid not in topology.lightpads]

    logger.debug(
        "Reconciled topology",
        extra={
            "add": len(result.to_add),
            "update": len(result.to_update),
            "remove": len(result.to_remove),
        },
    )
    return result
