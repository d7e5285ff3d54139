"""Observed-state collection for declared functions and the shared layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from lambdasync.core.concurrency import gather_or_cancel
from lambdasync.core.config import FunctionSpec
from lambdasync.core.errors import CollectionError, PlatformError
from lambdasync.core.gateway import PlatformGateway
from lambdasync.core.models import NOT_FOUND, ObservedFunctionState, ObservedLayerState
from lambdasync.core.settle import Deadline

logger = logging.getLogger("lambdasync.collector")


@dataclass(frozen=True)
class CollectedState:
    functions: tuple[ObservedFunctionState, ...]
    layer: ObservedLayerState | None = None


class StateCollector:
    def __init__(self, gateway: PlatformGateway, *, deadline: Deadline | None = None):
        self.gateway = gateway
        self.deadline = deadline or Deadline.unbounded()

    async def collect(
        self, specs: Sequence[FunctionSpec], layer_name: str | None
    ) -> CollectedState:
        """
        Query every declared function and the newest layer version concurrently.

        All queries are joined before returning; results keep declaration order.
        Any failure other than not-found cancels the remaining queries and raises
        CollectionError.
        """
        function_tasks = [self._observe_function(spec.name) for spec in specs]
        if layer_name is None:
            functions = await gather_or_cancel(*function_tasks)
            layer = None
        else:
            *functions, layer = await gather_or_cancel(
                *function_tasks, self._observe_layer(layer_name)
            )

        for observed in functions:
            logger.info(
                "%s %s",
                observed.name,
                "exists" if observed.exists else "does not exist",
                extra={"function_name": observed.name},
            )
        if layer_name is not None:
            logger.info(
                "Layer %s: %s",
                layer_name,
                f"version {layer.version}" if layer else "no published versions",
            )
        return CollectedState(functions=tuple(functions), layer=layer)

    async def _observe_function(self, name: str) -> ObservedFunctionState:
        try:
            lookup = await self.deadline.run(
                self.gateway.get_function_config(name), target=name, operation="collect"
            )
        except (PlatformError, TimeoutError) as e:
            raise CollectionError(name, e) from e
        if lookup is NOT_FOUND:
            return ObservedFunctionState(name=name, exists=False)
        return ObservedFunctionState(name=name, exists=True, config=lookup.value)

    async def _observe_layer(self, layer_name: str) -> ObservedLayerState | None:
        try:
            lookup = await self.deadline.run(
                self.gateway.list_latest_layer_version(layer_name),
                target=f"layer {layer_name}",
                operation="collect",
            )
        except (PlatformError, TimeoutError) as e:
            raise CollectionError(f"layer {layer_name}", e) from e
        if lookup is NOT_FOUND:
            return None
        return lookup.value
