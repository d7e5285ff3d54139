"""
Version retention.

Deletes the oldest unpinned function versions beyond the retention count and,
optionally, old layer versions that no surviving function version references.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Set, Tuple, TypeVar

from lambdasync.core.config import FunctionSpec, PrunePolicy
from lambdasync.core.errors import DeadlineExceededError, PlatformError, PruneError
from lambdasync.core.gateway import PlatformGateway
from lambdasync.core.models import LATEST, Alias, FunctionVersion, LayerVersion
from lambdasync.core.report import PruneReport
from lambdasync.core.settle import Deadline

logger = logging.getLogger("lambdasync.prune")

T = TypeVar("T")


def protected_versions(aliases: Sequence[Alias]) -> Set[str]:
    """Versions referenced by any alias (including weighted routing) plus $LATEST."""
    protected = {LATEST}
    for alias in aliases:
        protected |= alias.referenced_versions()
    return protected


def partition_versions(
    versions: Sequence[FunctionVersion], protected: Set[str]
) -> Tuple[List[FunctionVersion], List[FunctionVersion]]:
    """Split into (used, unused) keeping the platform's order."""
    used = [v for v in versions if v.version in protected]
    unused = [v for v in versions if v.version not in protected]
    return used, unused


def select_prunable(candidates: Sequence[T], retention_count: int) -> List[T]:
    """Oldest entries beyond the retention count; candidates are ordered oldest first."""
    excess = len(candidates) - retention_count
    if excess <= 0:
        return []
    return list(candidates[:excess])


class Pruner:
    def __init__(
        self,
        gateway: PlatformGateway,
        *,
        layer_name: str | None = None,
        deadline: Deadline | None = None,
    ):
        self.gateway = gateway
        self.layer_name = layer_name
        self.deadline = deadline or Deadline.unbounded()

    async def prune(
        self, specs: Sequence[FunctionSpec], policy: PrunePolicy | None
    ) -> PruneReport:
        if policy is None or policy.retention_count is None:
            logger.info("No retention policy configured; skipping prune")
            return PruneReport(skipped=True)

        retention = policy.retention_count
        deleted: Dict[str, Tuple[str, ...]] = {}
        referenced_layers: Set[str] = set()

        for spec in specs:
            removed, standing = await self._prune_function(spec.name, retention)
            deleted[spec.name] = tuple(v.version for v in removed)
            for version in standing:
                referenced_layers.update(version.layers)

        deleted_layers: Tuple[int, ...] = ()
        if policy.include_layers and self.layer_name:
            deleted_layers = await self._prune_layers(
                self.layer_name, retention, referenced_layers
            )

        return PruneReport(
            deleted_versions=deleted,
            deleted_layer_versions=deleted_layers,
            protected_layers=frozenset(referenced_layers),
        )

    async def _prune_function(
        self, name: str, retention: int
    ) -> Tuple[List[FunctionVersion], List[FunctionVersion]]:
        try:
            versions = await self.deadline.run(
                self.gateway.list_versions(name), target=name, operation="list versions"
            )
            aliases = await self.deadline.run(
                self.gateway.list_aliases(name), target=name, operation="list aliases"
            )
        except (PlatformError, DeadlineExceededError) as e:
            raise PruneError(name, "*", e) from e

        used, unused = partition_versions(versions, protected_versions(aliases))
        doomed = select_prunable(unused, retention)
        logger.info(
            "%s: %d versions, %d pinned, deleting %d",
            name,
            len(versions),
            len(used),
            len(doomed),
            extra={"function_name": name},
        )

        removed: List[FunctionVersion] = []
        for version in doomed:
            try:
                await self.deadline.run(
                    self.gateway.delete_version(name, version.version),
                    target=name,
                    operation="delete version",
                )
            except (PlatformError, DeadlineExceededError) as e:
                raise PruneError(name, version.version, e) from e
            logger.info("Deleted %s:%s", name, version.version, extra={"function_name": name})
            removed.append(version)

        removed_ids = {v.version for v in removed}
        standing = [v for v in versions if v.version not in removed_ids]
        return removed, standing

    async def _prune_layers(
        self, layer_name: str, retention: int, referenced: Set[str]
    ) -> Tuple[int, ...]:
        target = f"layer {layer_name}"
        try:
            layers: List[LayerVersion] = await self.deadline.run(
                self.gateway.list_layer_versions(layer_name),
                target=target,
                operation="list layer versions",
            )
        except (PlatformError, DeadlineExceededError) as e:
            raise PruneError(target, "*", e) from e

        candidates = [layer for layer in layers if layer.arn not in referenced]
        doomed = select_prunable(candidates, retention)
        logger.info(
            "Layer %s: %d versions, %d in use, deleting %d",
            layer_name,
            len(layers),
            len(layers) - len(candidates),
            len(doomed),
        )

        removed: List[int] = []
        for layer in doomed:
            try:
                await self.deadline.run(
                    self.gateway.delete_layer_version(layer_name, layer.version),
                    target=target,
                    operation="delete layer version",
                )
            except (PlatformError, DeadlineExceededError) as e:
                raise PruneError(target, layer.version, e) from e
            logger.info("Deleted layer %s:%d", layer_name, layer.version)
            removed.append(layer.version)
        return tuple(removed)
