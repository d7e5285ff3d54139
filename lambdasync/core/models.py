# Where: lambdasync/core/models.py
# What: Value types shared by the collector, planner, apply engine and pruner.
# Why: Keep run state explicit and immutable instead of fields on a shared client.
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")

LATEST = "$LATEST"


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


class _NotFound:
    _instance: "_NotFound | None" = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()

Lookup = Union[Found[T], _NotFound]


class FunctionAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class LayerAction(str, Enum):
    NONE = "none"
    REUSE = "reuse"
    CREATE = "create"


@dataclass(frozen=True)
class FunctionConfig:
    """Point-in-time snapshot of a function's configuration on the platform."""

    name: str
    arn: str = ""
    state: str | None = None
    last_update_status: str | None = None
    last_update_status_reason: str | None = None
    layers: tuple[str, ...] = ()


@dataclass(frozen=True)
class ObservedFunctionState:
    name: str
    exists: bool
    config: FunctionConfig | None = None


@dataclass(frozen=True)
class ObservedLayerState:
    fingerprint: str
    arn: str
    version: int


@dataclass(frozen=True)
class FunctionVersion:
    version: str
    arn: str = ""
    layers: tuple[str, ...] = ()


@dataclass(frozen=True)
class Alias:
    name: str
    function_version: str
    additional_versions: tuple[str, ...] = ()

    def referenced_versions(self) -> set[str]:
        return {self.function_version, *self.additional_versions}


@dataclass(frozen=True)
class LayerVersion:
    version: int
    arn: str
    description: str = ""


@dataclass(frozen=True)
class DeploymentPlan:
    """Snapshot plan for one run; never re-evaluated once built."""

    function_actions: tuple[tuple[str, FunctionAction], ...]
    layer_action: LayerAction = LayerAction.NONE
    layer_name: str | None = None
    layer_fingerprint: str | None = None
    layer_arn: str | None = None

    def action_for(self, function_name: str) -> FunctionAction:
        for name, action in self.function_actions:
            if name == function_name:
                return action
        raise KeyError(function_name)

    @property
    def function_names(self) -> list[str]:
        return [name for name, _ in self.function_actions]

    def resolve_layer(self, arn: str) -> DeploymentPlan:
        return replace(self, layer_arn=arn)
