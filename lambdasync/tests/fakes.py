"""In-memory stand-ins for the platform gateway and the package installer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from lambdasync.core.config import FunctionSpec
from lambdasync.core.errors import PlatformError
from lambdasync.core.models import (
    LATEST,
    NOT_FOUND,
    Alias,
    Found,
    FunctionConfig,
    FunctionVersion,
    LayerVersion,
    ObservedLayerState,
)
from lambdasync.core.runner import CompletedCommand, RunnerError

ACCOUNT_PREFIX = "arn:aws:lambda:us-east-1:123456789012"


@dataclass
class FakeFunction:
    name: str
    params: Dict[str, Any] = field(default_factory=dict)
    code: bytes = b""
    layers: tuple[str, ...] = ()
    versions: List[FunctionVersion] = field(default_factory=list)
    aliases: List[Alias] = field(default_factory=list)

    @property
    def arn(self) -> str:
        return f"{ACCOUNT_PREFIX}:function:{self.name}"


class FakeLambda:
    """In-memory PlatformGateway that records every call."""

    def __init__(self) -> None:
        self.functions: Dict[str, FakeFunction] = {}
        self.layers: Dict[str, List[LayerVersion]] = {}
        self.calls: List[tuple[str, str]] = []
        self.failures: Dict[tuple[str, str], Exception] = {}
        self.polls: Dict[str, List[FunctionConfig]] = {}
        self.delays: Dict[str, float] = {}
        self.completed: List[str] = []
        self._next_version: Dict[str, int] = {}

    # -- test helpers -------------------------------------------------------

    def fail(self, method: str, target: str, exc: Exception | None = None) -> None:
        self.failures[(method, target)] = exc or PlatformError(
            method, target, "ServiceException", "boom"
        )

    def script_polls(self, name: str, *states: tuple[str | None, str | None, str | None]) -> None:
        """Queue (State, LastUpdateStatus, LastUpdateStatusReason) answers for settle polls."""
        self.polls[name] = [
            FunctionConfig(
                name=name,
                state=state,
                last_update_status=status,
                last_update_status_reason=reason,
            )
            for state, status, reason in states
        ]

    def seed_function(
        self,
        name: str,
        versions: Sequence[str] = (),
        aliases: Optional[Dict[str, str]] = None,
        layers: tuple[str, ...] = (),
    ) -> FakeFunction:
        fn = FakeFunction(name=name, layers=layers)
        fn.versions = [FunctionVersion(version=v, arn=f"{fn.arn}:{v}", layers=layers) for v in versions]
        fn.aliases = [Alias(name=a, function_version=v) for a, v in (aliases or {}).items()]
        self.functions[name] = fn
        numeric = [int(v) for v in versions if v.isdigit()]
        self._next_version[name] = max(numeric, default=0) + 1
        return fn

    def seed_layer(self, layer_name: str, fingerprints: Sequence[str]) -> List[LayerVersion]:
        for fingerprint in fingerprints:
            self._add_layer_version(layer_name, fingerprint)
        return self.layers[layer_name]

    def called(self, method: str) -> List[str]:
        return [target for name, target in self.calls if name == method]

    def _record(self, method: str, target: str) -> None:
        self.calls.append((method, target))
        exc = self.failures.get((method, target))
        if exc is not None:
            raise exc

    def _add_layer_version(self, layer_name: str, fingerprint: str) -> LayerVersion:
        existing = self.layers.setdefault(layer_name, [])
        number = existing[-1].version + 1 if existing else 1
        layer = LayerVersion(
            version=number,
            arn=f"{ACCOUNT_PREFIX}:layer:{layer_name}:{number}",
            description=fingerprint,
        )
        existing.append(layer)
        return layer

    def _config(self, fn: FakeFunction) -> FunctionConfig:
        return FunctionConfig(
            name=fn.name,
            arn=fn.arn,
            state="Active",
            last_update_status="Successful",
            layers=fn.layers,
        )

    # -- PlatformGateway ----------------------------------------------------

    async def get_function_config(self, name: str):
        self._record("get_function_config", name)
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        self.completed.append(name)
        queued = self.polls.get(name)
        if queued:
            return Found(queued.pop(0))
        fn = self.functions.get(name)
        if fn is None:
            return NOT_FOUND
        return Found(self._config(fn))

    async def create_function(self, params: Dict[str, Any], archive: bytes) -> FunctionConfig:
        name = params["FunctionName"]
        self._record("create_function", name)
        fn = FakeFunction(name=name, params=dict(params), code=archive)
        fn.layers = tuple(params.get("Layers", ()))
        self.functions[name] = fn
        self._next_version.setdefault(name, 1)
        return self._config(fn)

    async def update_function_code(self, name, archive, architectures=None) -> FunctionConfig:
        self._record("update_function_code", name)
        fn = self.functions[name]
        fn.code = archive
        return self._config(fn)

    async def update_function_config(self, name, overrides) -> FunctionConfig:
        self._record("update_function_config", name)
        fn = self.functions[name]
        fn.params.update(overrides)
        if "Layers" in overrides:
            fn.layers = tuple(overrides["Layers"])
        return self._config(fn)

    async def publish_version(self, name: str) -> FunctionVersion:
        self._record("publish_version", name)
        fn = self.functions[name]
        number = self._next_version.get(name, 1)
        self._next_version[name] = number + 1
        version = FunctionVersion(version=str(number), arn=f"{fn.arn}:{number}", layers=fn.layers)
        fn.versions.append(version)
        return version

    async def list_versions(self, name: str) -> List[FunctionVersion]:
        self._record("list_versions", name)
        fn = self.functions[name]
        latest = FunctionVersion(version=LATEST, arn=f"{fn.arn}:{LATEST}", layers=fn.layers)
        return [latest, *fn.versions]

    async def list_aliases(self, name: str) -> List[Alias]:
        self._record("list_aliases", name)
        return list(self.functions[name].aliases)

    async def delete_version(self, name: str, version: str) -> None:
        self._record("delete_version", f"{name}:{version}")
        fn = self.functions[name]
        fn.versions = [v for v in fn.versions if v.version != version]

    async def list_latest_layer_version(self, layer_name: str):
        self._record("list_latest_layer_version", layer_name)
        versions = self.layers.get(layer_name)
        if not versions:
            return NOT_FOUND
        newest = versions[-1]
        return Found(
            ObservedLayerState(
                fingerprint=newest.description, arn=newest.arn, version=newest.version
            )
        )

    async def publish_layer_version(self, layer_name, fingerprint, archive) -> LayerVersion:
        self._record("publish_layer_version", layer_name)
        return self._add_layer_version(layer_name, fingerprint)

    async def list_layer_versions(self, layer_name: str) -> List[LayerVersion]:
        self._record("list_layer_versions", layer_name)
        return list(self.layers.get(layer_name, []))

    async def delete_layer_version(self, layer_name: str, version: int) -> None:
        self._record("delete_layer_version", f"{layer_name}:{version}")
        self.layers[layer_name] = [v for v in self.layers[layer_name] if v.version != version]


@dataclass
class FakeRunner:
    """Stands in for the package installer; drops one file into the install target."""

    fail: bool = False
    delay: float = 0.0

    def __post_init__(self) -> None:
        self.commands: list[list[str]] = []
        self.cwds: list[Path | None] = []

    def emit(self, message: str) -> None:
        del message

    def require_command(self, command: str) -> str:
        return command

    async def run(self, cmd, *, cwd=None, env=None, check=True) -> CompletedCommand:
        del env, check
        command = [str(token) for token in cmd]
        self.commands.append(command)
        self.cwds.append(cwd)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RunnerError(f"command failed with exit code 1: {' '.join(command)}")
        if cwd is not None:
            installed = Path(cwd) / "node_modules" / "left-pad"
            installed.mkdir(parents=True, exist_ok=True)
            (installed / "index.js").write_text("module.exports = pad;\n", encoding="utf-8")
        return CompletedCommand(tuple(command), 0, "")


def make_spec(name: str, **fields: Any) -> FunctionSpec:
    payload = {"FunctionName": name, "Role": "arn:aws:iam::123456789012:role/deploy"}
    payload.update(fields)
    return FunctionSpec.model_validate(payload)


async def no_sleep(_: float) -> None:
    return None

