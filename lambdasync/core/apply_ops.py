"""Apply a deployment plan to the platform."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Sequence, TypeVar

from lambdasync.core.concurrency import gather_or_cancel
from lambdasync.core.config import FunctionSpec
from lambdasync.core.errors import (
    ApplyError,
    DeadlineExceededError,
    PlatformError,
    RunnerError,
    SettleFailedError,
    SettleTimeoutError,
)
from lambdasync.core.gateway import PlatformGateway
from lambdasync.core.manifest import DependencyManifest
from lambdasync.core.models import DeploymentPlan, FunctionAction, LayerAction
from lambdasync.core.packaging import build_code_archive, build_layer
from lambdasync.core.report import ApplyReport, FunctionResult, FunctionStatus
from lambdasync.core.runner import CommandRunner
from lambdasync.core.settle import Deadline, RetryPolicy, wait_until_settled

logger = logging.getLogger("lambdasync.apply")

T = TypeVar("T")

# Always applied on create; declared overrides cannot change them.
CREATE_DEFAULTS: Dict[str, Any] = {"Publish": True, "PackageType": "Zip"}


@dataclass(frozen=True)
class ApplyOptions:
    project_dir: Path
    ignore: tuple[str, ...] = ()
    manifest: DependencyManifest | None = None
    policy: RetryPolicy = RetryPolicy()
    npm_bin: str = "npm"
    python_bin: str | None = None


class ApplyEngine:
    """
    Executes a DeploymentPlan.

    Layer resolution and code packaging run concurrently; functions are then
    applied one at a time in declaration order. The first failure stops the loop:
    functions already applied stay applied and the rest are reported as skipped.
    """

    def __init__(
        self,
        gateway: PlatformGateway,
        options: ApplyOptions,
        *,
        runner: CommandRunner | None = None,
        deadline: Deadline | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.options = options
        self.runner = runner or CommandRunner()
        self.deadline = deadline or Deadline.unbounded()
        self._sleep = sleep

    async def apply(self, plan: DeploymentPlan, specs: Sequence[FunctionSpec]) -> ApplyReport:
        specs_by_name = {spec.name: spec for spec in specs}
        missing = [name for name in plan.function_names if name not in specs_by_name]
        if missing:
            raise ValueError(f"plan references undeclared functions: {', '.join(missing)}")

        layer_task = asyncio.ensure_future(self._resolve_layer(plan))
        package_task = asyncio.ensure_future(self._package_code())
        try:
            resolved, archive = await gather_or_cancel(layer_task, package_task)
        except ApplyError as e:
            # A layer published before the packaging failure still exists.
            layer_arn = plan.layer_arn
            if not layer_task.cancelled() and layer_task.exception() is None:
                layer_arn = layer_task.result().layer_arn
            report = self._report(plan, layer_arn, [])
            raise ApplyError(e.target, e.phase, e.cause, report=report) from e.cause

        results: list[FunctionResult] = []
        for name, action in resolved.function_actions:
            spec = specs_by_name[name]
            logger.info("Applying %s (%s)", name, action.value, extra={"function_name": name})
            try:
                version = await self._apply_function(spec, action, resolved, archive)
            except ApplyError as e:
                logger.error(
                    "%s failed during %s: %s",
                    name,
                    e.phase,
                    e.cause,
                    extra={"function_name": name, "phase": e.phase},
                )
                results.append(
                    FunctionResult(
                        name=name,
                        action=action,
                        status=FunctionStatus.FAILED,
                        phase=e.phase,
                        error=str(e.cause),
                    )
                )
                report = self._report(resolved, resolved.layer_arn, results)
                raise ApplyError(e.target, e.phase, e.cause, report=report) from e.cause

            logger.info(
                "Published %s version %s", name, version, extra={"function_name": name}
            )
            results.append(
                FunctionResult(
                    name=name, action=action, status=FunctionStatus.APPLIED, version=version
                )
            )

        return self._report(resolved, resolved.layer_arn, results)

    async def _resolve_layer(self, plan: DeploymentPlan) -> DeploymentPlan:
        if plan.layer_action is LayerAction.NONE:
            return plan

        layer_name = plan.layer_name or "layer"
        if plan.layer_action is LayerAction.REUSE:
            logger.info("Reusing layer %s", plan.layer_arn)
            return plan

        manifest = self.options.manifest
        if manifest is None or plan.layer_fingerprint is None:
            raise ApplyError(
                f"layer {layer_name}",
                "layer",
                ValueError("layer creation planned without a dependency manifest"),
            )

        logger.info("Building layer %s from %s", layer_name, manifest.path.name)
        try:
            archive = await self.deadline.run(
                build_layer(
                    manifest,
                    self.runner,
                    npm_bin=self.options.npm_bin,
                    python_bin=self.options.python_bin,
                ),
                target=f"layer {layer_name}",
                operation="layer install",
            )
            published = await self.deadline.run(
                self.gateway.publish_layer_version(layer_name, plan.layer_fingerprint, archive),
                target=f"layer {layer_name}",
                operation="layer publish",
            )
        except (RunnerError, PlatformError, DeadlineExceededError, OSError) as e:
            raise ApplyError(f"layer {layer_name}", "layer", e) from e

        logger.info("Published layer %s", published.arn)
        return plan.resolve_layer(published.arn)

    async def _package_code(self) -> bytes:
        try:
            archive = await asyncio.to_thread(
                build_code_archive, self.options.project_dir, self.options.ignore
            )
        except OSError as e:
            raise ApplyError(str(self.options.project_dir), "package", e) from e
        logger.info("Packaged function code (%d bytes)", len(archive))
        return archive

    async def _apply_function(
        self,
        spec: FunctionSpec,
        action: FunctionAction,
        plan: DeploymentPlan,
        archive: bytes,
    ) -> str:
        name = spec.name
        layers = {"Layers": [plan.layer_arn]} if plan.layer_arn else {}

        if action is FunctionAction.CREATE:
            params = {**spec.overrides(), **layers, **CREATE_DEFAULTS, "FunctionName": name}
            await self._step(name, "create", self.gateway.create_function(params, archive))
            await self._settle(name)
        else:
            await self._step(
                name,
                "update-code",
                self.gateway.update_function_code(name, archive, spec.architectures),
            )
            await self._settle(name)
            overrides = {**spec.overrides(), **layers}
            await self._step(
                name, "update-config", self.gateway.update_function_config(name, overrides)
            )
            await self._settle(name)

        published = await self._step(name, "publish", self.gateway.publish_version(name))
        return published.version

    async def _step(self, name: str, phase: str, awaitable: Awaitable[T]) -> T:
        try:
            return await self.deadline.run(awaitable, target=name, operation=phase)
        except (PlatformError, DeadlineExceededError) as e:
            raise ApplyError(name, phase, e) from e

    async def _settle(self, name: str) -> None:
        try:
            await wait_until_settled(
                self.gateway,
                name,
                policy=self.options.policy,
                deadline=self.deadline,
                sleep=self._sleep,
            )
        except (SettleFailedError, SettleTimeoutError, PlatformError) as e:
            raise ApplyError(name, "settle", e) from e

    @staticmethod
    def _report(
        plan: DeploymentPlan, layer_arn: str | None, results: list[FunctionResult]
    ) -> ApplyReport:
        done = {result.name for result in results}
        skipped = [
            FunctionResult(name=name, action=action, status=FunctionStatus.SKIPPED)
            for name, action in plan.function_actions
            if name not in done
        ]
        return ApplyReport(
            layer_action=plan.layer_action,
            layer_arn=layer_arn,
            functions=tuple(results) + tuple(skipped),
        )
