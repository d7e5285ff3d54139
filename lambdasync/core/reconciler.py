# Where: lambdasync/core/reconciler.py
# What: Run the collect -> plan -> apply -> prune phases for one service.
# Why: Keep phase ordering in one place; commands only parse arguments and print.
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

from lambdasync.core.apply_ops import ApplyEngine, ApplyOptions
from lambdasync.core.collector import StateCollector
from lambdasync.core.config import DeployConfig
from lambdasync.core.errors import PruneError
from lambdasync.core.gateway import PlatformGateway
from lambdasync.core.hashing import compute_layer_fingerprint
from lambdasync.core.manifest import DependencyManifest, load_dependency_manifest
from lambdasync.core.models import DeploymentPlan
from lambdasync.core.planner import build_plan
from lambdasync.core.pruner import Pruner
from lambdasync.core.report import ApplyReport, PruneReport
from lambdasync.core.runner import CommandRunner
from lambdasync.core.settle import Deadline, RetryPolicy

logger = logging.getLogger("lambdasync.reconciler")


@dataclass(frozen=True)
class RunOptions:
    project_dir: Path
    policy: RetryPolicy = RetryPolicy()
    deadline_seconds: float | None = None
    npm_bin: str = "npm"
    python_bin: str | None = None
    skip_prune: bool = False


@dataclass(frozen=True)
class RunResult:
    plan: DeploymentPlan
    apply: ApplyReport | None = None
    prune: PruneReport | None = None


async def plan_deployment(
    gateway: PlatformGateway,
    config: DeployConfig,
    project_dir: Path,
    *,
    deadline: Deadline | None = None,
) -> tuple[DeploymentPlan, DependencyManifest | None]:
    """Collect observed state and build the plan. Performs no mutation."""
    # Manifest problems are configuration errors and must surface before any remote call.
    manifest = load_dependency_manifest(project_dir)
    fingerprint = compute_layer_fingerprint(manifest.dependencies) if manifest else None
    layer_name = config.layer_name if manifest else None

    collector = StateCollector(gateway, deadline=deadline)
    collected = await collector.collect(config.function_specs, layer_name)
    plan = build_plan(
        config.function_specs,
        collected.functions,
        collected.layer,
        fingerprint,
        layer_name=layer_name,
    )
    logger.info(
        "Plan: %s; layer %s",
        ", ".join(f"{name}={action.value}" for name, action in plan.function_actions),
        plan.layer_action.value,
    )
    return plan, manifest


async def reconcile(
    gateway: PlatformGateway,
    config: DeployConfig,
    options: RunOptions,
    *,
    runner: CommandRunner | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RunResult:
    """
    Deploy the service: plan, apply, then prune when a retention policy is set.

    ApplyError propagates with the partial ApplyReport attached; pruning never
    runs after a failed apply.
    """
    deadline = Deadline(options.deadline_seconds)
    plan, manifest = await plan_deployment(
        gateway, config, options.project_dir, deadline=deadline
    )

    engine = ApplyEngine(
        gateway,
        ApplyOptions(
            project_dir=options.project_dir,
            ignore=config.package.ignore,
            manifest=manifest,
            policy=options.policy,
            npm_bin=options.npm_bin,
            python_bin=options.python_bin,
        ),
        runner=runner,
        deadline=deadline,
        sleep=sleep,
    )
    report = await engine.apply(plan, config.function_specs)

    if options.skip_prune:
        return RunResult(plan=plan, apply=report)

    pruner = Pruner(gateway, layer_name=config.layer_name, deadline=deadline)
    try:
        prune_report = await pruner.prune(config.function_specs, config.prune)
    except PruneError as e:
        raise PruneError(e.target, e.version, e.cause, apply_report=report) from e.cause
    return RunResult(plan=plan, apply=report, prune=prune_report)


async def prune_only(
    gateway: PlatformGateway,
    config: DeployConfig,
    *,
    deadline_seconds: float | None = None,
) -> PruneReport:
    pruner = Pruner(
        gateway, layer_name=config.layer_name, deadline=Deadline(deadline_seconds)
    )
    return await pruner.prune(config.function_specs, config.prune)
