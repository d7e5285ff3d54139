"""CLI parser for the deploy command."""

from __future__ import annotations

import argparse
import asyncio

from lambdasync.commands.common import (
    build_gateway,
    deadline_seconds,
    describe_plan,
    load_config,
    resolve_project_dir,
    retry_policy,
)
from lambdasync.core import console
from lambdasync.core.config import DeploySettings
from lambdasync.core.errors import ApplyError, PruneError
from lambdasync.core.reconciler import RunOptions, reconcile
from lambdasync.core.report import FunctionStatus, write_report
from lambdasync.core.runner import CommandRunner


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "deploy",
        help="Create or update declared functions, publish versions and prune old ones",
    )
    parser.add_argument(
        "--skip-prune",
        action="store_true",
        help="Do not delete old versions after a successful apply",
    )
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, settings: DeploySettings) -> int:
    project_dir = resolve_project_dir(args)
    config = load_config(args)
    gateway = build_gateway(args, settings)
    options = RunOptions(
        project_dir=project_dir,
        policy=retry_policy(settings),
        deadline_seconds=deadline_seconds(args, settings),
        npm_bin=settings.NPM_BIN,
        python_bin=settings.PYTHON_BIN,
        skip_prune=bool(args.skip_prune),
    )

    console.step(f"Deploying {config.service} ({len(config.functions)} functions)")
    try:
        result = asyncio.run(
            reconcile(gateway, config, options, runner=CommandRunner(printer=console.info))
        )
    except ApplyError as exc:
        if exc.report is not None:
            for item in exc.report.functions:
                if item.status is FunctionStatus.APPLIED:
                    console.success(f"{item.name}: version {item.version}")
                elif item.status is FunctionStatus.SKIPPED:
                    console.warning(f"{item.name}: skipped")
            if args.report:
                write_report(args.report, exc.report)
        raise
    except PruneError as exc:
        if args.report and exc.apply_report is not None:
            write_report(args.report, exc.apply_report)
        raise

    for line in describe_plan(result.plan):
        console.info(line)
    for item in result.apply.functions:
        console.success(f"{item.name}: version {item.version}")
    if result.prune is not None and not result.prune.skipped:
        for name, versions in result.prune.deleted_versions.items():
            if versions:
                console.info(f"{name}: deleted versions {', '.join(versions)}")
        if result.prune.deleted_layer_versions:
            deleted = ", ".join(str(v) for v in result.prune.deleted_layer_versions)
            console.info(f"layer {config.layer_name}: deleted versions {deleted}")

    if args.report:
        path = write_report(args.report, result.apply, result.prune)
        console.info(f"Report written to {path}")
    return 0
