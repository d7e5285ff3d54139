"""CLI parser for the plan command."""

from __future__ import annotations

import argparse
import asyncio

from lambdasync.commands.common import (
    build_gateway,
    deadline_seconds,
    describe_plan,
    load_config,
    resolve_project_dir,
)
from lambdasync.core import console
from lambdasync.core.config import DeploySettings
from lambdasync.core.reconciler import plan_deployment
from lambdasync.core.report import write_report
from lambdasync.core.settle import Deadline


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "plan",
        help="Show what deploy would do without changing anything",
    )
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, settings: DeploySettings) -> int:
    config = load_config(args)
    gateway = build_gateway(args, settings)
    plan, _ = asyncio.run(
        plan_deployment(
            gateway,
            config,
            resolve_project_dir(args),
            deadline=Deadline(deadline_seconds(args, settings)),
        )
    )

    console.step(f"Plan for {config.service}")
    for line in describe_plan(plan):
        print(line)

    if args.report:
        path = write_report(args.report, None, plan=plan)
        console.info(f"Report written to {path}")
    return 0
