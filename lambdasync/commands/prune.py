"""CLI parser for the prune command."""

from __future__ import annotations

import argparse
import asyncio

from lambdasync.commands.common import build_gateway, deadline_seconds, load_config
from lambdasync.core import console
from lambdasync.core.config import DeploySettings
from lambdasync.core.reconciler import prune_only
from lambdasync.core.report import write_report


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "prune",
        help="Delete old unpinned versions according to Prune.RetentionCount",
    )
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, settings: DeploySettings) -> int:
    config = load_config(args)
    gateway = build_gateway(args, settings)
    report = asyncio.run(
        prune_only(gateway, config, deadline_seconds=deadline_seconds(args, settings))
    )

    if report.skipped:
        console.warning("Prune.RetentionCount is not set; nothing to do")
    else:
        for name, versions in report.deleted_versions.items():
            deleted = ", ".join(versions) if versions else "none"
            console.info(f"{name}: deleted {deleted}")
        if report.deleted_layer_versions:
            deleted = ", ".join(str(v) for v in report.deleted_layer_versions)
            console.info(f"layer {config.layer_name}: deleted {deleted}")

    if args.report:
        write_report(args.report, None, report)
    return 0
