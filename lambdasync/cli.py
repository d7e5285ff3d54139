#!/usr/bin/env python3
"""Serverless function reconciler CLI."""

from __future__ import annotations

import argparse
import sys

from lambdasync.commands import deploy, plan, prune
from lambdasync.core.config import DEFAULT_CONFIG_FILE, DeploySettings
from lambdasync.core.errors import DeployError
from lambdasync.core.logging_config import setup_logging


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than zero: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile declared serverless functions and their shared layer",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"Deploy document path, relative to --project-dir (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--project-dir",
        default=".",
        help="Project root holding function code and the dependency manifest",
    )
    parser.add_argument("--region", help="Platform region (default: AWS_REGION)")
    parser.add_argument("--access-key-id", help="Access key id (default: credential chain)")
    parser.add_argument("--secret-access-key", help="Secret access key")
    parser.add_argument("--profile", help="Named credentials profile")
    parser.add_argument("--endpoint-url", help="Override the platform endpoint URL")
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL or INFO)")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        help="Log format (default: LOG_FORMAT or text)",
    )
    parser.add_argument("--report", help="Write a JSON run report to this path")
    parser.add_argument(
        "--deadline",
        type=_positive_float,
        help="Overall deadline in seconds for remote waits (default: RUN_DEADLINE_SECONDS)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    deploy.register_parser(subparsers)
    plan.register_parser(subparsers)
    prune.register_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    try:
        settings = DeploySettings()
        setup_logging(
            level=args.log_level or settings.LOG_LEVEL,
            fmt=args.log_format or settings.LOG_FORMAT,
        )
        return int(args.func(args, settings))
    except DeployError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
