"""Shared helpers for turning CLI arguments into run inputs."""

from __future__ import annotations

import argparse
from pathlib import Path

from lambdasync.core.config import DeployConfig, DeploySettings, load_deploy_config
from lambdasync.core.gateway import LambdaGateway, create_lambda_client
from lambdasync.core.models import DeploymentPlan
from lambdasync.core.settle import RetryPolicy


def resolve_project_dir(args: argparse.Namespace) -> Path:
    return Path(args.project_dir).expanduser().resolve()


def load_config(args: argparse.Namespace) -> DeployConfig:
    config_path = Path(args.config).expanduser()
    if not config_path.is_absolute():
        config_path = resolve_project_dir(args) / config_path
    return load_deploy_config(config_path)


def build_gateway(args: argparse.Namespace, settings: DeploySettings) -> LambdaGateway:
    client = create_lambda_client(
        region=args.region or settings.AWS_REGION,
        access_key_id=args.access_key_id,
        secret_access_key=args.secret_access_key,
        profile=args.profile,
        endpoint_url=args.endpoint_url,
    )
    return LambdaGateway(client)


def retry_policy(settings: DeploySettings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.SETTLE_MAX_ATTEMPTS,
        interval=settings.SETTLE_INTERVAL_SECONDS,
    )


def deadline_seconds(args: argparse.Namespace, settings: DeploySettings) -> float | None:
    if args.deadline is not None:
        return args.deadline
    return settings.RUN_DEADLINE_SECONDS


def describe_plan(plan: DeploymentPlan) -> list[str]:
    lines = [f"{name}: {action.value}" for name, action in plan.function_actions]
    layer = f"layer: {plan.layer_action.value}"
    if plan.layer_name:
        layer += f" ({plan.layer_name})"
    if plan.layer_arn:
        layer += f" {plan.layer_arn}"
    lines.append(layer)
    return lines
