"""Machine-readable results of apply and prune runs."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from lambdasync.core.models import DeploymentPlan, FunctionAction, LayerAction

REPORT_SCHEMA_VERSION = "1"


class FunctionStatus(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class FunctionResult:
    name: str
    action: FunctionAction
    status: FunctionStatus
    version: str | None = None
    phase: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ApplyReport:
    layer_action: LayerAction
    layer_arn: str | None
    functions: tuple[FunctionResult, ...] = ()

    @property
    def succeeded(self) -> bool:
        return all(result.status is FunctionStatus.APPLIED for result in self.functions)

    def applied(self) -> list[str]:
        return [r.name for r in self.functions if r.status is FunctionStatus.APPLIED]


@dataclass(frozen=True)
class PruneReport:
    deleted_versions: dict[str, tuple[str, ...]] = field(default_factory=dict)
    deleted_layer_versions: tuple[int, ...] = ()
    protected_layers: frozenset[str] = frozenset()
    skipped: bool = False


def report_to_dict(
    report: ApplyReport | None,
    prune: PruneReport | None = None,
    *,
    plan: DeploymentPlan | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"schema_version": REPORT_SCHEMA_VERSION}
    if plan is not None:
        payload["plan"] = {
            "functions": [
                {"name": name, "action": action.value} for name, action in plan.function_actions
            ],
            "layer_action": plan.layer_action.value,
            "layer_name": plan.layer_name,
            "layer_fingerprint": plan.layer_fingerprint,
            "layer_arn": plan.layer_arn,
        }
    if report is not None:
        payload["apply"] = {
            "succeeded": report.succeeded,
            "layer_action": report.layer_action.value,
            "layer_arn": report.layer_arn,
            "functions": [_jsonable(asdict(result)) for result in report.functions],
        }
    if prune is not None:
        payload["prune"] = {
            "skipped": prune.skipped,
            "deleted_versions": {k: list(v) for k, v in prune.deleted_versions.items()},
            "deleted_layer_versions": list(prune.deleted_layer_versions),
        }
    return payload


def write_report(
    path: Path,
    report: ApplyReport | None,
    prune: PruneReport | None = None,
    *,
    plan: DeploymentPlan | None = None,
) -> Path:
    """Write the run report as JSON so a follow-up run or CI step can inspect it."""
    target = Path(path).expanduser().resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        json.dumps(report_to_dict(report, prune, plan=plan), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    return target


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}
