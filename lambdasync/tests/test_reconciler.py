import json

import pytest

from lambdasync.core.config import DeployConfig
from lambdasync.core.errors import ConfigError, PruneError
from lambdasync.core.models import FunctionAction, LayerAction
from lambdasync.core.reconciler import RunOptions, plan_deployment, prune_only, reconcile
from lambdasync.core.settle import RetryPolicy
from lambdasync.tests.fakes import FakeRunner, no_sleep


def _config(retention=None, include_layers=False):
    payload = {
        "Service": "svc",
        "Functions": {
            "api": {"FunctionName": "api", "Role": "arn:aws:iam::123456789012:role/api"},
        },
    }
    if retention is not None:
        payload["Prune"] = {"RetentionCount": retention, "IncludeLayers": include_layers}
    return DeployConfig.model_validate(payload)


def _options(project_dir, **fields):
    return RunOptions(project_dir=project_dir, policy=RetryPolicy(max_attempts=3, interval=0), **fields)


def _with_dependencies(project_dir):
    (project_dir / "package.json").write_text(
        json.dumps({"dependencies": {"left-pad": "^1.3.0"}}), encoding="utf-8"
    )


@pytest.mark.asyncio
async def test_first_run_creates_then_second_run_reuses_layer(fake_lambda, project_dir):
    _with_dependencies(project_dir)
    config = _config(retention=1)
    runner = FakeRunner()

    first = await reconcile(fake_lambda, config, _options(project_dir), runner=runner, sleep=no_sleep)
    second = await reconcile(fake_lambda, config, _options(project_dir), runner=runner, sleep=no_sleep)

    assert first.plan.action_for("api") is FunctionAction.CREATE
    assert first.plan.layer_action is LayerAction.CREATE
    assert second.plan.action_for("api") is FunctionAction.UPDATE
    assert second.plan.layer_action is LayerAction.REUSE
    assert len(runner.commands) == 1
    assert len(fake_lambda.layers["svc"]) == 1
    assert second.apply.functions[0].version == "2"
    assert second.prune.deleted_versions == {"api": ("1",)}


@pytest.mark.asyncio
async def test_skip_prune(fake_lambda, project_dir):
    result = await reconcile(
        fake_lambda, _config(retention=0), _options(project_dir, skip_prune=True), sleep=no_sleep
    )

    assert result.prune is None
    assert fake_lambda.called("list_versions") == []


@pytest.mark.asyncio
async def test_bad_manifest_fails_before_any_platform_call(fake_lambda, project_dir):
    (project_dir / "package.json").write_text("{", encoding="utf-8")

    with pytest.raises(ConfigError):
        await reconcile(fake_lambda, _config(), _options(project_dir), sleep=no_sleep)

    assert fake_lambda.calls == []


@pytest.mark.asyncio
async def test_plan_does_not_mutate(fake_lambda, project_dir):
    _with_dependencies(project_dir)

    plan, manifest = await plan_deployment(fake_lambda, _config(), project_dir)

    assert plan.layer_action is LayerAction.CREATE
    assert manifest.kind == "npm"
    assert {method for method, _ in fake_lambda.calls} == {
        "get_function_config",
        "list_latest_layer_version",
    }


@pytest.mark.asyncio
async def test_prune_failure_keeps_apply_report(fake_lambda, project_dir):
    fake_lambda.seed_function("api", versions=["1", "2"])
    fake_lambda.fail("delete_version", "api:1")

    with pytest.raises(PruneError) as excinfo:
        await reconcile(fake_lambda, _config(retention=1), _options(project_dir), sleep=no_sleep)

    assert excinfo.value.apply_report.applied() == ["api"]


@pytest.mark.asyncio
async def test_prune_only(fake_lambda):
    fake_lambda.seed_function("api", versions=["1", "2", "3"])

    report = await prune_only(fake_lambda, _config(retention=2))

    assert report.deleted_versions == {"api": ("1",)}
