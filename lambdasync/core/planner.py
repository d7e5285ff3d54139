# Where: lambdasync/core/planner.py
# What: Build the deployment plan from declared and observed state.
# Why: Keep planning pure so it can be tested without a live platform.
from __future__ import annotations

from typing import Sequence

from lambdasync.core.config import FunctionSpec
from lambdasync.core.models import (
    DeploymentPlan,
    FunctionAction,
    LayerAction,
    ObservedFunctionState,
    ObservedLayerState,
)


def build_plan(
    specs: Sequence[FunctionSpec],
    observed_functions: Sequence[ObservedFunctionState],
    observed_layer: ObservedLayerState | None,
    fresh_fingerprint: str | None,
    *,
    layer_name: str | None = None,
) -> DeploymentPlan:
    """
    Decide one action per declared function and one action for the layer.

    A function without an observation is treated as absent. ``fresh_fingerprint``
    is None when the project declares no dependency manifest.
    """
    exists = {observed.name: observed.exists for observed in observed_functions}
    function_actions = tuple(
        (spec.name, FunctionAction.UPDATE if exists.get(spec.name) else FunctionAction.CREATE)
        for spec in specs
    )

    if fresh_fingerprint is None:
        return DeploymentPlan(function_actions=function_actions, layer_action=LayerAction.NONE)

    if observed_layer is not None and observed_layer.fingerprint == fresh_fingerprint:
        return DeploymentPlan(
            function_actions=function_actions,
            layer_action=LayerAction.REUSE,
            layer_name=layer_name,
            layer_fingerprint=fresh_fingerprint,
            layer_arn=observed_layer.arn,
        )

    return DeploymentPlan(
        function_actions=function_actions,
        layer_action=LayerAction.CREATE,
        layer_name=layer_name,
        layer_fingerprint=fresh_fingerprint,
    )
