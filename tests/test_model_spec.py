"""Tests for model_spec — schema parsing, aliases and defaults."""

import pytest
from pydantic import ValidationError

from narrasim.core.model_spec import (
    EntityDescriptor,
    Era,
    ExposurePlan,
    MonteCarloResult,
    ParamDef,
    PolicyConfig,
    Registry,
    Scenario,
)

REGISTRY_SPEC = {
    "models": {
        "object": {
            "params": {
                "A*": {"min": 10, "max": 1000, "step": 10, "label": "A*"},
                "E": {"min": 0, "max": 1000, "def": 50},
            },
        },
        "router": {"extends": "object", "params": {"q": {"min": 0, "max": 1}}},
    },
    "locks": {"object": {"hazard_rate": {"locked": True, "reason": "canon"}}},
}


def test_registry_parses():
    registry = Registry.model_validate(REGISTRY_SPEC)
    assert registry.models["router"].extends == "object"
    assert registry.locks["object"]["hazard_rate"].reason == "canon"


def test_param_def_accepts_def_alias():
    registry = Registry.model_validate(REGISTRY_SPEC)
    assert registry.models["object"].params["E"].default == 50
    assert registry.models["object"].params["A*"].default is None


def test_param_def_optional_fields():
    p = ParamDef(min=0, max=1)
    assert p.step is None
    assert p.label is None


def test_registry_json_round_trip():
    registry = Registry.model_validate(REGISTRY_SPEC)
    restored = Registry.model_validate_json(registry.model_dump_json())
    assert restored == registry


def test_scenario_defaults():
    scenario = Scenario()
    assert scenario.days == 30
    assert scenario.branch is Era.CURRENT
    assert scenario.noise is None
    assert scenario.policy == PolicyConfig()
    assert scenario.k.rho == 0.985


def test_scenario_keeps_raw_interventions():
    scenario = Scenario(interventions=[{"t": 1, "kind": "not_a_kind"}])
    assert scenario.interventions == [{"t": 1, "kind": "not_a_kind"}]


def test_scenario_rejects_unknown_branch():
    with pytest.raises(ValidationError):
        Scenario(branch="far-future")


def test_entity_descriptor_defaults():
    entity = EntityDescriptor()
    assert entity.type == "object"
    assert entity.param_bindings == {}
    assert entity.param_locked == []


def test_exposure_plan_astar_aliases():
    assert ExposurePlan.model_validate({"t": 0, "kind": "exposure_plan", "A*": 80}).Astar == 80
    assert ExposurePlan.model_validate({"t": 0, "kind": "exposure_plan", "Astar": 90}).Astar == 90


def test_exposure_plan_rejects_quality_above_one():
    with pytest.raises(ValidationError):
        ExposurePlan.model_validate({"t": 0, "kind": "exposure_plan", "q": 1.5})


def test_monte_carlo_result_bands_default():
    result = MonteCarloResult(repeats=1, base_seed=1, series=[])
    assert result.bands is None
    assert result.warnings == []
