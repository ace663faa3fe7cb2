"""Tests for metrics — object and character scoring, guards and era effects."""

import math

import pytest

from narrasim.core.metrics import (
    CharacterMetrics,
    ObjectMetrics,
    compute_dose,
    evaluate,
    metric_model,
    sigmoid,
)
from narrasim.core.model_spec import Era


class TestDose:
    def test_ratio(self):
        assert compute_dose(50, 100) == 0.5

    def test_zero_capacity_guard(self):
        assert compute_dose(50, 0) == 0.0
        assert compute_dose(50, 1e-9) == 0.0

    def test_object_dose_from_bindings(self):
        m = evaluate({"A*": 100, "E0": 150})
        assert m.dose == pytest.approx(1.5)
        assert m.risk_dry == pytest.approx(50 ** 2 * 1e-3)
        assert m.risk_decay == 0.0

    def test_object_risk_decay_under_capacity(self):
        m = evaluate({"A*": 100, "E": 40})
        assert m.risk_dry == 0.0
        assert m.risk_decay == pytest.approx(60 * 2e-3)


class TestObjectMetrics:
    def test_empty_params_use_defaults(self):
        m = evaluate({})
        assert m.dose == 0.0
        assert m.topo == 0.2
        assert 0 < m.S < 1
        assert m.influence is None

    def test_non_finite_inputs_fall_back(self):
        clean = evaluate({})
        dirty = evaluate({"E": float("nan"), "topo": float("inf"), "witness_count": "many", "hazard_rate": None})
        assert dirty == clean

    def test_witnesses_raise_pv(self):
        low = evaluate({"witness_count": 0})
        high = evaluate({"witness_count": 100})
        assert high.Pv > low.Pv
        assert high.S > low.S

    def test_costs_raise_vsigma_and_lower_s(self):
        cheap = evaluate({"A*": 100, "E": 100})
        costly = evaluate({"A*": 100, "E": 100, "exergy_cost": 2, "infra_footprint": 2, "hazard_rate": 0.8})
        assert costly.Vsigma > cheap.Vsigma
        assert costly.drift > cheap.drift
        assert costly.S < cheap.S

    def test_weight_override(self):
        base = evaluate({"exergy_cost": 1.0})
        heavier = evaluate({"exergy_cost": 1.0, "l1": 0.9})
        assert heavier.Vsigma == pytest.approx(base.Vsigma + 0.45)

    def test_formula_values(self):
        m = evaluate({"A*": 100, "E": 100, "topo": 0.5, "witness_count": 3})
        assert m.Pv == pytest.approx(0.6 * math.log1p(3) + 0.4 * 0.5)
        assert m.Vsigma == pytest.approx(0.0)
        assert m.drift == pytest.approx(0.0)
        assert m.S == pytest.approx(sigmoid(1.2 * m.Pv + 0.8 * 0.5 + 0.25 * math.log1p(3)))

    def test_huge_values_do_not_raise(self):
        m = evaluate({"E": 1e200, "A*": 1.0})
        assert 0 <= m.S <= 1

    def test_int_beyond_float_range_falls_back(self):
        assert evaluate({"witness_count": 10 ** 400}) == evaluate({})
        assert evaluate({"stress": -(10 ** 400)}, "character") == evaluate({}, "character")

    def test_earlier_eras_lower_stability(self):
        params = {"A*": 100, "E": 100, "witness_count": 50}
        current = evaluate(params, "object", Era.CURRENT)
        rector = evaluate(params, "object", Era.PRE_RECTOR)
        borders = evaluate(params, "object", Era.PRE_BORDERS)
        assert borders.S < rector.S < current.S

    def test_unknown_era_string_is_current(self):
        assert evaluate({"witness_count": 5}, "object", "someday") == evaluate({"witness_count": 5})


class TestCharacterMetrics:
    def test_monstro_threshold(self):
        m = evaluate({"stress": 0.8, "dark_exposure": 0.5, "loyalty": 0.2}, "character")
        assert m.monstro_pr > 0.6
        assert m.monstro_pr == pytest.approx(0.63)

    def test_loyalty_lowers_monstro(self):
        disloyal = evaluate({"stress": 0.5, "loyalty": 0.0}, "character")
        loyal = evaluate({"stress": 0.5, "loyalty": 1.0}, "character")
        assert loyal.monstro_pr < disloyal.monstro_pr

    def test_monstro_clamped(self):
        m = evaluate({"stress": 1, "dark_exposure": 1, "causal_penalty": 5, "loyalty": 0}, "character")
        assert m.monstro_pr == 1.0
        calm = evaluate({"stress": 0, "dark_exposure": 0, "loyalty": 1}, "character")
        assert calm.monstro_pr == 0.0

    def test_influence_formula(self):
        m = evaluate({"will": 1, "competence": 1, "resources": 1, "loyalty": 1}, "character")
        assert m.influence == pytest.approx(1.6)

    def test_stress_penalizes_pv(self):
        calm = evaluate({"stress": 0.0}, "character")
        tense = evaluate({"stress": 1.0}, "character")
        assert tense.Pv < calm.Pv
        assert tense.drift > calm.drift
        assert tense.S < calm.S

    def test_no_object_extras(self):
        m = evaluate({}, "character")
        assert m.risk_dry is None
        assert m.influence is not None


class TestModelSelection:
    @pytest.mark.parametrize("entity_type", ["object", "place", "protocol", "event", "document", "hybrid", "alien"])
    def test_object_like_types(self, entity_type):
        assert isinstance(metric_model(entity_type), ObjectMetrics)

    def test_character(self):
        model = metric_model("character")
        assert isinstance(model, CharacterMetrics)
        assert model.kind == "character"
