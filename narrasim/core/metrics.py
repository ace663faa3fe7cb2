"""Metric Evaluator — parameter bindings → narrative-health metrics.

Every function here is total: missing or non-finite inputs fall back to the
defaults below, divisions and logs are guarded, nothing raises.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from functools import partial
from typing import Protocol

from scipy.special import expit

from narrasim.core.model_spec import Era, Metrics

EPS = 1e-6

# Collective memory is weaker in earlier eras.
MEMORY_MULTIPLIER = {Era.CURRENT: 1.0, Era.PRE_RECTOR: 0.7, Era.PRE_BORDERS: 0.4}

OBJECT_DEFAULTS = {
    "A*": 100.0,
    "E": 0.0,
    "exergy_cost": 0.0,
    "infra_footprint": 0.0,
    "hazard_rate": 0.0,
    "cvar": 0.0,
    "causal_penalty": 0.0,
    "topo": 0.2,
    "witness_count": 0.0,
    "R": 1.0,
    "l1": 0.45,
    "l2": 0.35,
    "l3": 0.35,
    "l4": 0.30,
    "l5": 0.35,
}

CHARACTER_DEFAULTS = {
    "will": 0.5,
    "competence": 0.5,
    "resources": 0.5,
    "loyalty": 0.5,
    "stress": 0.3,
    "dark_exposure": 0.2,
    "risk_tolerance": 0.5,
    "causal_penalty": 0.0,
    "infra_footprint": 0.0,
    "topo": 0.2,
    "witness_count": 0.0,
}

# Alternative spellings found in card files, checked in order.
_ALIASES = {
    "A*": ("A*", "A_star", "Astar"),
    "E": ("E", "E0"),
    "cvar": ("cvar", "cvar_alpha"),
    "topo": ("topo", "topo_class"),
}


def clamp(x: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, x))


def clamp01(x: float) -> float:
    return clamp(x, 0.0, 1.0)


def sigmoid(x: float) -> float:
    return float(expit(x))


def safe_log1p(x: float) -> float:
    return math.log1p(max(-0.999999, x))


def _num(params: Mapping[str, object], name: str, defaults: Mapping[str, float]) -> float:
    for key in _ALIASES.get(name, (name,)):
        value = params.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            value = float(value)
        except (TypeError, ValueError, OverflowError):
            continue
        if math.isfinite(value):
            return value
    return defaults[name]


def as_era(era: object) -> Era:
    try:
        return Era(era)
    except ValueError:
        return Era.CURRENT


def compute_dose(E: float, A: float) -> float:
    return E / A if A > EPS else 0.0


def compute_stability(
    Pv: float, Vsigma: float, drift: float, topo: float, witness: float, era: Era = Era.CURRENT
) -> float:
    mem = MEMORY_MULTIPLIER[as_era(era)]
    return sigmoid(1.2 * Pv - 1.1 * Vsigma - 0.9 * drift + 0.8 * topo + 0.25 * safe_log1p(witness) * mem)


class MetricModel(Protocol):
    kind: str

    def compute(self, params: Mapping[str, object], era: Era = Era.CURRENT) -> Metrics: ...


class ObjectMetrics:
    """Objects, places, protocols, events, documents: dose-driven scoring."""

    kind = "object"

    def compute(self, params: Mapping[str, object], era: Era = Era.CURRENT) -> Metrics:
        era = as_era(era)
        p = partial(_num, params, defaults=OBJECT_DEFAULTS)

        A, E = p("A*"), p("E")
        exergy, infra, hazard = p("exergy_cost"), p("infra_footprint"), p("hazard_rate")
        cvar, causal = p("cvar"), p("causal_penalty")
        topo, witness = p("topo"), p("witness_count")
        R = clamp01(p("R"))

        dose = compute_dose(E, A)
        dose_err = abs(dose - 1)
        excess = max(0.0, E - A)
        risk_dry = excess * excess * 1e-3
        risk_decay = max(0.0, A - E) * 2e-3

        Pv = 0.6 * safe_log1p(witness) + 0.4 * topo - 0.25 * dose_err - 0.1 * (1 - R)
        if era is Era.PRE_BORDERS:
            Pv *= 0.8

        Vsigma = (
            p("l1") * exergy
            + p("l2") * infra
            + 0.4 * hazard
            + p("l3") * cvar
            + p("l4") * causal
            + p("l5") * dose_err
            + 0.25 * (1 - R)
        )
        if era is Era.PRE_RECTOR:
            Vsigma *= 0.95

        drift = 0.5 * hazard + 0.25 * exergy + 0.2 * infra + 0.15 * dose_err
        S = compute_stability(Pv, Vsigma, drift, topo, witness, era)

        return Metrics(
            Pv=Pv, Vsigma=Vsigma, S=S, dose=dose, drift=drift, topo=topo,
            risk_dry=risk_dry, risk_decay=risk_decay,
        )


class CharacterMetrics:
    """Characters: influence and the risk of turning into a monster."""

    kind = "character"

    def compute(self, params: Mapping[str, object], era: Era = Era.CURRENT) -> Metrics:
        era = as_era(era)
        p = partial(_num, params, defaults=CHARACTER_DEFAULTS)

        will, competence, resources = p("will"), p("competence"), p("resources")
        loyalty = clamp01(p("loyalty"))
        stress = clamp01(p("stress"))
        dark = clamp01(p("dark_exposure"))
        risk = clamp01(p("risk_tolerance"))
        causal, infra = p("causal_penalty"), p("infra_footprint")
        topo, witness = p("topo"), p("witness_count")

        influence = (0.6 * will + 0.6 * competence + 0.4 * resources) * (0.7 + 0.3 * loyalty)
        Pv = influence * (0.8 + 0.2 * (1 - abs(risk - 0.5) * 2)) - 0.2 * stress
        Vsigma = 0.7 * stress + 0.5 * dark + 0.25 * causal + 0.15 * infra
        monstro_pr = clamp01(0.6 * stress + 0.4 * dark + 0.3 * causal - 0.25 * loyalty)
        drift = 0.6 * stress + 0.2 * abs(risk - 0.5)
        S = compute_stability(Pv, Vsigma, drift, topo, witness, era)

        dose = compute_dose(_num(params, "E", OBJECT_DEFAULTS), _num(params, "A*", OBJECT_DEFAULTS))

        return Metrics(
            Pv=Pv, Vsigma=Vsigma, S=S, dose=dose, drift=drift, topo=topo,
            influence=influence, monstro_pr=monstro_pr,
        )


_MODELS: dict[str, MetricModel] = {"object": ObjectMetrics(), "character": CharacterMetrics()}

# Every card type the content pipeline emits; anything else is scored as an object.
KIND_BY_TYPE = {
    "character": "character",
    "object": "object",
    "place": "object",
    "protocol": "object",
    "event": "object",
    "document": "object",
    "hybrid": "object",
}


def metric_model(entity_type: str) -> MetricModel:
    return _MODELS[KIND_BY_TYPE.get(entity_type, "object")]


def evaluate(params: Mapping[str, object], entity_type: str = "object", era: Era = Era.CURRENT) -> Metrics:
    """Score one parameter set for an entity type in a given era."""
    return metric_model(entity_type).compute(params, era)
