"""Eligibility — named scenario fitness scores read from Metrics + raw bindings."""

from __future__ import annotations

import math
from collections.abc import Mapping

from pydantic import BaseModel

from narrasim.core.metrics import KIND_BY_TYPE, clamp01
from narrasim.core.model_spec import Metrics, Registry

# Parameters worth showing next to each scenario, per scoring family.
RELEVANT_PARAMS = {
    "character": {
        "negotiation": ["will", "competence", "resources", "loyalty", "stress", "risk_tolerance"],
        "repair_nomonstr": ["stress", "risk_tolerance", "mandate_power", "resources", "topo", "dark_exposure"],
        "incident_localize": ["topo", "resources", "mandate_power", "competence", "risk_tolerance"],
    },
    "object": {
        "negotiation": ["witness_count", "topo", "q", "causal_penalty"],
        "repair_nomonstr": ["E", "A*", "hazard_rate", "exergy_cost", "infra_footprint", "cvar_alpha"],
        "incident_localize": ["topo", "rho", "causal_penalty", "hazard_rate"],
    },
}


class EligibilityItem(BaseModel):
    key: str
    label: str
    ok: bool
    score: float  # 0..1
    why: str
    inputs: list[str] = []  # parameters that move this score


def near(x: float, target: float, tol: float) -> float:
    """1 at target, falling linearly to 0 at |x - target| >= tol."""
    return clamp01(1 - abs(x - target) / max(tol, 1e-9))


def prefer_high(x: float, knee: float = 0.6) -> float:
    return clamp01((x - knee) / max(1 - knee, 1e-9))


def prefer_low(x: float, knee: float = 0.4) -> float:
    return clamp01((knee - x) / max(knee, 1e-9))


def relevant_params(entity_type: str, scenario: str) -> list[str]:
    return list(RELEVANT_PARAMS[KIND_BY_TYPE.get(entity_type, "object")].get(scenario, []))


def _num(source: Mapping[str, object], key: str, default: float) -> float:
    value = source.get(key)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return default
    try:
        value = float(value)
    except OverflowError:
        return default
    return value if math.isfinite(value) else default


def _item(key: str, label: str, parts: list[float], why: str, pass_min: float, registry: Registry | None) -> EligibilityItem:
    if registry is not None:
        override = registry.eligibility.get(key, {}).get("pass_min")
        if isinstance(override, (int, float)) and not isinstance(override, bool):
            pass_min = float(override)
    score = clamp01(sum(parts) / len(parts))
    return EligibilityItem(key=key, label=label, ok=score >= pass_min, score=score, why=why)


def _character(m: dict, p: Mapping[str, object], registry: Registry | None) -> list[EligibilityItem]:
    stress = _num(p, "stress", 0.3)
    dark = _num(p, "dark_exposure", 0.2)
    will, comp, res = _num(p, "will", 0.5), _num(p, "competence", 0.5), _num(p, "resources", 0.5)
    loyalty = _num(p, "loyalty", 0.5)
    influence = _num(m, "influence", (0.6 * will + 0.6 * comp + 0.4 * res) * (0.7 + 0.3 * loyalty))
    monstro = _num(m, "monstro_pr", clamp01(0.6 * stress + 0.4 * dark))
    Pv, Vs, S, drift = m["Pv"], m["Vsigma"], m["S"], m["drift"]
    topo = _num(m, "topo", _num(p, "topo", 0.0))

    return [
        _item(
            "negotiation", "Negotiation",
            [prefer_high(Pv, 0.6), prefer_high(influence, 0.6), prefer_high(S, 0.5),
             prefer_low(monstro, 0.3), prefer_low(stress, 0.5)],
            f"Pv={Pv:.2f}, Infl={influence:.2f}, S={S:.2f}, mon={monstro:.2f}, stress={stress:.2f}",
            0.55, registry,
        ),
        _item(
            "repair_nomonstr", "Repair without a monster",
            [prefer_low(Vs, 0.4), prefer_low(monstro, 0.25), prefer_low(stress, 0.4), prefer_high(S, 0.5)],
            f"Vσ={Vs:.2f}, mon={monstro:.2f}, stress={stress:.2f}, S={S:.2f}",
            0.55, registry,
        ),
        _item(
            "incident_localize", "Incident localization",
            [prefer_low(drift, 0.3), prefer_high(topo, 0.6), prefer_high(S, 0.5)],
            f"drift={drift:.2f}, topo={topo:.2f}, S={S:.2f}",
            0.55, registry,
        ),
    ]


def _object(m: dict, p: Mapping[str, object], registry: Registry | None) -> list[EligibilityItem]:
    hazard = _num(p, "hazard_rate", 0.0)
    exergy = _num(p, "exergy_cost", 0.0)
    infra = _num(p, "infra_footprint", 0.0)
    witnesses = _num(p, "witness_count", 0.0)
    Vs, S, drift, dose = m["Vsigma"], m["S"], m["drift"], m["dose"]
    topo = _num(m, "topo", _num(p, "topo", 0.0))

    crowd_penalty = clamp01(1 - witnesses / 300) if hazard > 0.35 else 1.0
    crowd = clamp01((prefer_low(hazard, 0.35) + prefer_high(S, 0.5)) * 0.5 * crowd_penalty)

    return [
        _item(
            "deploy_stable", "Stable deployment",
            [near(dose, 1.0, 0.15), prefer_low(Vs, 0.4), prefer_low(hazard, 0.4)],
            f"dose={dose:.2f}, Vσ={Vs:.2f}, hazard={hazard:.2f}",
            0.55, registry,
        ),
        _item(
            "low_footprint", "Low infrastructure footprint",
            [prefer_low(exergy, 0.4), prefer_low(infra, 0.4)],
            f"exergy={exergy:.2f}, infra={infra:.2f}",
            0.6, registry,
        ),
        _item(
            "crowd_safe", "Crowd safe",
            [crowd],
            f"hazard={hazard:.2f}, S={S:.2f}, witnesses={witnesses:.0f}",
            0.55, registry,
        ),
        _item(
            "incident_localize", "Incident localization",
            [prefer_low(drift, 0.3), prefer_high(topo, 0.6), near(dose, 1.0, 0.2)],
            f"drift={drift:.2f}, topo={topo:.2f}, dose={dose:.2f}",
            0.55, registry,
        ),
    ]


def eligibility(
    entity_type: str,
    metrics: Metrics,
    params: Mapping[str, object],
    registry: Registry | None = None,
) -> list[EligibilityItem]:
    """Score every scenario family that applies to `entity_type`.

    A registry may raise or lower a pass mark through
    `eligibility.<key>.pass_min`.
    """
    m = metrics.model_dump()
    if KIND_BY_TYPE.get(entity_type, "object") == "character":
        items = _character(m, params, registry)
    else:
        items = _object(m, params, registry)
    for item in items:
        item.inputs = relevant_params(entity_type, item.key)
    return items
