"""Intervention Scheduler — day-indexed events, shock expiry and the quarantine latch."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from pydantic import TypeAdapter, ValidationError

from narrasim.core.metrics import clamp01
from narrasim.core.model_spec import (
    AutoQuarantineAtS,
    BudgetCut,
    CausalSurgery,
    ExposurePlan,
    Intervention,
    PatchPlan,
    ReliabilityBoost,
    Shock,
    WitnessRally,
)
from narrasim.core.process import DoseController, SimulationState, level

_INTERVENTION = TypeAdapter(Intervention)


def parse_intervention(raw: Any) -> Intervention:
    """Validate one intervention entry. Raises pydantic.ValidationError."""
    return _INTERVENTION.validate_python(raw)


def _describe(raw: Any) -> str:
    if isinstance(raw, dict):
        return f"{raw.get('kind', '?')}@t={raw.get('t', '?')}"
    return type(raw).__name__


class InterventionScheduler:
    """Build once per run; `apply` before each day's step, `check_quarantine` after its metrics."""

    def __init__(
        self,
        interventions: Iterable[Any],
        days: int,
        controller: DoseController,
        warnings: list[str],
    ):
        self.controller = controller
        self.warnings = warnings
        self.by_day: dict[int, list[Intervention]] = defaultdict(list)

        for i, raw in enumerate(interventions):
            try:
                iv = parse_intervention(raw)
            except ValidationError as e:
                err = e.errors()[0]
                where = ".".join(str(p) for p in err["loc"])
                reason = f"{where}: {err['msg']}" if where else err["msg"]
                self.warnings.append(f"intervention #{i} ({_describe(raw)}) ignored: {reason}")
                continue
            if iv.t >= days:
                self.warnings.append(f"intervention #{i} ({iv.kind}@t={iv.t}) is past the last day and never fires")
            self.by_day[iv.t].append(iv)

    def apply(self, day: int, state: SimulationState) -> None:
        for iv in self.by_day.get(day, ()):
            self._apply_one(day, iv, state)
        self._expire(day, state)

    def _apply_one(self, day: int, iv: Intervention, state: SimulationState) -> None:
        match iv:
            case ExposurePlan():
                if iv.Astar is not None:
                    state.A = self.controller.bound(iv.Astar)
                if iv.v is not None:
                    state.v = iv.v
                if iv.q is not None:
                    state.q = iv.q
                if iv.rho is not None:
                    state.rho = iv.rho
            case PatchPlan(R=strength, s=skill):
                state.exergy = max(0.0, state.exergy - 0.2 * strength * skill)
                state.infra = max(0.0, state.infra - 0.05 * strength * skill)
                state.R = clamp01(state.R + 0.05 * strength * skill)
            case WitnessRally():
                state.Mw = level(state.Mw + iv.addMw)
                state.Topo = level(state.Topo + iv.addTopo)
            case Shock():
                state.Cvar = level(state.Cvar + iv.cvarBoost)
                expiry = day + iv.days
                state.expiries[expiry] = state.expiries.get(expiry, 0.0) + iv.cvarBoost
            case CausalSurgery():
                state.causal = max(0.0, state.causal + iv.deltaC)
            case ReliabilityBoost():
                state.R = clamp01(state.R + iv.dR)
            case BudgetCut():
                state.infra = max(0.0, state.infra + iv.dInfra)
                state.exergy = max(0.0, state.exergy + iv.dExergy)
            case AutoQuarantineAtS():
                pass  # evaluated by check_quarantine once the day's S is known

    def _expire(self, day: int, state: SimulationState) -> None:
        boost = state.expiries.pop(day, None)
        if boost is not None:
            state.Cvar = level(state.Cvar - boost)

    def check_quarantine(self, day: int, S: float, state: SimulationState) -> bool:
        """Latch quarantine if any of today's gates sees S below its threshold."""
        for iv in self.by_day.get(day, ()):
            if isinstance(iv, AutoQuarantineAtS) and S < iv.threshold:
                state.quarantined = True
        return state.quarantined

