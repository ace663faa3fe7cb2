"""Simulator — one deterministic, day-stepped run of a scenario."""

from __future__ import annotations

from collections.abc import Mapping

from narrasim.core.metrics import CHARACTER_DEFAULTS, metric_model
from narrasim.core.model_spec import DomainError, Registry, Scenario, SeriesPoint, SimulationRun
from narrasim.core.params import bind_params, explicit_defaults, schema_for
from narrasim.core.process import DoseController, ExposureProcess, SimulationState, finite
from narrasim.core.scheduler import InterventionScheduler

# State field -> binding names that seed it, first match wins.
_STATE_BINDINGS = {
    "E": ("E", "E0"),
    "A": ("A*", "A_star", "Astar"),
    "H": ("H",),
    "R": ("R", "reliability"),
    "Mw": ("Mw", "witness_count"),
    "Topo": ("topo", "topo_class"),
    "Cvar": ("cvar", "cvar_alpha"),
    "v": ("v", "views"),
    "q": ("q",),
    "rho": ("rho",),
    "exergy": ("exergy_cost",),
    "infra": ("infra_footprint",),
    "hazard": ("hazard_rate",),
    "causal": ("causal_penalty",),
}

# Stocks the character model reads; a character starts them at its own defaults.
_CHARACTER_STOCKS = {
    "Mw": "witness_count",
    "Topo": "topo",
    "causal": "causal_penalty",
    "infra": "infra_footprint",
}


def _seed_value(bindings: Mapping[str, float], names: tuple[str, ...]) -> float | None:
    for name in names:
        value = bindings.get(name)
        if value is not None:
            return value
    return None


def _seed(state: SimulationState, bindings: Mapping[str, float]) -> None:
    for attr, names in _STATE_BINDINGS.items():
        value = _seed_value(bindings, names)
        if value is not None:
            setattr(state, attr, finite(value, getattr(state, attr)))


def initial_state(
    scenario: Scenario,
    controller: DoseController,
    schema_defaults: Mapping[str, float] | None = None,
) -> SimulationState:
    """Kind defaults < explicit schema defaults < entity bindings < `scenario.state`."""
    state = SimulationState(rho=scenario.k.rho)
    if metric_model(scenario.entity.type).kind == "character":
        for attr, name in _CHARACTER_STOCKS.items():
            setattr(state, attr, CHARACTER_DEFAULTS[name])

    _seed(state, schema_defaults or {})
    _seed(state, scenario.entity.param_bindings)

    for attr, value in scenario.state.model_dump(exclude_none=True).items():
        setattr(state, attr, finite(value, getattr(state, attr)))

    state.A = controller.bound(state.A)
    state.q = min(1.0, max(0.0, state.q))
    state.R = min(1.0, max(0.0, state.R))
    return state


def metric_inputs(base: Mapping[str, float], state: SimulationState) -> dict[str, float]:
    """Entity bindings with the live simulation stocks written over them."""
    params = dict(base)
    params.update({
        "E": state.E,
        "A*": state.A,
        "exergy_cost": state.exergy,
        "infra_footprint": state.infra,
        "hazard_rate": state.hazard,
        "cvar": state.Cvar,
        "causal_penalty": state.causal,
        "topo": state.Topo,
        "witness_count": state.Mw,
        "R": state.R,
    })
    return params


def simulate(scenario: Scenario, registry: Registry | None = None, seed: int | None = None) -> SimulationRun:
    """Run `scenario` once. Pure given (scenario, registry, seed)."""
    if scenario.days < 0:
        raise DomainError(f"days must be >= 0, got {scenario.days}")

    if seed is None:
        seed = scenario.noise.seed if scenario.noise else 1

    warnings: list[str] = []
    registry = registry or Registry()
    schema = schema_for(scenario.entity, registry, warnings=warnings)
    base_params = bind_params(schema, scenario.entity.param_bindings)
    model = metric_model(scenario.entity.type)
    era = scenario.branch

    controller = DoseController(scenario.policy)
    process = ExposureProcess(scenario.k, controller, scenario.noise, seed)
    scheduler = InterventionScheduler(scenario.interventions, scenario.days, controller, warnings)
    state = initial_state(scenario, controller, explicit_defaults(schema))

    series: list[SeriesPoint] = []
    for day in range(scenario.days):
        scheduler.apply(day, state)
        inflow = process.step(state)
        metrics = model.compute(metric_inputs(base_params, state), era)
        scheduler.check_quarantine(day, metrics.S, state)

        series.append(SeriesPoint(
            day=day,
            **metrics.model_dump(),
            E=state.E,
            A=state.A,
            H=state.H,
            R=state.R,
            Mw=state.Mw,
            Topo=state.Topo,
            Cvar=state.Cvar,
            inflow=inflow,
            quarantined=state.quarantined,
        ))

    return SimulationRun(seed=seed, series=series, warnings=warnings)
