"""Monte Carlo Runner — repeated seeded runs reduced to per-day percentile bands."""

from __future__ import annotations

import math
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from narrasim.core.model_spec import (
    DomainError,
    MonteCarloResult,
    PercentileBand,
    Registry,
    Scenario,
    SeriesPoint,
    SimulationRun,
)
from narrasim.core.simulator import simulate

QUANTILES = {"p10": 0.10, "p50": 0.50, "p90": 0.90}


def quantile(samples: Sequence[float], q: float) -> float:
    """Nearest-rank quantile without interpolation: sorted[floor(q·(n−1))]."""
    if not len(samples):
        return 0.0
    ordered = np.sort(np.asarray(samples, dtype=float))
    n = len(ordered)
    i = min(n - 1, max(0, math.floor(q * (n - 1))))
    return float(ordered[i])


def percentile_bands(runs: Sequence[SimulationRun], metric: str) -> PercentileBand:
    days = min(len(run.series) for run in runs)
    band: dict[str, list[float]] = {name: [] for name in QUANTILES}
    for day in range(days):
        values = (getattr(run.series[day], metric) for run in runs)
        samples = [x for x in values if x is not None]
        for name, q in QUANTILES.items():
            band[name].append(quantile(samples, q))
    return PercentileBand(**band)


def run_monte_carlo(
    scenario: Scenario,
    registry: Registry | None = None,
    repeats: int | None = None,
    metrics: Sequence[str] = ("S",),
    max_workers: int | None = None,
) -> MonteCarloResult:
    """Run `scenario` under seeds base_seed + i and band the chosen metrics.

    With a single repeat the plain series comes back and `bands` is None.
    Passing `max_workers` spreads runs over threads; results are identical.
    """
    if repeats is None:
        repeats = scenario.noise.repeats if scenario.noise else 1
    if repeats < 1:
        raise DomainError(f"repeats must be >= 1, got {repeats}")
    if scenario.days < 0:
        raise DomainError(f"days must be >= 0, got {scenario.days}")
    if isinstance(metrics, str):
        metrics = (metrics,)
    unknown = [m for m in metrics if m not in SeriesPoint.model_fields]
    if unknown:
        raise DomainError(f"cannot band unknown metrics: {', '.join(unknown)}")

    base_seed = scenario.noise.seed if scenario.noise else 1
    seeds = [base_seed + i for i in range(repeats)]

    if repeats == 1:
        run = simulate(scenario, registry, seeds[0])
        return MonteCarloResult(repeats=1, base_seed=base_seed, series=run.series, warnings=run.warnings)

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            runs = list(pool.map(lambda seed: simulate(scenario, registry, seed), seeds))
    else:
        runs = [simulate(scenario, registry, seed) for seed in seeds]

    bands = {metric: percentile_bands(runs, metric) for metric in metrics}
    return MonteCarloResult(
        repeats=repeats,
        base_seed=base_seed,
        series=runs[0].series,
        bands=bands,
        warnings=runs[0].warnings,
    )
