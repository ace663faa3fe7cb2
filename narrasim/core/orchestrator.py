"""Orchestrator — wires loader, runner and report, and provides the CLI entry point."""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

from narrasim.core.content_loader import load_registry, load_scenario, registry_for_branch
from narrasim.core.eligibility import eligibility
from narrasim.core.model_spec import Metrics, MonteCarloResult, Registry, Scenario
from narrasim.core.monte_carlo import run_monte_carlo
from narrasim.core.params import locked_params, materialize_params, schema_for, tune_params
from narrasim.core.report import write_report, write_series


def _slugify(source: str) -> str:
    """Convert a scenario title or path into a safe directory name."""
    name = Path(source).name.removesuffix(".json") if source.endswith(".json") else source
    name = re.sub(r"[^\w\-.]", "_", name)
    return name[:80]


def _log(msg: str) -> None:
    print(f"[narrasim] {msg}", flush=True)


def apply_overrides(scenario: Scenario, registry: Registry, overrides: dict[str, float]) -> tuple[Scenario, list[str]]:
    """Tune the entity's bindings like the card sliders do: clamped, locked names skipped."""
    warnings: list[str] = []
    entity = scenario.entity
    bindings = tune_params(
        entity.param_bindings,
        schema_for(entity, registry),
        overrides,
        locked=locked_params(entity, registry),
        warnings=warnings,
    )
    entity = entity.model_copy(update={"param_bindings": bindings})
    return scenario.model_copy(update={"entity": entity}), warnings


def _parse_override(text: str) -> tuple[str, float]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got '{text}'")
    try:
        return name.strip(), float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a number in '{text}'") from None


def final_eligibility(scenario: Scenario, registry: Registry, result: MonteCarloResult):
    if not result.series:
        return []
    last = result.series[-1]
    params = materialize_params(scenario.entity, registry)
    params.update({"E": last.E, "A*": last.A})
    metrics = Metrics.model_validate(last.model_dump(include=set(Metrics.model_fields)))
    return eligibility(scenario.entity.type, metrics, params, registry)


def run_pipeline(
    scenario_source: str,
    output_base: str = "output",
    registry_path: str | None = None,
    content_root: str | None = None,
    repeats: int | None = None,
    seed: int | None = None,
    workers: int | None = None,
    overrides: dict[str, float] | None = None,
) -> Path:
    """Run one scenario file end to end: load → simulate → write artifacts.

    Returns the output directory path.
    """
    # 1. Load scenario
    _log(f"Loading scenario: {scenario_source}")
    scenario = load_scenario(scenario_source, content_root)
    _log(f"Scenario '{scenario.title or scenario.slug}': {scenario.days} days, "
         f"{len(scenario.interventions)} interventions, entity type '{scenario.entity.type}'")

    if seed is not None:
        if scenario.noise is None:
            _log("Scenario has no noise block; --seed has no effect")
        else:
            scenario = scenario.model_copy(update={"noise": scenario.noise.model_copy(update={"seed": seed})})

    # 2. Load registry
    if registry_path:
        registry = load_registry(registry_path)
    elif content_root:
        registry = registry_for_branch(content_root, scenario.branch.value)
    else:
        registry = Registry()
    _log(f"Registry: {len(registry.models)} models")

    if overrides:
        scenario, override_warnings = apply_overrides(scenario, registry, overrides)
        for warning in override_warnings:
            _log(f"warning: {warning}")
        _log(f"Applied {len(overrides) - len(override_warnings)} parameter override(s)")

    # 3. Simulate
    _log("Running simulation...")
    result = run_monte_carlo(scenario, registry, repeats=repeats, max_workers=workers)
    _log(f"Completed {result.repeats} run(s) of {len(result.series)} days")
    for warning in result.warnings:
        _log(f"warning: {warning}")

    # 4. Write artifacts
    output_dir = Path(output_base) / _slugify(scenario.slug or scenario.title or scenario_source)
    write_series(result, output_dir)
    write_report(
        scenario,
        result,
        output_dir,
        final_eligibility(scenario, registry, result),
        locked=locked_params(scenario.entity, registry),
    )
    _log("Simulation report written")

    _log(f"Done! Output: {output_dir}")
    return output_dir


def main() -> None:
    parser = argparse.ArgumentParser(
        description="narrasim — simulate narrative entities under scheduled interventions",
    )
    parser.add_argument("--scenario", required=True, help="Path to a scenario JSON file")
    parser.add_argument("--registry", default=None, help="Path to a model registry JSON file")
    parser.add_argument(
        "--content-root",
        default=None,
        help="Content directory holding models/<branch>/registry.json and entity cards",
    )
    parser.add_argument("--repeats", type=int, default=None, help="Monte Carlo repeats (default: scenario noise.repeats)")
    parser.add_argument("--seed", type=int, default=None, help="Base seed override")
    parser.add_argument("--workers", type=int, default=None, help="Threads for Monte Carlo runs")
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        type=_parse_override,
        metavar="NAME=VALUE",
        help="Override an entity parameter (repeatable; clamped to its range, locked params ignored)",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Base output directory (default: output/)",
    )
    args = parser.parse_args()

    try:
        output_dir = run_pipeline(
            args.scenario,
            args.output_dir,
            registry_path=args.registry,
            content_root=args.content_root,
            repeats=args.repeats,
            seed=args.seed,
            workers=args.workers,
            overrides=dict(args.overrides),
        )
        print(f"\nSeries ready: {output_dir / 'series.json'}")
    except Exception as e:
        print(f"\n[narrasim] ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
