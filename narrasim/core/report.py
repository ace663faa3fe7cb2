"""Report — series JSON and a markdown simulation summary."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from narrasim.core.eligibility import EligibilityItem
from narrasim.core.model_spec import MonteCarloResult, Scenario

_COLUMNS = ["day", "S", "Pv", "Vsigma", "dose", "E", "A", "R", "Cvar"]


def write_series(result: MonteCarloResult, output_dir: Path) -> Path:
    """Write series.json (and bands when present) for charting."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "series.json"
    path.write_text(json.dumps(result.model_dump(mode="json"), indent=2) + "\n")
    return path


def write_report(
    scenario: Scenario,
    result: MonteCarloResult,
    output_dir: Path,
    eligibility: list[EligibilityItem] | None = None,
    locked: Iterable[str] = (),
) -> Path:
    """Write simulation_report.md to the output directory."""
    quarantine_day = next((p.day for p in result.series if p.quarantined), None)
    lines = [
        f"# Simulation Report: {scenario.title or scenario.slug or 'untitled'}",
        f"**Entity:** {scenario.entity.type} ({scenario.entity.model_ref or scenario.entity.type})",
        f"**Era:** {scenario.branch.value}",
        f"**Days:** {scenario.days}",
        f"**Runs:** {result.repeats} (seeds {result.base_seed}..{result.base_seed + result.repeats - 1})",
        f"**Quarantine:** {'latched on day ' + str(quarantine_day) if quarantine_day is not None else 'not triggered'}",
        f"**Locked:** {', '.join(sorted(locked)) or 'none'}",
        "",
        "## Series",
        "",
        "| " + " | ".join(_COLUMNS) + " |",
        "|" + "|".join("---" for _ in _COLUMNS) + "|",
    ]
    for point in result.series:
        row = point.model_dump()
        cells = [str(row["day"])] + [f"{row[c]:.4g}" for c in _COLUMNS[1:]]
        lines.append("| " + " | ".join(cells) + " |")

    if result.bands:
        lines.extend(["", "## Percentile Bands", ""])
        for metric, band in result.bands.items():
            if not band.p50:
                continue
            lines.append(
                f"- **{metric}** final day: p10={band.p10[-1]:.4g}, "
                f"p50={band.p50[-1]:.4g}, p90={band.p90[-1]:.4g}"
            )

    if eligibility:
        lines.extend(["", "## Eligibility (final day)", "", "| Scenario | Score | Status | Why | Inputs |", "|---|---|---|---|---|"])
        for item in eligibility:
            lines.append(f"| {item.label} | {item.score:.2f} | {'OK' if item.ok else 'NO'} | {item.why} | {', '.join(item.inputs) or '-'} |")

    if result.warnings:
        lines.extend(["", "## Warnings", ""])
        lines.extend(f"- {w}" for w in result.warnings)

    path = Path(output_dir) / "simulation_report.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n")
    return path
