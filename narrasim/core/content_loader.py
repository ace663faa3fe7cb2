"""Content Loader — registry, entity card and scenario JSON files → schema objects."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from narrasim.core.model_spec import EntityDescriptor, Era, Registry, Scenario

# Card folders are plural, entity types singular.
SINGULAR_BY_GROUP = {
    "characters": "character",
    "objects": "object",
    "places": "place",
    "protocols": "protocol",
    "events": "event",
    "documents": "document",
    "hybrid": "hybrid",
}

_BRANCH_RE = re.compile(r"(?:^|/)(current|pre-borders|pre-rector)/([^/]+)/")


def _read_json(path: Path) -> Any:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Cannot load content from: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_registry(path: str | Path) -> Registry:
    return Registry.model_validate(_read_json(Path(path)))


def registry_for_branch(content_root: str | Path, branch: str = "current") -> Registry:
    """`models/<branch>/registry.json`, falling back to the `current` branch, then empty."""
    models_dir = Path(content_root) / "models"
    for candidate in (branch, Era.CURRENT.value):
        path = models_dir / candidate / "registry.json"
        if path.is_file():
            return load_registry(path)
    return Registry()


def load_entity(path: str | Path) -> EntityDescriptor:
    """Load a `<slug>.meta.json` card, inferring branch, type and slug from its path."""
    path = Path(path)
    raw = _read_json(path)

    m = _BRANCH_RE.search(path.as_posix())
    if m:
        raw.setdefault("branch", m.group(1))
        group = m.group(2).lower()
        if group in SINGULAR_BY_GROUP:
            raw.setdefault("type", SINGULAR_BY_GROUP[group])
    raw.setdefault("slug", path.name.removesuffix(".meta.json"))
    return EntityDescriptor.model_validate(raw)


def _entity_card_path(content_root: Path, branch: str, entity_type: str, slug: str) -> Path:
    group = next((g for g, t in SINGULAR_BY_GROUP.items() if t == entity_type), entity_type)
    return content_root / branch / group / f"{slug}.meta.json"


def load_scenario(source: str | Path, content_root: str | Path | None = None) -> Scenario:
    """Load a scenario file.

    A scenario may embed its `entity` or point at a card with
    `entityRef: {type, slug}`, resolved under `content_root`.
    """
    path = Path(source)
    raw = _read_json(path)
    raw.setdefault("slug", path.name.removesuffix(".json"))

    if "entity" not in raw and "entityRef" in raw:
        if content_root is None:
            raise FileNotFoundError(f"Scenario {path} references an entity card but no content root was given")
        ref = raw.pop("entityRef")
        branch = raw.get("branch", Era.CURRENT.value)
        card = _entity_card_path(Path(content_root), branch, ref["type"], ref["slug"])
        raw["entity"] = load_entity(card).model_dump(exclude_none=True)

    return Scenario.model_validate(raw)
