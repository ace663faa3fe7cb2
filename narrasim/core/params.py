"""Parameter Resolver — registry schemas through `extends` chains, then concrete bindings."""

from __future__ import annotations

from collections.abc import Iterable

from narrasim.core.model_spec import EntityDescriptor, ParamDef, Registry

# Used when the registry has no schema for an entity at all.
DEFAULT_SCHEMAS: dict[str, dict[str, ParamDef]] = {
    "object": {
        "A*": ParamDef(min=10, max=1000, step=10, label="A*"),
        "E": ParamDef(min=0, max=1000, step=10, label="E"),
        "exergy_cost": ParamDef(min=0, max=10, step=0.1, label="exergy_cost"),
        "infra_footprint": ParamDef(min=0, max=10, step=0.1, label="infra_footprint"),
        "hazard_rate": ParamDef(min=0, max=1, step=0.01, label="hazard_rate"),
        "topo": ParamDef(min=0, max=3, step=0.01, label="topo"),
        "witness_count": ParamDef(min=0, max=500, step=1, label="witness_count"),
    },
    "character": {
        "will": ParamDef(min=0, max=1, step=0.01, label="will"),
        "loyalty": ParamDef(min=0, max=1, step=0.01, label="loyalty"),
        "stress": ParamDef(min=0, max=1, step=0.01, label="stress"),
        "resources": ParamDef(min=0, max=1, step=0.01, label="resources"),
        "competence": ParamDef(min=0, max=1, step=0.01, label="competence"),
        "risk_tolerance": ParamDef(min=0, max=1, step=0.01, label="risk_tolerance"),
        "mandate_power": ParamDef(min=0, max=1, step=0.01, label="mandate_power"),
    },
}


def resolve_schema(
    registry: Registry,
    key: str,
    warnings: list[str] | None = None,
) -> dict[str, ParamDef]:
    """Resolve the params of model `key`, base models first, derived fields winning.

    A cycle or a missing base never raises: the fields resolved so far are
    returned and the problem is appended to `warnings`.
    """
    resolved: dict[str, ParamDef] = {}
    visited: set[str] = set()

    def visit(name: str) -> None:
        if name in visited:
            if warnings is not None:
                warnings.append(f"config: extends cycle through model '{name}' (resolving '{key}')")
            return
        visited.add(name)

        model = registry.models.get(name)
        if model is None:
            if warnings is not None and name != key:
                warnings.append(f"config: model '{name}' (base of '{key}') not found")
            return

        if model.extends:
            visit(model.extends)
        resolved.update(model.params)

    visit(key)
    return resolved


def schema_for(
    entity: EntityDescriptor,
    registry: Registry,
    fallback_key: str = "object",
    warnings: list[str] | None = None,
) -> dict[str, ParamDef]:
    """Pick the entity's schema: model_ref, then type, then fallback_key, then built-ins."""
    candidates = [entity.model_ref, entity.type, fallback_key]
    for key in dict.fromkeys(c for c in candidates if c):
        schema = resolve_schema(registry, key, warnings)
        if schema:
            return schema

    kind = "character" if entity.type == "character" else "object"
    return dict(DEFAULT_SCHEMAS[kind])


def default_value(pdef: ParamDef) -> float:
    return pdef.default if pdef.default is not None else pdef.min


def explicit_defaults(schema: dict[str, ParamDef]) -> dict[str, float]:
    """Fields whose schema names a `default`; min-only fields are left out."""
    return {name: pdef.default for name, pdef in schema.items() if pdef.default is not None}


def bind_params(schema: dict[str, ParamDef], bindings: dict[str, float]) -> dict[str, float]:
    params = {name: default_value(pdef) for name, pdef in schema.items()}
    params.update(bindings)
    return params


def materialize_params(
    entity: EntityDescriptor,
    registry: Registry,
    fallback_key: str = "object",
    warnings: list[str] | None = None,
) -> dict[str, float]:
    """Concrete bindings: schema defaults overlaid by the entity's own values.

    Binding keys the schema does not know pass through unchanged.
    """
    return bind_params(schema_for(entity, registry, fallback_key, warnings), entity.param_bindings)


def locked_params(entity: EntityDescriptor, registry: Registry) -> set[str]:
    """Names the user may not tune: the entity's own list plus registry locks for its kind."""
    locked = set(entity.param_locked)
    for name, lock in registry.locks.get(entity.type, {}).items():
        if lock.locked:
            locked.add(name)
    return locked


def tune_params(
    bindings: dict[str, float],
    schema: dict[str, ParamDef],
    overrides: dict[str, float],
    locked: Iterable[str] = (),
    warnings: list[str] | None = None,
) -> dict[str, float]:
    """Apply slider overrides on top of `bindings`, clamped to each field's range.

    Backs the CLI's `--set NAME=VALUE`; locked names keep their bound value.
    """
    locked = set(locked)
    tuned = dict(bindings)
    for name, value in overrides.items():
        if name in locked:
            if warnings is not None:
                warnings.append(f"param '{name}' is locked; override ignored")
            continue
        pdef = schema.get(name)
        if pdef is not None:
            value = min(pdef.max, max(pdef.min, value))
        tuned[name] = value
    return tuned
