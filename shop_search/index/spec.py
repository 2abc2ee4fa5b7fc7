"""
Virtual field spec normalization.

A raw spec maps a virtual field name to one of:
  - "accessor"                      -> simple field computed from one accessor
  - ("relation_a", "relation_b")    -> list field over the records those relations point at
  - {"type": ..., "source": ..., "depends_on": [...]} or a VirtualFieldSpec -> passed through

Normalization is idempotent: normalizing an already-normalized map returns an equal map.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Union

from shop_search.errors import ConfigError

SIMPLE = "simple"
LIST = "list"
ALL = "all"

VALID_TYPES = frozenset({SIMPLE, LIST})

# Persisted column holding a virtual field's value: vfi_<field>
VFI_COLUMN_PREFIX = "vfi_"


@dataclass(frozen=True)
class VirtualFieldSpec:
    type: str
    source: Union[str, tuple[str, ...]]
    depends_on: Union[str, frozenset[str]] = ALL

    @property
    def is_list(self) -> bool:
        return self.type == LIST

    def needs_rebuild(self, changed_fields: set[str] | None) -> bool:
        """Whether a change to changed_fields (None = unknown) invalidates this field."""
        if changed_fields is None or self.depends_on == ALL:
            return True
        return bool(self.depends_on & set(changed_fields))


def vfi_column(field_name: str) -> str:
    return f"{VFI_COLUMN_PREFIX}{field_name}"


def _normalize_depends_on(value: Any, field_name: str) -> Union[str, frozenset[str]]:
    if value is None or value == ALL:
        return ALL
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, (list, tuple, set, frozenset)):
        names = frozenset(str(v) for v in value if v)
        return names or ALL
    raise ConfigError(f"Virtual field '{field_name}': invalid depends_on {value!r}")


def _normalize_source(kind: str, source: Any, field_name: str) -> Union[str, tuple[str, ...]]:
    if kind == SIMPLE:
        if not isinstance(source, str) or not source.strip():
            raise ConfigError(f"Virtual field '{field_name}': simple source must be a non-empty string")
        return source.strip()
    if isinstance(source, str):
        source = (source,)
    if not isinstance(source, (list, tuple)) or not source:
        raise ConfigError(f"Virtual field '{field_name}': list source must be a sequence of relation names")
    if not all(isinstance(s, str) and s.strip() for s in source):
        raise ConfigError(f"Virtual field '{field_name}': list source entries must be relation names")
    return tuple(s.strip() for s in source)


def normalize_field_spec(field_name: str, raw: Any) -> VirtualFieldSpec:
    """Expand one shorthand spec value into a VirtualFieldSpec."""
    if isinstance(raw, VirtualFieldSpec):
        return raw
    if isinstance(raw, str):
        return VirtualFieldSpec(type=SIMPLE, source=_normalize_source(SIMPLE, raw, field_name))
    if isinstance(raw, (list, tuple)):
        return VirtualFieldSpec(type=LIST, source=_normalize_source(LIST, raw, field_name))
    if isinstance(raw, Mapping):
        source = raw.get("source")
        kind = raw.get("type") or (SIMPLE if isinstance(source, str) else LIST)
        if kind not in VALID_TYPES:
            raise ConfigError(f"Virtual field '{field_name}': unknown type {kind!r}")
        return VirtualFieldSpec(
            type=kind,
            source=_normalize_source(kind, source, field_name),
            depends_on=_normalize_depends_on(raw.get("depends_on"), field_name),
        )
    raise ConfigError(f"Virtual field '{field_name}': unsupported spec {raw!r}")


def normalize_vfi_spec(raw_map: Mapping[str, Any] | None) -> dict[str, VirtualFieldSpec]:
    """Normalize a whole per-entity spec map. Field order is preserved."""
    return {name: normalize_field_spec(name, raw) for name, raw in (raw_map or {}).items()}
