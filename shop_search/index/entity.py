"""
Searchable entity types and their virtual field resolution.

An EntityType binds an ORM model to its text fields, registered accessors and
virtual field spec. The spec is validated against the model's mapper when the
EntityType is created, so a bad source or missing vfi_ column fails at
configuration load rather than in the middle of a search or rebuild.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import inspect

from shop_search.errors import ConfigError
from shop_search.index.spec import (
    LIST,
    SIMPLE,
    VirtualFieldSpec,
    normalize_vfi_spec,
    vfi_column,
)

# Kinds of a resolved field
COLUMN = "column"


@dataclass(frozen=True)
class SimpleGetter:
    """Compiled simple source: optional one-hop relation, then a read on the target."""
    relation: Optional[str]
    read: Callable[[Any], Any]


@dataclass(frozen=True)
class ResolvedField:
    """A filter/facet/sort field name mapped onto a persisted attribute of the model."""
    name: str
    attribute: str
    kind: str  # column | simple | list
    member_model: Optional[type] = None

    @property
    def is_list(self) -> bool:
        return self.kind == LIST


def _attribute_reader(name: str) -> Callable[[Any], Any]:
    def read(obj: Any) -> Any:
        value = getattr(obj, name)
        return value() if callable(value) else value
    return read


@dataclass
class EntityType:
    name: str
    model: type
    text_fields: tuple[str, ...] = ("title",)
    accessors: Mapping[str, Callable[[Any], Any]] = field(default_factory=dict)
    vfi: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._mapper = inspect(self.model)
        self._columns = {attr.key for attr in self._mapper.column_attrs}
        self._relationships = {rel.key: rel for rel in self._mapper.relationships}
        for text_field in self.text_fields:
            if text_field not in self._columns:
                raise ConfigError(f"{self.name}: unknown text field '{text_field}'")
        self.vfi = resolve_vfi_spec(self, self.vfi)
        self._getters: dict[str, SimpleGetter] = {}
        self._member_models: dict[str, type] = {}
        for field_name, spec in self.vfi.items():
            if spec.is_list:
                self._member_models[field_name] = self._list_member_model(field_name, spec)
            else:
                self._getters[field_name] = self._compile_simple(field_name, spec)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def primary_key(self) -> str:
        return self._mapper.primary_key[0].key

    def has_column(self, name: str) -> bool:
        return name in self._columns

    def record_id(self, record: Any) -> Any:
        return getattr(record, self.primary_key)

    def getter(self, field_name: str) -> SimpleGetter:
        return self._getters[field_name]

    def member_model(self, field_name: str) -> type:
        return self._member_models[field_name]

    def resolve_field(self, name: str) -> ResolvedField:
        """Map a public field name onto a virtual field column or a real column."""
        spec = self.vfi.get(name)
        if spec is not None:
            return ResolvedField(
                name=name,
                attribute=vfi_column(name),
                kind=spec.type,
                member_model=self._member_models.get(name),
            )
        if name in self._columns and not name.startswith("vfi_"):
            return ResolvedField(name=name, attribute=name, kind=COLUMN)
        raise ConfigError(f"{self.name}: unknown field '{name}'")

    # ------------------------------------------------------------------
    # Spec validation
    # ------------------------------------------------------------------
    def _compile_simple(self, field_name: str, spec: VirtualFieldSpec) -> SimpleGetter:
        source = spec.source
        if source in self.accessors:
            return SimpleGetter(relation=None, read=self.accessors[source])
        if "." in source:
            relation, _, attr = source.partition(".")
            rel = self._relationships.get(relation)
            if rel is None or "." in attr:
                raise ConfigError(f"{self.name}.{field_name}: cannot resolve source '{source}'")
            if not hasattr(rel.mapper.class_, attr):
                raise ConfigError(
                    f"{self.name}.{field_name}: {rel.mapper.class_.__name__} has no '{attr}'"
                )
            return SimpleGetter(relation=relation, read=_attribute_reader(attr))
        if source in self._relationships or not hasattr(self.model, source):
            raise ConfigError(f"{self.name}.{field_name}: unknown accessor '{source}'")
        return SimpleGetter(relation=None, read=_attribute_reader(source))

    def _list_member_model(self, field_name: str, spec: VirtualFieldSpec) -> type:
        targets = set()
        for relation in spec.source:
            rel = self._relationships.get(relation)
            if rel is None:
                raise ConfigError(f"{self.name}.{field_name}: unknown relation '{relation}'")
            targets.add(rel.mapper.class_)
        if len(targets) != 1:
            raise ConfigError(f"{self.name}.{field_name}: list relations must share one target type")
        return targets.pop()


def resolve_vfi_spec(entity: EntityType, raw_map: Mapping[str, Any]) -> dict[str, VirtualFieldSpec]:
    """Normalize raw_map and check every field has a persisted vfi_ column on the entity."""
    specs = normalize_vfi_spec(raw_map)
    for field_name, spec in specs.items():
        if spec.type not in (SIMPLE, LIST):
            raise ConfigError(f"{entity.name}.{field_name}: unknown type {spec.type!r}")
        if not entity.has_column(vfi_column(field_name)):
            raise ConfigError(
                f"{entity.name}.{field_name}: missing index column '{vfi_column(field_name)}'"
            )
    return specs
