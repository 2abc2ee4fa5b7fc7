"""
Query adapter contract.

The search engine, facet aggregator, suggestion ranker and index builder are
written against this interface only. An adapter answers filtered queries over
one entity type (equality, contains, text match, pagination), fetches related
records across one relation hop, persists virtual field values, and owns the
search log table. Storage failures surface as AdapterError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, AsyncIterator, Optional, Sequence

from shop_search.index.entity import EntityType


@dataclass(frozen=True)
class Condition:
    """One structured filter. values are OR-combined; contains = list membership semantics."""
    name: str
    attribute: str
    values: tuple[Any, ...]
    contains: bool = False


@dataclass(frozen=True)
class Criteria:
    """Free text (OR across text_fields) AND every condition."""
    text: str = ""
    text_fields: tuple[str, ...] = ()
    conditions: tuple[Condition, ...] = ()

    def without(self, name: str) -> "Criteria":
        """Same criteria minus the conditions on field `name`."""
        return replace(self, conditions=tuple(c for c in self.conditions if c.name != name))


@dataclass(frozen=True)
class SuggestionStat:
    """Search log rows grouped by normalized query text."""
    query: str
    has_results: bool
    occurrences: int
    last_seen: Optional[datetime]
    last_id: int


class QueryAdapter(ABC):

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------
    @abstractmethod
    async def find(
        self,
        entity: EntityType,
        criteria: Criteria,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
        order: Sequence[tuple[str, str]] = (),
    ) -> list[Any]:
        """Matching records in order (attribute, asc|desc) then primary key."""

    @abstractmethod
    async def count(self, entity: EntityType, criteria: Criteria) -> int:
        ...

    @abstractmethod
    async def value_counts(self, entity: EntityType, criteria: Criteria, attribute: str) -> dict[Any, int]:
        """Matching records per non-null value of `attribute`."""

    @abstractmethod
    async def member_counts(self, entity: EntityType, criteria: Criteria, field_name: str) -> dict[Any, int]:
        """Matching records per member id of the list field `field_name`."""

    @abstractmethod
    async def fetch_by_ids(self, model: type, ids: Sequence[Any]) -> dict[Any, Any]:
        """Records of `model` keyed by primary key. Missing ids are absent from the result."""

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------
    @abstractmethod
    def iter_chunks(self, entity: EntityType, chunk_size: int) -> AsyncIterator[list[Any]]:
        """Every record of the entity in primary key order, one fetched chunk at a time."""

    @abstractmethod
    async def fetch_related(self, record: Any, relation: str) -> list[Any]:
        """Records across a one-hop relation; to-one relations give zero or one records."""

    @abstractmethod
    async def write_index(
        self,
        entity: EntityType,
        record: Any,
        columns: dict[str, Any],
        members: dict[str, list[Any]],
    ) -> None:
        """Persist one record's virtual field columns and list members together."""

    @abstractmethod
    async def checkpoint(self) -> None:
        """Make completed index writes durable (end of a rebuild chunk)."""

    # ------------------------------------------------------------------
    # Search log
    # ------------------------------------------------------------------
    @abstractmethod
    async def add_log_entry(self, query: str, num_results: int, member_id: int) -> Any:
        ...

    @abstractmethod
    async def suggestion_stats(self, contains: Optional[str] = None) -> list[SuggestionStat]:
        """Log entries grouped by query, optionally limited to queries containing `contains`."""
