"""Relational query adapter: LIKE-based text match, column equality and member-table containment."""

from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy import Integer, Numeric, case, delete, exists, false, func, or_, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shop_search.adapters.base import Condition, Criteria, QueryAdapter, SuggestionStat
from shop_search.db.models import SearchLog, VirtualFieldMember
from shop_search.errors import AdapterError
from shop_search.index.entity import EntityType


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except SQLAlchemyError as e:
        raise AdapterError(f"{action} failed: {e}") from e


def _coerce(column, value: Any) -> Any:
    """Convert a filter value to the column's type. Returns None when it cannot match."""
    if value is None:
        return None
    col_type = column.expression.type
    try:
        if isinstance(col_type, Numeric):
            return Decimal(str(value))
        if isinstance(col_type, Integer):
            return int(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return value if isinstance(value, (str, bool)) else str(value)


class SqlAlchemyAdapter(QueryAdapter):
    """Adapter over an AsyncSession. Only checkpoint() commits; everything else flushes at most."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Statement building
    # ------------------------------------------------------------------
    def _pk(self, entity: EntityType):
        return getattr(entity.model, entity.primary_key)

    def _condition_clause(self, entity: EntityType, cond: Condition):
        if cond.contains:
            member_ids = [v for v in (_coerce(VirtualFieldMember.member_id, x) for x in cond.values) if v is not None]
            if not member_ids:
                return false()
            return exists(
                select(VirtualFieldMember.id).where(
                    VirtualFieldMember.record_type == entity.name,
                    VirtualFieldMember.record_id == self._pk(entity),
                    VirtualFieldMember.field_name == cond.name,
                    VirtualFieldMember.member_id.in_(member_ids),
                )
            )
        column = getattr(entity.model, cond.attribute)
        values = [v for v in (_coerce(column, x) for x in cond.values) if v is not None]
        if not values:
            return false()
        if len(values) == 1:
            return column == values[0]
        return column.in_(values)

    def _where(self, entity: EntityType, criteria: Criteria) -> list:
        clauses = []
        text = (criteria.text or "").strip()
        if text and criteria.text_fields:
            clauses.append(
                or_(*[getattr(entity.model, f).icontains(text, autoescape=True) for f in criteria.text_fields])
            )
        for cond in criteria.conditions:
            clauses.append(self._condition_clause(entity, cond))
        return clauses

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------
    async def find(
        self,
        entity: EntityType,
        criteria: Criteria,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
        order: Sequence[tuple[str, str]] = (),
    ) -> list[Any]:
        stmt = select(entity.model).where(*self._where(entity, criteria))
        order_by = []
        for attribute, direction in order:
            column = getattr(entity.model, attribute)
            order_by.append(column.desc() if direction == "desc" else column.asc())
        order_by.append(self._pk(entity).asc())
        stmt = stmt.order_by(*order_by).offset(max(offset, 0))
        if limit is not None:
            stmt = stmt.limit(limit)
        with _storage_errors(f"find {entity.name}"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def count(self, entity: EntityType, criteria: Criteria) -> int:
        stmt = select(func.count(self._pk(entity))).where(*self._where(entity, criteria))
        with _storage_errors(f"count {entity.name}"):
            result = await self.db.execute(stmt)
            return int(result.scalar_one() or 0)

    async def value_counts(self, entity: EntityType, criteria: Criteria, attribute: str) -> dict[Any, int]:
        column = getattr(entity.model, attribute)
        stmt = (
            select(column, func.count(self._pk(entity)))
            .where(column.is_not(None), *self._where(entity, criteria))
            .group_by(column)
        )
        with _storage_errors(f"facet counts {entity.name}.{attribute}"):
            result = await self.db.execute(stmt)
            return {value: int(count) for value, count in result.all()}

    async def member_counts(self, entity: EntityType, criteria: Criteria, field_name: str) -> dict[Any, int]:
        matching = select(self._pk(entity)).where(*self._where(entity, criteria))
        stmt = (
            select(VirtualFieldMember.member_id, func.count(VirtualFieldMember.record_id))
            .where(
                VirtualFieldMember.record_type == entity.name,
                VirtualFieldMember.field_name == field_name,
                VirtualFieldMember.record_id.in_(matching),
            )
            .group_by(VirtualFieldMember.member_id)
        )
        with _storage_errors(f"facet counts {entity.name}.{field_name}"):
            result = await self.db.execute(stmt)
            return {member_id: int(count) for member_id, count in result.all()}

    async def fetch_by_ids(self, model: type, ids: Sequence[Any]) -> dict[Any, Any]:
        if not ids:
            return {}
        pk = sa_inspect(model).primary_key[0]
        with _storage_errors(f"fetch {model.__name__}"):
            result = await self.db.execute(select(model).where(pk.in_(list(ids))))
            return {getattr(r, pk.key): r for r in result.scalars().all()}

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------
    async def iter_chunks(self, entity: EntityType, chunk_size: int) -> AsyncIterator[list[Any]]:
        pk = self._pk(entity)
        last_id = None
        while True:
            stmt = select(entity.model).order_by(pk.asc()).limit(chunk_size)
            if last_id is not None:
                stmt = stmt.where(pk > last_id)
            with _storage_errors(f"iterate {entity.name}"):
                result = await self.db.execute(stmt)
                rows = list(result.scalars().all())
            if not rows:
                return
            # Read before yielding: a commit by the consumer expires the rows
            last_id = entity.record_id(rows[-1])
            yield rows

    async def fetch_related(self, record: Any, relation: str) -> list[Any]:
        with _storage_errors(f"load relation {relation}"):
            value = await getattr(record.awaitable_attrs, relation)
        if value is None:
            return []
        if isinstance(value, (list, tuple, set)):
            return list(value)
        return [value]

    async def write_index(
        self,
        entity: EntityType,
        record: Any,
        columns: dict[str, Any],
        members: dict[str, list[Any]],
    ) -> None:
        record_id = entity.record_id(record)
        with _storage_errors(f"write index {entity.name}#{record_id}"):
            for attribute, value in columns.items():
                setattr(record, attribute, value)
            if members:
                await self.db.execute(
                    delete(VirtualFieldMember).where(
                        VirtualFieldMember.record_type == entity.name,
                        VirtualFieldMember.record_id == record_id,
                        VirtualFieldMember.field_name.in_(list(members)),
                    )
                )
                self.db.add_all([
                    VirtualFieldMember(
                        record_type=entity.name,
                        record_id=record_id,
                        field_name=field_name,
                        position=position,
                        member_id=member_id,
                    )
                    for field_name, ids in members.items()
                    for position, member_id in enumerate(ids)
                ])
            await self.db.flush()

    async def checkpoint(self) -> None:
        with _storage_errors("commit"):
            await self.db.commit()

    # ------------------------------------------------------------------
    # Search log
    # ------------------------------------------------------------------
    async def add_log_entry(self, query: str, num_results: int, member_id: int) -> SearchLog:
        entry = SearchLog(query=query, num_results=num_results, member_id=member_id)
        with _storage_errors("write search log"):
            self.db.add(entry)
            await self.db.flush()
        return entry

    async def suggestion_stats(self, contains: Optional[str] = None) -> list[SuggestionStat]:
        stmt = select(
            SearchLog.query,
            func.max(case((SearchLog.num_results > 0, 1), else_=0)).label("has_results"),
            func.count(SearchLog.id).label("occurrences"),
            func.max(SearchLog.created_at).label("last_seen"),
            func.max(SearchLog.id).label("last_id"),
        ).group_by(SearchLog.query)
        if contains:
            stmt = stmt.where(SearchLog.query.contains(contains, autoescape=True))
        with _storage_errors("read search log"):
            result = await self.db.execute(stmt)
            rows = result.all()
        return [
            SuggestionStat(
                query=row.query,
                has_results=bool(row.has_results),
                occurrences=int(row.occurrences),
                last_seen=row.last_seen,
                last_id=int(row.last_id),
            )
            for row in rows
        ]
