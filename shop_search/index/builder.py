"""
Virtual field index builder.

Computes every virtual field of a record from its spec and persists the
flattened values: scalars for simple fields, the encoded member list plus
member rows for list fields. A record's values are all computed before any of
them are written, so a failing accessor never leaves a half-updated record.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from shop_search.errors import AdapterError, RecordComputeError
from shop_search.index.encoding import decode_list, encode_list
from shop_search.index.entity import EntityType
from shop_search.index.spec import VirtualFieldSpec, vfi_column

if TYPE_CHECKING:
    from shop_search.adapters.base import QueryAdapter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 200


@dataclass
class BuildReport:
    entity: str
    built: int = 0
    skipped: int = 0
    errors: list[RecordComputeError] = field(default_factory=list)


@dataclass(frozen=True)
class _ComputedValues:
    columns: dict[str, Any]
    members: dict[str, list[Any]]


class VirtualFieldIndexBuilder:
    def __init__(self, adapter: "QueryAdapter", chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.adapter = adapter
        self.chunk_size = max(1, chunk_size)

    async def build(self, entity: EntityType) -> BuildReport:
        """Recompute and overwrite every virtual field for every record of the entity type."""
        report = BuildReport(entity=entity.name)
        if not entity.vfi:
            logger.info("VFI build %s: no virtual fields configured", entity.name)
            return report
        async for chunk in self.adapter.iter_chunks(entity, self.chunk_size):
            for record in chunk:
                try:
                    await self.build_one(entity, record)
                except RecordComputeError as e:
                    report.skipped += 1
                    report.errors.append(e)
                    logger.warning("VFI build %s: skipping record %s: %s", entity.name, e.record_id, e.cause)
                    continue
                report.built += 1
            # Commit only between chunks; the commit expires every loaded record
            await self.adapter.checkpoint()
        logger.info(
            "VFI build %s: built=%d skipped=%d", entity.name, report.built, report.skipped
        )
        return report

    async def build_one(
        self,
        entity: EntityType,
        record: Any,
        changed_fields: Optional[set[str]] = None,
    ) -> None:
        """Update one record's index. With changed_fields, only dependent fields are recomputed."""
        specs = {
            name: spec for name, spec in entity.vfi.items() if spec.needs_rebuild(changed_fields)
        }
        if not specs:
            return
        computed = await self._compute(entity, record, specs)
        await self.adapter.write_index(entity, record, computed.columns, computed.members)

    async def get_vfi(self, entity: EntityType, record: Any, field_name: str) -> Any:
        """
        Stored value of a virtual field, or None when the field has no spec entry.

        Simple fields return the stored scalar. List fields return the referenced
        records in stored order (records deleted since the build are left out).
        """
        spec = entity.vfi.get(field_name)
        if spec is None:
            return None
        stored = getattr(record, vfi_column(field_name), None)
        if not spec.is_list:
            return stored
        if stored is None:
            return None
        _, ids = decode_list(stored)
        found = await self.adapter.fetch_by_ids(entity.member_model(field_name), ids)
        return [found[i] for i in ids if i in found]

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------
    async def _compute(
        self, entity: EntityType, record: Any, specs: dict[str, VirtualFieldSpec]
    ) -> _ComputedValues:
        columns: dict[str, Any] = {}
        members: dict[str, list[Any]] = {}
        for field_name, spec in specs.items():
            if spec.is_list:
                ids = await self._list_member_ids(spec, record)
                member_type = entity.member_model(field_name).__name__
                columns[vfi_column(field_name)] = encode_list(member_type, ids)
                members[field_name] = ids
            else:
                columns[vfi_column(field_name)] = await self._simple_value(entity, field_name, record)
        return _ComputedValues(columns=columns, members=members)

    async def _simple_value(self, entity: EntityType, field_name: str, record: Any) -> Any:
        getter = entity.getter(field_name)
        target = record
        if getter.relation:
            related = await self.adapter.fetch_related(record, getter.relation)
            if not related:
                return None
            target = related[0]
        try:
            return getter.read(target)
        except AdapterError:
            raise
        except SQLAlchemyError as e:
            raise AdapterError(f"{entity.name}.{field_name}: storage failure: {e}") from e
        except Exception as e:
            raise RecordComputeError(entity.record_id(record), field_name, e) from e

    async def _list_member_ids(self, spec: VirtualFieldSpec, record: Any) -> list[Any]:
        """Ids of the records behind every source relation, in order, without duplicates."""
        ids: list[Any] = []
        seen: set[Any] = set()
        for relation in spec.source:
            for member in await self.adapter.fetch_related(record, relation):
                member_id = getattr(member, "id", None)
                if member_id is None or member_id in seen:
                    continue
                seen.add(member_id)
                ids.append(member_id)
        return ids
