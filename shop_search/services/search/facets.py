"""
Facet aggregation.

Each configured facet groups the filtered candidate set by one field and counts
records per value. The adapter does the grouping; list-valued virtual fields are
counted per member id, so a record in two categories counts toward both.

Value order per facet:
  natural  ascending raw value; list members by their `sort` attribute, then id
  count    descending count, then ascending label
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence

from shop_search.core.config import FACET_ORDER_COUNT, FacetSpec
from shop_search.index.entity import ResolvedField
from shop_search.schemas.search import FacetResult, FacetValue

if TYPE_CHECKING:
    from shop_search.adapters.base import QueryAdapter


def currency_formatter(symbol: str = "$") -> Callable[[Any], str]:
    """Label formatter for price-like facets: 5 -> '$5.00'."""
    def fmt(value: Any) -> str:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return str(value)
        return f"{symbol}{amount:,.2f}"
    return fmt


@dataclass
class FacetCandidates:
    """Record counts per value (or member id, for list fields) over the candidate set for one facet."""
    spec: FacetSpec
    field: ResolvedField
    counts: Mapping[Any, int]


def _value_key(value: Any) -> str:
    """Comparable key for facet values and filter inputs ('10.5' matches Decimal('10.50'))."""
    try:
        return str(Decimal(str(value)).normalize())
    except (InvalidOperation, ValueError):
        return str(value)


def _natural_key(value: Any) -> tuple:
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return (0, value, "")
    return (1, 0, str(value).lower())


class FacetAggregator:
    def __init__(self, adapter: "QueryAdapter"):
        self.adapter = adapter

    async def compute_facets(
        self,
        candidates: Sequence[FacetCandidates],
        active_filters: Optional[Mapping[str, Sequence[Any]]] = None,
    ) -> list[FacetResult]:
        """One FacetResult per facet, in the order the candidates were configured."""
        active_filters = active_filters or {}
        results = []
        for cand in candidates:
            active = {_value_key(v) for v in active_filters.get(cand.spec.field, [])}
            if cand.field.is_list:
                values = await self._list_values(cand, active)
            else:
                values = self._scalar_values(cand, active)
            results.append(FacetResult(field=cand.spec.field, label=cand.spec.label, values=values))
        return results

    def _scalar_values(self, cand: FacetCandidates, active: set[str]) -> list[FacetValue]:
        counts = {v: n for v, n in cand.counts.items() if v is not None and n > 0}
        fmt = cand.spec.formatter or str
        ordered = sorted(counts, key=_natural_key)
        values = [
            FacetValue(label=fmt(v), value=v, count=counts[v], active=_value_key(v) in active)
            for v in ordered
        ]
        return self._apply_order(cand.spec, values)

    async def _list_values(self, cand: FacetCandidates, active: set[str]) -> list[FacetValue]:
        counts = {m: n for m, n in cand.counts.items() if n > 0}
        if not counts:
            return []
        members = await self.adapter.fetch_by_ids(cand.field.member_model, list(counts))

        def member_key(member_id: Any) -> tuple:
            member = members.get(member_id)
            sort = getattr(member, "sort", None) if member is not None else None
            return (sort is None, sort or 0, member_id)

        fmt = cand.spec.formatter
        values = []
        for member_id in sorted(counts, key=member_key):
            member = members.get(member_id)
            if member is None:
                label = str(member_id)
            elif fmt is not None:
                label = fmt(member)
            else:
                label = str(getattr(member, cand.spec.member_label, member_id))
            values.append(
                FacetValue(
                    label=label,
                    value=member_id,
                    count=counts[member_id],
                    active=_value_key(member_id) in active,
                )
            )
        return self._apply_order(cand.spec, values)

    @staticmethod
    def _apply_order(spec: FacetSpec, values: list[FacetValue]) -> list[FacetValue]:
        if spec.order == FACET_ORDER_COUNT:
            return sorted(values, key=lambda v: (-v.count, v.label.lower()))
        return values
