"""
Catalog search engine.

Pipeline: resolve filters/sort against the configured entity types -> count the
filtered set -> fetch the requested page -> facet counts over the same filtered
set (minus each facet's own filter when configured) -> log non-empty queries.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Optional

from shop_search.adapters.base import Condition, Criteria, QueryAdapter
from shop_search.core.config import SearchConfig
from shop_search.core.constants import ANONYMOUS_MEMBER_ID
from shop_search.errors import ConfigError
from shop_search.index.entity import EntityType
from shop_search.schemas.search import FacetResult, FilterValue, SearchQuery
from shop_search.services.search.facets import FacetAggregator, FacetCandidates
from shop_search.services.search.suggest import SearchLogService

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    matches: list[Any]
    total_matches: int
    facets: list[FacetResult] = field(default_factory=list)
    offset: int = 0
    limit: int = 0


@dataclass(frozen=True)
class _EntityPlan:
    entity: EntityType
    criteria: Criteria
    order: tuple[tuple[str, str], ...]


class SearchEngine:
    def __init__(self, config: SearchConfig, adapter: QueryAdapter):
        self.config = config
        self.adapter = adapter
        self.facets = FacetAggregator(adapter)
        self.log = SearchLogService(adapter, limit=config.suggest_limit)

    async def search(
        self,
        query: SearchQuery,
        member_id: int = ANONYMOUS_MEMBER_ID,
        log: bool = True,
        with_facets: bool = True,
    ) -> SearchResult:
        """Run a search. Unknown filter or sort names raise ConfigError; no matches is a valid result."""
        filters = self._active_filters(query)
        plans = [self._plan(entity, query, filters) for entity in self.config.entities]
        limit = self._page_size(query.limit)

        totals = [await self.adapter.count(p.entity, p.criteria) for p in plans]
        total_matches = sum(totals)
        matches = await self._page(plans, totals, query.offset, limit)
        facets = await self._facets(plans, filters) if with_facets else []

        logger.debug(
            "search q=%r filters=%s total=%d page=%d+%d",
            query.q, filters, total_matches, query.offset, len(matches),
        )
        if log and query.q:
            await self.log.record(query.q, total_matches, member_id)
        return SearchResult(
            matches=matches,
            total_matches=total_matches,
            facets=facets,
            offset=query.offset,
            limit=limit,
        )

    async def suggest(self, prefix: Optional[str] = "") -> list[str]:
        return await self.log.suggest(prefix)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------
    def _active_filters(self, query: SearchQuery) -> dict[str, list[FilterValue]]:
        filters = query.filter_values()
        category = query.category
        if category not in (None, "", 0, "0"):
            if not self.config.category_field:
                raise ConfigError("Category selector used but no category field is configured")
            existing = filters.get(self.config.category_field)
            filters[self.config.category_field] = existing + [category] if existing else [category]
        return filters

    def _plan(
        self, entity: EntityType, query: SearchQuery, filters: dict[str, list[FilterValue]]
    ) -> _EntityPlan:
        conditions = []
        for name, values in filters.items():
            resolved = entity.resolve_field(name)
            conditions.append(
                Condition(
                    name=name,
                    attribute=resolved.attribute,
                    values=tuple(values),
                    contains=resolved.is_list,
                )
            )
        order: tuple[tuple[str, str], ...] = ()
        if query.sort:
            option = self.config.sort_options.get(query.sort)
            if option is None:
                raise ConfigError(f"Unknown sort '{query.sort}'")
            field_name, direction = option
            order = ((entity.resolve_field(field_name).attribute, direction),)
        criteria = Criteria(
            text=query.q,
            text_fields=tuple(entity.text_fields),
            conditions=tuple(conditions),
        )
        return _EntityPlan(entity=entity, criteria=criteria, order=order)

    def _page_size(self, requested: Optional[int]) -> int:
        if requested is None:
            return self.config.default_page_size
        return min(requested, self.config.max_page_size)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    async def _page(
        self, plans: list[_EntityPlan], totals: list[int], offset: int, limit: int
    ) -> list[Any]:
        """Slice the concatenation of every entity's matches (in configured order)."""
        matches: list[Any] = []
        skip = offset
        for plan, total in zip(plans, totals):
            remaining = limit - len(matches)
            if remaining <= 0:
                break
            if skip >= total:
                skip -= total
                continue
            matches.extend(
                await self.adapter.find(
                    plan.entity, plan.criteria, offset=skip, limit=remaining, order=plan.order
                )
            )
            skip = 0
        return matches

    async def _facets(
        self, plans: list[_EntityPlan], filters: dict[str, list[FilterValue]]
    ) -> list[FacetResult]:
        if not self.config.facets:
            return []
        candidates = []
        for spec in self.config.facets:
            counts: Counter = Counter()
            resolved = None
            for plan in plans:
                resolved = plan.entity.resolve_field(spec.field)
                criteria = plan.criteria
                if self.config.facets_exclude_own_filter:
                    criteria = criteria.without(spec.field)
                if resolved.is_list:
                    counts.update(await self.adapter.member_counts(plan.entity, criteria, resolved.name))
                else:
                    counts.update(await self.adapter.value_counts(plan.entity, criteria, resolved.attribute))
            candidates.append(FacetCandidates(spec=spec, field=resolved, counts=counts))
        return await self.facets.compute_facets(candidates, filters)
