"""Search log and autocomplete suggestions ranked from it."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from shop_search.core.constants import ANONYMOUS_MEMBER_ID, MAX_LOGGED_QUERY_LENGTH

if TYPE_CHECKING:
    from shop_search.adapters.base import QueryAdapter, SuggestionStat

logger = logging.getLogger(__name__)

DEFAULT_SUGGEST_LIMIT = 10


def normalize_query(text: Optional[str]) -> str:
    """Trim, collapse whitespace and case-fold a query for logging and grouping."""
    return " ".join((text or "").split()).casefold()


def _rank_key(stat: "SuggestionStat") -> tuple:
    # Queries that ever returned results first, then popularity, then recency
    last_seen = stat.last_seen.timestamp() if stat.last_seen is not None else 0.0
    return (stat.has_results, stat.occurrences, last_seen, stat.last_id)


class SearchLogService:
    def __init__(self, adapter: "QueryAdapter", limit: int = DEFAULT_SUGGEST_LIMIT):
        self.adapter = adapter
        self.limit = limit

    async def record(
        self, query_text: Optional[str], num_results: int, member_id: Optional[int] = None
    ) -> Optional[Any]:
        """Append one log entry. Empty queries are not logged; long ones are truncated."""
        query = normalize_query(query_text)[:MAX_LOGGED_QUERY_LENGTH].rstrip()
        if not query:
            return None
        entry = await self.adapter.add_log_entry(
            query, max(0, int(num_results)), member_id or ANONYMOUS_MEMBER_ID
        )
        logger.debug("Logged search %r (%d results, member %s)", query, num_results, member_id)
        return entry

    async def suggest(self, prefix: Optional[str] = "") -> list[str]:
        """
        Distinct logged queries, best first.

        With no prefix the top `limit` are returned. With a prefix, every logged
        query containing it (case-insensitive) is returned, uncapped.
        """
        needle = normalize_query(prefix)
        stats = await self.adapter.suggestion_stats(needle or None)
        ranked = sorted(stats, key=_rank_key, reverse=True)
        if not needle and self.limit:
            ranked = ranked[: self.limit]
        return [s.query for s in ranked]
