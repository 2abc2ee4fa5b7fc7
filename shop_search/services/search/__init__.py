"""Search engine, facet aggregation, and search log suggestions."""

from .engine import SearchEngine, SearchResult
from .facets import FacetAggregator, FacetCandidates, currency_formatter
from .suggest import SearchLogService, normalize_query

__all__ = [
    "SearchEngine",
    "SearchResult",
    "FacetAggregator",
    "FacetCandidates",
    "currency_formatter",
    "SearchLogService",
    "normalize_query",
]
