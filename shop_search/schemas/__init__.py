"""Pydantic request/response schemas."""

from shop_search.schemas.search import (
    FacetResult,
    FacetValue,
    ProductSummary,
    SearchQuery,
    SearchResponse,
    SuggestResponse,
)

__all__ = [
    "FacetResult",
    "FacetValue",
    "ProductSummary",
    "SearchQuery",
    "SearchResponse",
    "SuggestResponse",
]
