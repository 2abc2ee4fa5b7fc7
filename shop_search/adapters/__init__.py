"""Query adapters. Import concrete adapters from their modules (e.g. shop_search.adapters.sql)."""

from .base import Condition, Criteria, QueryAdapter, SuggestionStat

__all__ = ["Condition", "Criteria", "QueryAdapter", "SuggestionStat"]
