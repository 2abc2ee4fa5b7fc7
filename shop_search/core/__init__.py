"""Core configuration, constants, and shared infrastructure."""

from shop_search.core.config import (
    FacetSpec,
    SearchConfig,
    Settings,
    get_settings,
)
from shop_search.core.constants import (
    ANONYMOUS_MEMBER_ID,
    FILTER_PARAM_PREFIX,
    MEMBER_ID_HEADER,
    MIN_SUGGEST_TERM_LENGTH,
)
from shop_search.core.limiter import limiter

__all__ = [
    "FacetSpec",
    "SearchConfig",
    "Settings",
    "get_settings",
    "ANONYMOUS_MEMBER_ID",
    "FILTER_PARAM_PREFIX",
    "MEMBER_ID_HEADER",
    "MIN_SUGGEST_TERM_LENGTH",
    "limiter",
]
