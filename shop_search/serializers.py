"""Record -> response schema conversion for search pages and autocomplete."""

from typing import Any, Optional

from shop_search.core.config import Settings
from shop_search.schemas.search import ProductSummary
from shop_search.services.search.facets import currency_formatter

DESC_MAX_LEN = 140


def _compact_text(value: Any, max_len: int = DESC_MAX_LEN) -> Optional[str]:
    if value is None:
        return None
    text = " ".join(str(value).split())
    if not text:
        return None
    if len(text) <= max_len:
        return text
    return text[: max_len - 3].rstrip() + "..."


def _product_link(record: Any, settings: Settings) -> Optional[str]:
    segment = getattr(record, "url_segment", None) or getattr(record, "id", None)
    if segment is None:
        return None
    return f"{settings.product_url_prefix.rstrip('/')}/{segment}"


def record_to_summary(record: Any, settings: Settings) -> ProductSummary:
    """Product-like summary; attributes a record lacks are left empty."""
    fmt = currency_formatter(settings.currency_symbol)
    price = getattr(record, "selling_price", None)
    original = getattr(record, "original_price", None)
    return ProductSummary(
        id=getattr(record, "id", None),
        title=str(getattr(record, "title", "") or ""),
        link=_product_link(record, settings),
        thumb=getattr(record, "image_url", None),
        desc=_compact_text(getattr(record, "content", None)),
        price=fmt(price) if price is not None else None,
        original_price=fmt(original) if original is not None else None,
        model=getattr(record, "model", None),
    )
