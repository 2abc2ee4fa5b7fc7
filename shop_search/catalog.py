"""Default catalog wiring: Product as the searchable entity, its virtual fields, facets and sorts."""

from functools import lru_cache

from shop_search.core.config import SORT_ASC, SORT_DESC, FacetSpec, SearchConfig, Settings, get_settings
from shop_search.db.models import Product
from shop_search.index.entity import EntityType
from shop_search.services.search.facets import currency_formatter

PRODUCT_TEXT_FIELDS = ("title", "content")

PRODUCT_VFI_SPEC = {
    "price": "selling_price",
    "category": ("parent", "categories"),
}

PRODUCT_SORT_OPTIONS = {
    "title": ("title", SORT_ASC),
    "price_asc": ("price", SORT_ASC),
    "price_desc": ("price", SORT_DESC),
    "newest": ("created_at", SORT_DESC),
}


def product_entity() -> EntityType:
    return EntityType(
        name="Product",
        model=Product,
        text_fields=PRODUCT_TEXT_FIELDS,
        vfi=PRODUCT_VFI_SPEC,
    )


def product_facets(settings: Settings) -> list[FacetSpec]:
    return [
        FacetSpec(field="model", label="By Model"),
        FacetSpec(field="price", label="By Price", formatter=currency_formatter(settings.currency_symbol)),
        FacetSpec(field="category", label="By Category"),
    ]


def build_search_config(settings: Settings, **overrides) -> SearchConfig:
    overrides.setdefault("entities", [product_entity()])
    overrides.setdefault("facets", product_facets(settings))
    overrides.setdefault("category_field", "category")
    overrides.setdefault("sort_options", dict(PRODUCT_SORT_OPTIONS))
    return SearchConfig.from_settings(settings, **overrides)


@lru_cache
def get_search_config() -> SearchConfig:
    return build_search_config(get_settings())
