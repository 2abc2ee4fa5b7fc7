from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from shop_search.errors import ConfigError
from shop_search.index.entity import EntityType, ResolvedField

# Load .env from the project root so it works regardless of CWD
_env_file = Path(__file__).resolve().parent.parent.parent / ".env"

FACET_ORDER_NATURAL = "natural"
FACET_ORDER_COUNT = "count"
SORT_ASC = "asc"
SORT_DESC = "desc"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, extra="ignore")

    database_url: str = "postgresql://localhost/shop_search"
    sql_echo: bool = False
    log_level: str = "INFO"

    # CORS (comma-separated origins; * allows all)
    cors_origins: str = "*"

    # Rate limiting (per member when X-Member-Id is sent, else per IP)
    search_rate_limit: str = "60/minute"

    # Search and suggestions
    default_page_size: int = 20
    max_page_size: int = 100
    suggest_limit: int = 10  # cap when no term is given
    suggest_products_limit: int = 5
    facets_exclude_own_filter: bool = True

    # Index rebuilds
    vfi_build_chunk_size: int = 200

    # Presentation
    product_url_prefix: str = "/products/"
    currency_symbol: str = "$"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parsed CORS origins for middleware."""
        raw = self.cors_origins.strip()
        return ["*"] if not raw else [o.strip() for o in raw.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


@dataclass(frozen=True)
class FacetSpec:
    """One configured facet. Facets are reported in configuration order."""
    field: str
    label: str
    formatter: Optional[Callable[[Any], str]] = None
    order: str = FACET_ORDER_NATURAL  # natural | count
    member_label: str = "title"  # attribute used as label for list members


@dataclass
class SearchConfig:
    """Explicit wiring for the search engine. Built once and passed to every component."""
    entities: list[EntityType]
    facets: list[FacetSpec] = field(default_factory=list)
    category_field: Optional[str] = None
    sort_options: dict[str, tuple[str, str]] = field(default_factory=dict)
    default_page_size: int = 20
    max_page_size: int = 100
    suggest_limit: int = 10
    facets_exclude_own_filter: bool = True
    vfi_build_chunk_size: int = 200

    def __post_init__(self) -> None:
        if not self.entities:
            raise ConfigError("At least one searchable entity type is required")
        for facet in self.facets:
            if facet.order not in (FACET_ORDER_NATURAL, FACET_ORDER_COUNT):
                raise ConfigError(f"Facet '{facet.field}': unknown order {facet.order!r}")
            self.resolve(facet.field)
        for name, (field_name, direction) in self.sort_options.items():
            if direction not in (SORT_ASC, SORT_DESC):
                raise ConfigError(f"Sort '{name}': direction must be asc or desc")
            for resolved in self.resolve(field_name):
                if resolved.is_list:
                    raise ConfigError(f"Sort '{name}': cannot sort on list field '{field_name}'")
        if self.category_field:
            self.resolve(self.category_field)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "SearchConfig":
        kwargs.setdefault("default_page_size", settings.default_page_size)
        kwargs.setdefault("max_page_size", settings.max_page_size)
        kwargs.setdefault("suggest_limit", settings.suggest_limit)
        kwargs.setdefault("facets_exclude_own_filter", settings.facets_exclude_own_filter)
        kwargs.setdefault("vfi_build_chunk_size", settings.vfi_build_chunk_size)
        return cls(**kwargs)

    def entity(self, name: str) -> EntityType:
        for entity in self.entities:
            if entity.name == name:
                return entity
        raise ConfigError(f"Unknown entity type '{name}'")

    def resolve(self, field_name: str) -> list[ResolvedField]:
        """Resolve field_name on every searchable entity (ConfigError if any cannot)."""
        return [entity.resolve_field(field_name) for entity in self.entities]
