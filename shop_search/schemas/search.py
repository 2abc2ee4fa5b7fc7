from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

FilterValue = Union[str, int, float]


class SearchQuery(BaseModel):
    """A catalog search: free text, category selector, structured filters, sort and page."""
    q: str = ""
    category: Optional[FilterValue] = None
    f: dict[str, Union[FilterValue, list[FilterValue]]] = Field(default_factory=dict)
    sort: Optional[str] = None
    offset: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=1)

    @field_validator("q", mode="before")
    @classmethod
    def _strip_q(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    def filter_values(self) -> dict[str, list[FilterValue]]:
        """Active filters with every value as a list; empty values are dropped."""
        out: dict[str, list[FilterValue]] = {}
        for name, raw in self.f.items():
            values = raw if isinstance(raw, list) else [raw]
            values = [v for v in values if v is not None and str(v).strip() != ""]
            if values:
                out[name] = values
        return out


class FacetValue(BaseModel):
    label: str
    value: Any
    count: int
    active: bool = False


class FacetResult(BaseModel):
    field: str
    label: str
    values: list[FacetValue] = []


class ProductSummary(BaseModel):
    """Product-like match as rendered by search pages and autocomplete."""
    id: Any
    title: str
    link: Optional[str] = None
    thumb: Optional[str] = None
    desc: Optional[str] = None
    price: Optional[str] = None
    original_price: Optional[str] = None
    model: Optional[str] = None


class SearchResponse(BaseModel):
    q: str = ""
    total_matches: int
    offset: int = 0
    limit: int
    matches: list[ProductSummary] = []
    facets: list[FacetResult] = []


class SuggestResponse(BaseModel):
    suggestions: list[str] = []
    products: list[ProductSummary] = []
