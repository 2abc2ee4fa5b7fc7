from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from shop_search.core import FILTER_PARAM_PREFIX, MIN_SUGGEST_TERM_LENGTH, Settings, get_settings, limiter
from shop_search.dependencies import get_member_id, get_search_engine
from shop_search.schemas import SearchQuery, SearchResponse, SuggestResponse
from shop_search.serializers import record_to_summary
from shop_search.services.search import SearchEngine

router = APIRouter(tags=["search"])

SEARCH_RATE_LIMIT = get_settings().search_rate_limit


def _filters_from_request(request: Request) -> dict[str, str | list[str]]:
    """Collect f.<field>=value params; repeated params become a list of acceptable values."""
    collected: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        if key.startswith(FILTER_PARAM_PREFIX) and len(key) > len(FILTER_PARAM_PREFIX):
            collected.setdefault(key[len(FILTER_PARAM_PREFIX):], []).append(value)
    return {name: values[0] if len(values) == 1 else values for name, values in collected.items()}


@router.get("/search", response_model=SearchResponse)
@limiter.limit(SEARCH_RATE_LIMIT)
async def search(
    request: Request,
    engine: Annotated[SearchEngine, Depends(get_search_engine)],
    settings: Annotated[Settings, Depends(get_settings)],
    member_id: Annotated[int, Depends(get_member_id)],
    q: str = "",
    cat: str | None = None,
    sort: str | None = None,
    start: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1),
):
    query = SearchQuery(
        q=q,
        category=cat,
        f=_filters_from_request(request),
        sort=sort,
        offset=start,
        limit=limit,
    )
    result = await engine.search(query, member_id=member_id)
    return SearchResponse(
        q=query.q,
        total_matches=result.total_matches,
        offset=result.offset,
        limit=result.limit,
        matches=[record_to_summary(r, settings) for r in result.matches],
        facets=result.facets,
    )


@router.get("/search/suggest", response_model=SuggestResponse)
@limiter.limit(SEARCH_RATE_LIMIT)
async def suggest(
    request: Request,
    engine: Annotated[SearchEngine, Depends(get_search_engine)],
    settings: Annotated[Settings, Depends(get_settings)],
    term: str = Query(..., min_length=MIN_SUGGEST_TERM_LENGTH),
    cat: str | None = None,
):
    """Autocomplete: logged queries containing the term plus a few matching products (not logged)."""
    suggestions = await engine.suggest(term)
    result = await engine.search(
        SearchQuery(q=term, category=cat, limit=settings.suggest_products_limit),
        log=False,
        with_facets=False,
    )
    return SuggestResponse(
        suggestions=suggestions,
        products=[record_to_summary(r, settings) for r in result.matches],
    )
