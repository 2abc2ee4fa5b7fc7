import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shop_search import __version__
from shop_search.catalog import get_search_config
from shop_search.core import get_settings, limiter
from shop_search.errors import ConfigError
from shop_search.routers import ROUTERS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logging.getLogger("shop_search").setLevel(get_settings().log_level.upper())
    # Resolve the catalog config up front so a bad VFI/facet setup fails at startup
    get_search_config()
    yield


async def _config_error_handler(_request: Request, exc: ConfigError) -> JSONResponse:
    logger.warning("Rejected search request: %s", exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


app = FastAPI(
    title="Shop Search API",
    description="Catalog search with virtual field facets and logged-query suggestions.",
    version=__version__,
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(ConfigError, _config_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in ROUTERS:
    app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
