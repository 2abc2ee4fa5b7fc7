from sqlalchemy.ext.asyncio import AsyncAttrs, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from shop_search.core.config import get_settings


def async_database_url(url: str) -> str:
    """Support both postgres:// and postgresql+asyncpg:// style URLs."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://") and "asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def sync_database_url(url: str) -> str:
    """Driver-less form of the URL for sync tooling such as Alembic (psycopg2)."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url.replace("postgresql+asyncpg://", "postgresql://", 1)


_settings = get_settings()
database_url = async_database_url(_settings.database_url)

engine = create_async_engine(
    database_url,
    echo=_settings.sql_echo,
    poolclass=NullPool if "render.com" in database_url else None,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


class Base(AsyncAttrs, DeclarativeBase):
    pass
