from typing import Annotated, AsyncGenerator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from shop_search.adapters.sql import SqlAlchemyAdapter
from shop_search.catalog import get_search_config
from shop_search.core.config import SearchConfig
from shop_search.core.constants import ANONYMOUS_MEMBER_ID, MEMBER_ID_HEADER
from shop_search.db.session import async_session
from shop_search.services.search import SearchEngine


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_search_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[SearchConfig, Depends(get_search_config)],
) -> SearchEngine:
    return SearchEngine(config, SqlAlchemyAdapter(db))


async def get_member_id(
    member_id: Annotated[str | None, Header(alias=MEMBER_ID_HEADER)] = None,
) -> int:
    """Current member id from the host application's header; anonymous when absent."""
    if member_id is None or not member_id.strip():
        return ANONYMOUS_MEMBER_ID
    if not member_id.strip().isdigit():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{MEMBER_ID_HEADER} must be a non-negative integer",
        )
    return int(member_id)
