"""Shared fixtures: an in-memory catalog of four products across three categories.

    c1 Farm Stuff (sort 1)   c2 Clothing (sort 2)   c3 Books (sort 3)

    p1 Green Pickles            model ABC  price 10.50       parent c1
    p2 Big Book of Funny Stuff  model XYZ  price 15          parent c3
    p3 Purple Socks             model ABC  price 5           parent c2, also in c3
    p4 Farm Tractor             model MNO  base 8, sale 5    parent c1, also in c2 and c3
"""
from __future__ import annotations

import dataclasses
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shop_search.adapters.sql import SqlAlchemyAdapter
from shop_search.catalog import build_search_config, product_entity
from shop_search.core.config import Settings
from shop_search.db.models import Product, ProductCategory
from shop_search.db.session import Base
from shop_search.index.builder import VirtualFieldIndexBuilder


@dataclasses.dataclass
class Catalog:
    c1: ProductCategory
    c2: ProductCategory
    c3: ProductCategory
    p1: Product
    p2: Product
    p3: Product
    p4: Product

    @property
    def products(self) -> list[Product]:
        return [self.p1, self.p2, self.p3, self.p4]


async def seed_catalog(session: AsyncSession) -> Catalog:
    c1 = ProductCategory(title="Farm Stuff", url_segment="farm-stuff", sort=1)
    c2 = ProductCategory(title="Clothing", url_segment="clothing", sort=2)
    c3 = ProductCategory(title="Books", url_segment="books", sort=3)
    session.add_all([c1, c2, c3])
    await session.flush()

    p1 = Product(
        title="Green Pickles",
        content="Crunchy dill pickles, packed in a glass jar.",
        model="ABC",
        base_price=Decimal("10.50"),
        url_segment="green-pickles",
        parent=c1,
        categories=[],
    )
    p2 = Product(
        title="Big Book of Funny Stuff",
        content="Jokes about little green men from outer space.",
        model="XYZ",
        base_price=Decimal("15"),
        url_segment="big-book",
        parent=c3,
        categories=[],
    )
    p3 = Product(
        title="Purple Socks",
        content="Bright red stripes on soft cotton.",
        model="ABC",
        base_price=Decimal("5"),
        url_segment="purple-socks",
        parent=c2,
        categories=[c3],
    )
    p4 = Product(
        title="Farm Tractor",
        content="Plows the north field in half the time.",
        model="MNO",
        base_price=Decimal("8"),
        sale_price=Decimal("5"),
        url_segment="farm-tractor",
        parent=c1,
        categories=[c2, c3],
    )
    session.add_all([p1, p2, p3, p4])
    await session.commit()
    return Catalog(c1=c1, c2=c2, c3=c3, p1=p1, p2=p2, p3=p3, p4=p4)


def make_engine(url: str = "sqlite+aiosqlite:///:memory:", **kwargs):
    return create_async_engine(url, echo=False, **kwargs)


def make_session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def create_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def open_catalog(build_index: bool = True) -> AsyncIterator[tuple[AsyncSession, Catalog]]:
    """Fresh in-memory database seeded with the catalog; the index is built unless asked not to."""
    engine = make_engine()
    try:
        await create_schema(engine)
        async with make_session_factory(engine)() as session:
            catalog = await seed_catalog(session)
            if build_index:
                await VirtualFieldIndexBuilder(SqlAlchemyAdapter(session)).build(product_entity())
            yield session, catalog
    finally:
        await engine.dispose()


@pytest.fixture
def catalog_db():
    return open_catalog


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def search_config(settings):
    return build_search_config(settings)
