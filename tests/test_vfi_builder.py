"""Building, incremental updates and reads of the virtual field index."""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shop_search.adapters.sql import SqlAlchemyAdapter
from shop_search.catalog import PRODUCT_TEXT_FIELDS, product_entity
from shop_search.db.models import Product, VirtualFieldMember
from shop_search.index.builder import VirtualFieldIndexBuilder
from shop_search.errors import AdapterError
from shop_search.index.entity import EntityType

from conftest import create_schema, make_engine, seed_catalog


def _member_rows(session, product_id):
    return session.execute(
        select(VirtualFieldMember.member_id)
        .where(
            VirtualFieldMember.record_type == "Product",
            VirtualFieldMember.record_id == product_id,
            VirtualFieldMember.field_name == "category",
        )
        .order_by(VirtualFieldMember.position)
    )


class TestBuild:
    def test_build_stores_flattened_values(self, catalog_db) -> None:
        async def run() -> None:
            async with catalog_db() as (session, cat):
                p4 = cat.p4
                assert p4.vfi_price == Decimal("5")
                assert p4.vfi_category == ">ProductCategory|%d|%d|%d|" % (cat.c1.id, cat.c2.id, cat.c3.id)
                assert cat.p1.vfi_category == ">ProductCategory|%d|" % cat.c1.id
                assert cat.p3.vfi_category == ">ProductCategory|%d|%d|" % (cat.c2.id, cat.c3.id)

                result = await _member_rows(session, p4.id)
                assert list(result.scalars().all()) == [cat.c1.id, cat.c2.id, cat.c3.id]

        asyncio.run(run())

    def test_build_reports_counts(self, catalog_db) -> None:
        async def run() -> None:
            async with catalog_db(build_index=False) as (session, _cat):
                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session), chunk_size=3)
                report = await builder.build(product_entity())
                assert (report.built, report.skipped, report.errors) == (4, 0, [])

        asyncio.run(run())

    def test_rebuild_is_repeatable(self, catalog_db) -> None:
        async def run() -> None:
            async with catalog_db() as (session, cat):
                await VirtualFieldIndexBuilder(SqlAlchemyAdapter(session)).build(product_entity())
                result = await _member_rows(session, cat.p4.id)
                assert len(result.scalars().all()) == 3

        asyncio.run(run())

    def test_failing_accessor_skips_record(self, catalog_db, caplog) -> None:
        def strict_price(product):
            if product.model == "MNO":
                raise ValueError("no price list for MNO")
            return product.selling_price

        entity = EntityType(
            name="Product",
            model=Product,
            text_fields=PRODUCT_TEXT_FIELDS,
            accessors={"strict_price": strict_price},
            vfi={"price": "strict_price", "category": ("parent", "categories")},
        )

        async def run() -> None:
            async with catalog_db(build_index=False) as (session, cat):
                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                with caplog.at_level(logging.WARNING, logger="shop_search.index.builder"):
                    report = await builder.build(entity)

                assert report.built == 3
                assert report.skipped == 1
                assert report.errors[0].record_id == cat.p4.id
                assert report.errors[0].field_name == "price"
                assert "no price list for MNO" in caplog.text

                # Nothing is written for the skipped record
                assert cat.p4.vfi_price is None
                assert cat.p4.vfi_category is None
                assert cat.p1.vfi_price == Decimal("10.50")

        asyncio.run(run())


class TestBuildOne:
    def test_record_without_members_gets_empty_list(self, catalog_db) -> None:
        async def run() -> None:
            async with catalog_db() as (session, _cat):
                loner = Product(title="Loose Screw", model="ZZZ", base_price=Decimal("1"), categories=[])
                session.add(loner)
                await session.flush()

                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                await builder.build_one(product_entity(), loner)
                assert loner.vfi_category == ">ProductCategory||"
                assert await builder.get_vfi(product_entity(), loner, "category") == []

        asyncio.run(run())

    def test_changed_fields_limit_recomputation(self, catalog_db) -> None:
        entity = EntityType(
            name="Product",
            model=Product,
            text_fields=PRODUCT_TEXT_FIELDS,
            vfi={
                "price": {"source": "selling_price", "depends_on": ["base_price", "sale_price"]},
                "category": {"source": ["parent", "categories"], "depends_on": ["parent_id", "categories"]},
            },
        )

        async def run() -> None:
            async with catalog_db() as (session, cat):
                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                p1 = cat.p1
                p1.vfi_category = "stale"
                p1.sale_price = Decimal("3")

                await builder.build_one(entity, p1, changed_fields={"title"})
                assert p1.vfi_price == Decimal("10.50")

                await builder.build_one(entity, p1, changed_fields={"sale_price"})
                assert p1.vfi_price == Decimal("3")
                assert p1.vfi_category == "stale"

                await builder.build_one(entity, p1)
                assert p1.vfi_category == ">ProductCategory|%d|" % cat.c1.id

        asyncio.run(run())


class TestGetVfi:
    def test_simple_and_list_values(self, catalog_db) -> None:
        async def run() -> None:
            async with catalog_db() as (session, cat):
                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                entity = product_entity()

                assert await builder.get_vfi(entity, cat.p4, "price") == Decimal("5")
                categories = await builder.get_vfi(entity, cat.p4, "category")
                assert [c.title for c in categories] == ["Farm Stuff", "Clothing", "Books"]
                assert await builder.get_vfi(entity, cat.p4, "colour") is None

        asyncio.run(run())

    def test_unbuilt_list_is_none(self, catalog_db) -> None:
        async def run() -> None:
            async with catalog_db(build_index=False) as (session, cat):
                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                assert await builder.get_vfi(product_entity(), cat.p2, "category") is None

        asyncio.run(run())


def _strict_entity(fails_on_title: str) -> EntityType:
    def strict_price(product):
        if product.title == fails_on_title:
            raise ValueError(f"no price list for {product.title}")
        return product.selling_price

    return EntityType(
        name="Product",
        model=Product,
        text_fields=PRODUCT_TEXT_FIELDS,
        accessors={"strict_price": strict_price},
        vfi={"price": "strict_price", "category": ("parent", "categories")},
    )


async def _stored_index(factory) -> list[tuple]:
    async with factory() as session:
        result = await session.execute(
            select(Product.title, Product.vfi_price, Product.vfi_category).order_by(Product.id)
        )
        return [tuple(row) for row in result.all()]


class TestBuildCommits:
    """build() commits between chunks; sessions that expire on commit must keep working."""

    @pytest.mark.parametrize("chunk_size", [1, 3])
    def test_default_session_settings(self, chunk_size) -> None:
        async def run() -> None:
            engine = make_engine()
            try:
                await create_schema(engine)
                factory = async_sessionmaker(engine, class_=AsyncSession)
                async with factory() as session:
                    await seed_catalog(session)
                    builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session), chunk_size=chunk_size)
                    report = await builder.build(product_entity())
                    assert (report.built, report.skipped) == (4, 0)

                rows = await _stored_index(factory)
                assert rows[0] == ("Green Pickles", Decimal("10.50"), ">ProductCategory|1|")
                assert rows[3] == ("Farm Tractor", Decimal("5"), ">ProductCategory|1|2|3|")
            finally:
                await engine.dispose()

        asyncio.run(run())

    def test_skipped_record_inside_a_chunk(self) -> None:
        async def run() -> None:
            engine = make_engine()
            try:
                await create_schema(engine)
                factory = async_sessionmaker(engine, class_=AsyncSession)
                async with factory() as session:
                    await seed_catalog(session)
                    builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session), chunk_size=3)
                    report = await builder.build(_strict_entity("Green Pickles"))
                    assert (report.built, report.skipped) == (3, 1)
                    assert report.errors[0].record_id == 1

                rows = await _stored_index(factory)
                assert rows[0] == ("Green Pickles", None, None)
                assert [r[1] for r in rows[1:]] == [Decimal("15"), Decimal("5"), Decimal("5")]
            finally:
                await engine.dispose()

        asyncio.run(run())


class TestStorageFailures:
    def test_storage_error_in_accessor_is_not_a_skip(self, catalog_db) -> None:
        def flaky_price(product):
            raise OperationalError("SELECT base_price FROM products", {}, Exception("connection lost"))

        entity = EntityType(
            name="Product", model=Product, accessors={"flaky_price": flaky_price}, vfi={"price": "flaky_price"}
        )

        async def run() -> None:
            async with catalog_db(build_index=False) as (session, _cat):
                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                with pytest.raises(AdapterError):
                    await builder.build(entity)

        asyncio.run(run())

    def test_missing_tables_raise_adapter_error(self) -> None:
        async def run() -> None:
            engine = make_engine()
            try:
                async with async_sessionmaker(engine, class_=AsyncSession)() as session:
                    builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                    with pytest.raises(AdapterError):
                        await builder.build(product_entity())
            finally:
                await engine.dispose()

        asyncio.run(run())


class TestRelationSource:
    def test_one_hop_attribute(self, catalog_db) -> None:
        entity = EntityType(name="Product", model=Product, vfi={"price": "parent.sort"})

        async def run() -> None:
            async with catalog_db(build_index=False) as (session, cat):
                builder = VirtualFieldIndexBuilder(SqlAlchemyAdapter(session))
                report = await builder.build(entity)
                assert report.built == 4
                assert [p.vfi_price for p in cat.products] == [1, 3, 2, 1]

                orphan = Product(title="Loose Screw", base_price=Decimal("1"), vfi_price=Decimal("9"), categories=[])
                session.add(orphan)
                await session.flush()
                await builder.build_one(entity, orphan)
                assert orphan.vfi_price is None
                assert await builder.get_vfi(entity, orphan, "price") is None

        asyncio.run(run())
