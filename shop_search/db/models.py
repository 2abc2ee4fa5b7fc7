from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
    Table,
)
from sqlalchemy.orm import relationship

from shop_search.core.constants import MAX_LOGGED_QUERY_LENGTH

from .session import Base


def utcnow():
    return datetime.now(timezone.utc)


product_category_links = Table(
    "product_category_links",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("product_categories.id", ondelete="CASCADE"), primary_key=True),
)


class ProductCategory(Base):
    __tablename__ = "product_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    url_segment = Column(String(255), nullable=True, index=True)
    sort = Column(Integer, nullable=False, default=0)
    parent_id = Column(Integer, ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    parent = relationship("ProductCategory", remote_side=[id])


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    model = Column(String(100), nullable=True, index=True)
    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    sale_price = Column(Numeric(12, 2), nullable=True)  # strike-through price shown when lower than base
    url_segment = Column(String(255), nullable=True)
    image_url = Column(String(1000), nullable=True)
    parent_id = Column(Integer, ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True)

    # Virtual field index columns (see shop_search.catalog.PRODUCT_VFI_SPEC)
    vfi_price = Column(Numeric(12, 2), nullable=True, index=True)
    vfi_category = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    parent = relationship("ProductCategory")
    categories = relationship(
        "ProductCategory",
        secondary=product_category_links,
        order_by="ProductCategory.id",
    )

    @property
    def selling_price(self) -> Decimal:
        """Price a customer pays: the sale price when it undercuts the base price."""
        if self.sale_price is not None and self.sale_price < self.base_price:
            return self.sale_price
        return self.base_price

    @property
    def original_price(self) -> Decimal | None:
        """Base price when on sale, otherwise None."""
        if self.selling_price < self.base_price:
            return self.base_price
        return None


class VirtualFieldMember(Base):
    """Set-valued index for list virtual fields: one row per (record, field, member)."""
    __tablename__ = "virtual_field_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_type = Column(String(100), nullable=False)
    record_id = Column(Integer, nullable=False)
    field_name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    member_id = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_vfm_record", "record_type", "record_id", "field_name"),
        Index("ix_vfm_member", "record_type", "field_name", "member_id"),
    )


class SearchLog(Base):
    __tablename__ = "search_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(String(MAX_LOGGED_QUERY_LENGTH), nullable=False, index=True)  # trimmed, case-folded, truncated
    num_results = Column(Integer, nullable=False, default=0)
    member_id = Column(Integer, nullable=False, default=0)  # 0 = anonymous
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
