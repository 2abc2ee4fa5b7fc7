"""Initial schema: product catalog, virtual field index, search log.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "product_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("url_segment", sa.String(255), nullable=True),
        sa.Column("sort", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("product_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_product_categories_url_segment", "product_categories", ["url_segment"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("sale_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("url_segment", sa.String(255), nullable=True),
        sa.Column("image_url", sa.String(1000), nullable=True),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("product_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("vfi_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("vfi_category", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_products_model", "products", ["model"], unique=False)
    op.create_index("ix_products_vfi_price", "products", ["vfi_price"], unique=False)

    op.create_table(
        "product_category_links",
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("product_categories.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "virtual_field_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("record_type", sa.String(100), nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=False),
        sa.Column("field_name", sa.String(100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("member_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_vfm_record", "virtual_field_members", ["record_type", "record_id", "field_name"], unique=False)
    op.create_index("ix_vfm_member", "virtual_field_members", ["record_type", "field_name", "member_id"], unique=False)

    op.create_table(
        "search_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("query", sa.String(255), nullable=False),
        sa.Column("num_results", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("member_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_search_logs_query", "search_logs", ["query"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_search_logs_query", table_name="search_logs")
    op.drop_table("search_logs")
    op.drop_index("ix_vfm_member", table_name="virtual_field_members")
    op.drop_index("ix_vfm_record", table_name="virtual_field_members")
    op.drop_table("virtual_field_members")
    op.drop_table("product_category_links")
    op.drop_index("ix_products_vfi_price", table_name="products")
    op.drop_index("ix_products_model", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_product_categories_url_segment", table_name="product_categories")
    op.drop_table("product_categories")
