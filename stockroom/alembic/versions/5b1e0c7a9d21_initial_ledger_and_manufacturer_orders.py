"""initial ledger and manufacturer orders

Revision ID: 5b1e0c7a9d21
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7a9d21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUS = sa.Enum(
    "pending", "confirmed", "shipped", "delivered", "cancelled",
    name="manufacturer_order_status",
)
ADJUSTMENT_KIND = sa.Enum("adjustment", "overwrite", "receipt", name="adjustment_kind")


def upgrade() -> None:
    op.create_table(
        "inventory",
        sa.Column("sku", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(12, 2)),
        # no non-negative check: negative on-hand is an application setting
        sa.Column("quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("location", sa.String(128)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("min_stock >= 0", name="ck_inventory_min_stock_nonneg"),
    )

    op.create_table(
        "manufacturers",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("lead_time", sa.String(64)),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "manufacturer_orders",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column("order_number", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "manufacturer_id",
            sa.BigInteger,
            sa.ForeignKey("manufacturers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="pending"),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expected_delivery", sa.Date),
        sa.Column("actual_delivery", sa.Date),
        sa.Column("tracking_number", sa.String(128)),
        sa.Column("tracking_url", sa.Text),
        sa.Column("carrier", sa.String(64)),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text),
        sa.Column("inventory_applied_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_manufacturer_orders_manufacturer_id", "manufacturer_orders", ["manufacturer_id"])
    op.create_index("ix_manufacturer_orders_status", "manufacturer_orders", ["status"])

    op.create_table(
        "manufacturer_order_items",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column(
            "order_id",
            sa.BigInteger,
            sa.ForeignKey("manufacturer_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("quantity_ordered", sa.Integer, nullable=False),
        sa.Column("quantity_received", sa.Integer, nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity_ordered > 0", name="ck_mo_item_qty_pos"),
        sa.CheckConstraint(
            "quantity_received >= 0 AND quantity_received <= quantity_ordered",
            name="ck_mo_item_received_range",
        ),
        sa.CheckConstraint("unit_cost >= 0", name="ck_mo_item_unit_cost_nonneg"),
    )
    op.create_index("ix_manufacturer_order_items_order_id", "manufacturer_order_items", ["order_id"])
    op.create_index("ix_manufacturer_order_items_sku", "manufacturer_order_items", ["sku"])

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column("sku", sa.String(64), sa.ForeignKey("inventory.sku", ondelete="RESTRICT"), nullable=False),
        sa.Column("kind", ADJUSTMENT_KIND, nullable=False),
        sa.Column("delta", sa.Integer, nullable=False),
        sa.Column("quantity_after", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(255)),
        sa.Column("idempotency_key", sa.String(64), unique=True),
        sa.Column(
            "manufacturer_order_id",
            sa.BigInteger,
            sa.ForeignKey("manufacturer_orders.id", ondelete="SET NULL"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_stock_adjustments_sku_time", "stock_adjustments", ["sku", "created_at"])
    op.create_index(
        "ix_stock_adjustments_manufacturer_order_id",
        "stock_adjustments",
        ["manufacturer_order_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_stock_adjustments_manufacturer_order_id", table_name="stock_adjustments")
    op.drop_index("ix_stock_adjustments_sku_time", table_name="stock_adjustments")
    op.drop_table("stock_adjustments")
    op.drop_index("ix_manufacturer_order_items_sku", table_name="manufacturer_order_items")
    op.drop_index("ix_manufacturer_order_items_order_id", table_name="manufacturer_order_items")
    op.drop_table("manufacturer_order_items")
    op.drop_index("ix_manufacturer_orders_status", table_name="manufacturer_orders")
    op.drop_index("ix_manufacturer_orders_manufacturer_id", table_name="manufacturer_orders")
    op.drop_table("manufacturer_orders")
    op.drop_table("manufacturers")
    op.drop_table("inventory")
    ORDER_STATUS.drop(op.get_bind(), checkfirst=True)
    ADJUSTMENT_KIND.drop(op.get_bind(), checkfirst=True)
