"""
Initial schema - catalog, warehouses, inventory ledger, orders

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Products
    op.create_table(
        "products",
        sa.Column("product_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("sku", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Float, nullable=False, server_default="0"),
        sa.Column("is_bundle", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("bundle_pricing_type", sa.String(20), nullable=False, server_default="calculated"),
        sa.Column("bundle_discount_percentage", sa.Float, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("price >= 0", name="ck_product_price_positive"),
        sa.CheckConstraint("bundle_pricing_type IN ('calculated', 'fixed')", name="ck_product_bundle_pricing_type"),
        sa.CheckConstraint(
            "bundle_discount_percentage >= 0 AND bundle_discount_percentage <= 100",
            name="ck_product_bundle_discount_range",
        ),
    )
    op.create_index("ix_products_is_bundle", "products", ["is_bundle"])

    # 2. Warehouses
    op.create_table(
        "warehouses",
        sa.Column("warehouse_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text),
        sa.Column("city", sa.String(100)),
        sa.Column("state", sa.String(2)),
        sa.Column("zip_code", sa.String(10)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 3. Bundle components
    op.create_table(
        "bundle_components",
        sa.Column("component_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "bundle_id",
            UUID(as_uuid=True),
            sa.ForeignKey("products.product_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "component_product_id",
            UUID(as_uuid=True),
            sa.ForeignKey("products.product_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("quantity_per_bundle", sa.Integer, nullable=False, server_default="1"),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("bundle_id", "component_product_id", name="uq_bundle_component"),
        sa.CheckConstraint("quantity_per_bundle > 0", name="ck_bundle_component_qty_positive"),
        sa.CheckConstraint("bundle_id <> component_product_id", name="ck_bundle_component_not_self"),
    )
    op.create_index("ix_bundle_components_bundle", "bundle_components", ["bundle_id", "sort_order"])
    op.create_index("ix_bundle_components_component", "bundle_components", ["component_product_id"])

    # 4. Inventory records
    op.create_table(
        "inventory_records",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("warehouse_id", UUID(as_uuid=True), sa.ForeignKey("warehouses.warehouse_id"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("min_quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_qty_positive"),
        sa.CheckConstraint("min_quantity >= 0", name="ck_inventory_min_qty_positive"),
    )
    op.create_index("ix_inventory_warehouse", "inventory_records", ["warehouse_id"])

    # 5. Orders
    op.create_table(
        "orders",
        sa.Column("order_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("status", sa.String(20), nullable=False, server_default="Proposed"),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("notes", sa.Text),
        sa.Column("completed_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('Proposed', 'Scheduled', 'Paid', 'Complete', 'Cancelled')",
            name="ck_order_status",
        ),
    )
    op.create_index("ix_orders_status", "orders", ["status"])

    # 6. Order items
    op.create_table(
        "order_items",
        sa.Column("item_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "order_id",
            UUID(as_uuid=True),
            sa.ForeignKey("orders.order_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("warehouse_id", UUID(as_uuid=True), sa.ForeignKey("warehouses.warehouse_id"), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("price", sa.Float, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_order_item_qty_positive"),
        sa.CheckConstraint("price >= 0", name="ck_order_item_price_positive"),
    )
    op.create_index("ix_order_items_order", "order_items", ["order_id"])

    # 7. Inventory movements (append-only ledger)
    op.create_table(
        "inventory_movements",
        sa.Column("movement_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("warehouse_id", UUID(as_uuid=True), sa.ForeignKey("warehouses.warehouse_id"), nullable=False),
        sa.Column("change", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(30), nullable=False),
        sa.Column(
            "order_id",
            UUID(as_uuid=True),
            sa.ForeignKey("orders.order_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "order_item_id",
            UUID(as_uuid=True),
            sa.ForeignKey("order_items.item_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_reversal", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("change <> 0", name="ck_movement_change_nonzero"),
        sa.CheckConstraint(
            "reason IN ('order_fulfillment', 'order_restore', 'manual_adjustment')",
            name="ck_movement_reason",
        ),
    )
    op.create_index("ix_movements_order_item", "inventory_movements", ["order_item_id"])
    op.create_index(
        "ix_movements_product_warehouse",
        "inventory_movements",
        ["product_id", "warehouse_id", "created_at"],
    )


def downgrade() -> None:
    tables = [
        "inventory_movements",
        "order_items",
        "orders",
        "inventory_records",
        "bundle_components",
        "warehouses",
        "products",
    ]
    for table in tables:
        op.drop_table(table)
