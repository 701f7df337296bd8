"""
FulfillOps Database Models

Tables for the inventory consistency engine.

Tables:
  Catalog:
  1. products             - Sellable products (+ bundle flag and bundle pricing)
  2. warehouses           - Stock locations
  3. bundle_components    - Component requirements of bundle products

  Stock:
  4. inventory_records    - Quantity per (product, warehouse) with reorder watermark
  5. inventory_movements  - Ledger of every applied quantity change

  Orders:
  6. orders               - Customer orders and their fulfillment status
  7. order_items          - Order line items (warehouse assigned before fulfillment)
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship

from db.session import Base


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


def UUID(as_uuid=True):
    return GUID()


# ─── 1. Products ────────────────────────────────────────────────────────────


class Product(Base):
    __tablename__ = "products"

    product_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sku = Column(String(100), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    is_bundle = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    bundle_pricing_type = Column(String(20), nullable=False, default="calculated")
    bundle_discount_percentage = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_products_is_bundle", "is_bundle"),
        CheckConstraint("price >= 0", name="ck_product_price_positive"),
        CheckConstraint("bundle_pricing_type IN ('calculated', 'fixed')", name="ck_product_bundle_pricing_type"),
        CheckConstraint(
            "bundle_discount_percentage >= 0 AND bundle_discount_percentage <= 100",
            name="ck_product_bundle_discount_range",
        ),
    )


# ─── 2. Warehouses ──────────────────────────────────────────────────────────


class Warehouse(Base):
    __tablename__ = "warehouses"

    warehouse_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    city = Column(String(100))
    state = Column(String(2))
    zip_code = Column(String(10))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ─── 3. Bundle Components ───────────────────────────────────────────────────


class BundleComponent(Base):
    """One component requirement of a bundle product."""

    __tablename__ = "bundle_components"

    component_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    bundle_id = Column(
        UUID(as_uuid=True), ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False
    )
    component_product_id = Column(
        UUID(as_uuid=True), ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False
    )
    quantity_per_bundle = Column(Integer, nullable=False, default=1)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("bundle_id", "component_product_id", name="uq_bundle_component"),
        Index("ix_bundle_components_bundle", "bundle_id", "sort_order"),
        Index("ix_bundle_components_component", "component_product_id"),
        CheckConstraint("quantity_per_bundle > 0", name="ck_bundle_component_qty_positive"),
        CheckConstraint("bundle_id <> component_product_id", name="ck_bundle_component_not_self"),
    )

    component_product = relationship("Product", foreign_keys=[component_product_id])


# ─── 4. Inventory Records ───────────────────────────────────────────────────


class InventoryRecord(Base):
    __tablename__ = "inventory_records"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.product_id"), nullable=False)
    warehouse_id = Column(UUID(as_uuid=True), ForeignKey("warehouses.warehouse_id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    min_quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        Index("ix_inventory_warehouse", "warehouse_id"),
        CheckConstraint("quantity >= 0", name="ck_inventory_qty_positive"),
        CheckConstraint("min_quantity >= 0", name="ck_inventory_min_qty_positive"),
    )


# ─── 5. Inventory Movements ─────────────────────────────────────────────────


class InventoryMovement(Base):
    """Append-only ledger of applied quantity changes."""

    __tablename__ = "inventory_movements"

    movement_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.product_id"), nullable=False)
    warehouse_id = Column(UUID(as_uuid=True), ForeignKey("warehouses.warehouse_id"), nullable=False)
    change = Column(Integer, nullable=False)
    reason = Column(String(30), nullable=False)  # order_fulfillment, order_restore, manual_adjustment
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.order_id", ondelete="SET NULL"), nullable=True)
    order_item_id = Column(
        UUID(as_uuid=True), ForeignKey("order_items.item_id", ondelete="SET NULL"), nullable=True
    )
    is_reversal = Column(Boolean, nullable=False, default=False)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_movements_order_item", "order_item_id"),
        Index("ix_movements_product_warehouse", "product_id", "warehouse_id", "created_at"),
        CheckConstraint("change <> 0", name="ck_movement_change_nonzero"),
        CheckConstraint(
            "reason IN ('order_fulfillment', 'order_restore', 'manual_adjustment')",
            name="ck_movement_reason",
        ),
    )


# ─── 6. Orders ──────────────────────────────────────────────────────────────


class Order(Base):
    __tablename__ = "orders"

    order_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    status = Column(String(20), nullable=False, default="Proposed")
    customer_name = Column(String(255))
    notes = Column(Text)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_orders_status", "status"),
        CheckConstraint(
            "status IN ('Proposed', 'Scheduled', 'Paid', 'Complete', 'Cancelled')",
            name="ck_order_status",
        ),
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )


# ─── 7. Order Items ─────────────────────────────────────────────────────────


class OrderItem(Base):
    __tablename__ = "order_items"

    item_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.product_id"), nullable=False)
    warehouse_id = Column(UUID(as_uuid=True), ForeignKey("warehouses.warehouse_id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        CheckConstraint("quantity > 0", name="ck_order_item_qty_positive"),
        CheckConstraint("price >= 0", name="ck_order_item_price_positive"),
    )

    order = relationship("Order", back_populates="items")
