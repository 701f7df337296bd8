"""
Test Configuration — Fixtures for async DB, test client, and a seeded catalog.

Each test gets its own in-memory SQLite database. The engine and the app
share one session, so commits and rollbacks made by the code under test are
real and visible to the assertions.
"""

import uuid
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_db
from api.main import app
from db.models import BundleComponent, InventoryRecord, Order, OrderItem, Product, Warehouse
from db.session import Base

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    session_factory = async_sessionmaker(test_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(test_db):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@dataclass
class Catalog:
    """IDs of the seeded catalog. IDs only: ORM instances expire on rollback."""

    warehouse_id: uuid.UUID
    other_warehouse_id: uuid.UUID
    product_a_id: uuid.UUID
    product_b_id: uuid.UUID
    product_p_id: uuid.UUID
    bundle_x_id: uuid.UUID


@pytest.fixture
async def catalog(test_db) -> Catalog:
    """
    Warehouse W with 10×A, 4×B and 10×P; a second warehouse with 3×A.
    Bundle X = 2×A + 1×B.
    """
    warehouse = Warehouse(name="Main Warehouse", city="Minneapolis", state="MN")
    other = Warehouse(name="Overflow Warehouse", city="St. Paul", state="MN")
    product_a = Product(sku="SKU-A", name="Component A", price=10.0)
    product_b = Product(sku="SKU-B", name="Component B", price=25.0)
    product_p = Product(sku="SKU-P", name="Product P", price=5.0)
    bundle_x = Product(
        sku="SKU-X",
        name="Bundle X",
        price=40.0,
        is_bundle=True,
        bundle_pricing_type="calculated",
        bundle_discount_percentage=10.0,
    )
    test_db.add_all([warehouse, other, product_a, product_b, product_p, bundle_x])
    await test_db.flush()

    test_db.add_all(
        [
            BundleComponent(
                bundle_id=bundle_x.product_id,
                component_product_id=product_a.product_id,
                quantity_per_bundle=2,
                sort_order=0,
            ),
            BundleComponent(
                bundle_id=bundle_x.product_id,
                component_product_id=product_b.product_id,
                quantity_per_bundle=1,
                sort_order=1,
            ),
            InventoryRecord(
                product_id=product_a.product_id, warehouse_id=warehouse.warehouse_id, quantity=10, min_quantity=5
            ),
            InventoryRecord(
                product_id=product_b.product_id, warehouse_id=warehouse.warehouse_id, quantity=4, min_quantity=5
            ),
            InventoryRecord(
                product_id=product_p.product_id, warehouse_id=warehouse.warehouse_id, quantity=10, min_quantity=2
            ),
            InventoryRecord(
                product_id=product_a.product_id, warehouse_id=other.warehouse_id, quantity=3, min_quantity=0
            ),
        ]
    )
    await test_db.commit()

    return Catalog(
        warehouse_id=warehouse.warehouse_id,
        other_warehouse_id=other.warehouse_id,
        product_a_id=product_a.product_id,
        product_b_id=product_b.product_id,
        product_p_id=product_p.product_id,
        bundle_x_id=bundle_x.product_id,
    )


@pytest.fixture
def make_order(test_db):
    """Factory: persist an order with (product_id, warehouse_id, quantity) line items."""

    async def _make(items, status="Paid", customer_name="Test Customer") -> uuid.UUID:
        order = Order(status=status, customer_name=customer_name)
        test_db.add(order)
        await test_db.flush()
        for product_id, warehouse_id, quantity in items:
            test_db.add(
                OrderItem(
                    order_id=order.order_id,
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    quantity=quantity,
                    price=1.0,
                )
            )
        await test_db.commit()
        return order.order_id

    return _make


@pytest.fixture
def stock_level(test_db):
    """Read the stored quantity straight from the table, bypassing the identity map."""

    async def _read(product_id: uuid.UUID, warehouse_id: uuid.UUID) -> int | None:
        result = await test_db.execute(
            select(InventoryRecord.quantity).where(
                InventoryRecord.product_id == product_id,
                InventoryRecord.warehouse_id == warehouse_id,
            )
        )
        return result.scalar_one_or_none()

    return _read


@pytest.fixture
def order_status(test_db):
    async def _read(order_id: uuid.UUID) -> str:
        result = await test_db.execute(select(Order.status).where(Order.order_id == order_id))
        return result.scalar_one()

    return _read
