"""
Tests for FulfillmentValidator — warehouse assignment and resolved availability.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from db.models import BundleComponent, Order, Product
from fulfillment.validator import FulfillmentValidator


async def _items(db, *order_ids):
    result = await db.execute(
        select(Order).where(Order.order_id.in_(order_ids)).options(selectinload(Order.items))
    )
    return [item for order in result.scalars().all() for item in order.items]


@pytest.mark.asyncio
class TestSingleOrder:
    async def test_valid_simple_and_bundle(self, test_db, catalog, make_order):
        order_id = await make_order(
            [
                (catalog.product_p_id, catalog.warehouse_id, 10),
                (catalog.bundle_x_id, catalog.warehouse_id, 3),
            ]
        )
        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_id))

        assert result.valid
        assert result.errors == []

    async def test_insufficient_simple_product(self, test_db, catalog, make_order):
        order_id = await make_order([(catalog.product_p_id, catalog.warehouse_id, 11)])
        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_id))

        assert not result.valid
        assert result.failed_order_ids == [order_id]
        assert result.errors == [
            "Insufficient inventory for Product P at Main Warehouse. Required: 11, Available: 10"
        ]
        assert result.summary == "Insufficient inventory for one or more orders"

    async def test_bundle_names_limiting_component(self, test_db, catalog, make_order):
        order_id = await make_order([(catalog.bundle_x_id, catalog.warehouse_id, 5)])
        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_id))

        assert not result.valid
        assert "Available: 4 (limited by Component B)" in result.errors[0]

    async def test_no_inventory_record_counts_as_zero(self, test_db, catalog, make_order):
        order_id = await make_order([(catalog.product_p_id, catalog.other_warehouse_id, 1)])
        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_id))

        assert "Available: 0" in result.errors[0]

    async def test_missing_warehouse(self, test_db, catalog, make_order):
        order_d = await make_order([(catalog.product_p_id, None, 1)], customer_name="Order D")
        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_d))

        assert not result.valid
        assert result.missing_warehouse_order_ids == [order_d]
        assert result.summary == "Each line item must have a warehouse_id"
        assert result.errors_by_order[order_d] == ["Line item for Product P has no warehouse_id"]

    async def test_misconfigured_bundle_reported_not_raised(self, test_db, catalog, make_order):
        empty = Product(sku="SKU-EMPTY", name="Empty Bundle", is_bundle=True, is_active=False)
        test_db.add(empty)
        await test_db.commit()

        order_id = await make_order([(empty.product_id, catalog.warehouse_id, 1)])
        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_id))

        assert not result.valid
        assert result.errors[0].startswith("Bundle Empty Bundle cannot be fulfilled")

    async def test_does_not_mutate(self, test_db, catalog, make_order, stock_level):
        order_id = await make_order([(catalog.bundle_x_id, catalog.warehouse_id, 2)])
        await FulfillmentValidator(test_db).validate(await _items(test_db, order_id))

        assert await stock_level(catalog.product_a_id, catalog.warehouse_id) == 10
        assert await stock_level(catalog.product_b_id, catalog.warehouse_id) == 4


@pytest.mark.asyncio
class TestCombinedDemand:
    async def test_two_orders_exceeding_shared_stock_both_fail(self, test_db, catalog, make_order):
        """6 + 5 units of P against 10: each fits alone, together they do not."""
        order_a = await make_order([(catalog.product_p_id, catalog.warehouse_id, 6)])
        order_b = await make_order([(catalog.product_p_id, catalog.warehouse_id, 5)])

        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_a, order_b))

        assert not result.valid
        assert set(result.failed_order_ids) == {order_a, order_b}
        message = "Combined demand for Product P at Main Warehouse exceeds stock. Required: 11, Available: 10"
        assert result.errors == [message]
        assert result.errors_by_order[order_a] == [message]

    async def test_bundle_and_component_share_stock(self, test_db, catalog, make_order):
        """3 bundles take 6 of A; another 5 of A makes 11 > 10."""
        order_bundle = await make_order([(catalog.bundle_x_id, catalog.warehouse_id, 3)])
        order_simple = await make_order([(catalog.product_a_id, catalog.warehouse_id, 5)])

        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_bundle, order_simple))

        assert set(result.failed_order_ids) == {order_bundle, order_simple}
        assert "Combined demand for Component A" in result.errors[0]

    async def test_combined_demand_within_stock(self, test_db, catalog, make_order):
        order_a = await make_order([(catalog.product_p_id, catalog.warehouse_id, 6)])
        order_b = await make_order([(catalog.product_p_id, catalog.warehouse_id, 4)])

        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_a, order_b))

        assert result.valid

    async def test_different_warehouses_do_not_combine(self, test_db, catalog, make_order):
        order_a = await make_order([(catalog.product_a_id, catalog.warehouse_id, 9)])
        order_b = await make_order([(catalog.product_a_id, catalog.other_warehouse_id, 3)])

        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_a, order_b))

        assert result.valid

    async def test_all_problems_collected(self, test_db, catalog, make_order):
        order_missing = await make_order([(catalog.product_p_id, None, 1)])
        order_short = await make_order([(catalog.product_b_id, catalog.warehouse_id, 9)])

        result = await FulfillmentValidator(test_db).validate(await _items(test_db, order_missing, order_short))

        assert set(result.failed_order_ids) == {order_missing, order_short}
        assert result.missing_warehouse_order_ids == [order_missing]
        assert len(result.errors) == 2

    async def test_recomposed_bundle_uses_current_recipe(self, test_db, catalog, make_order):
        result = await test_db.execute(
            select(BundleComponent).where(
                BundleComponent.bundle_id == catalog.bundle_x_id,
                BundleComponent.component_product_id == catalog.product_b_id,
            )
        )
        result.scalar_one().quantity_per_bundle = 4
        await test_db.commit()

        order_id = await make_order([(catalog.bundle_x_id, catalog.warehouse_id, 2)])
        validation = await FulfillmentValidator(test_db).validate(await _items(test_db, order_id))

        assert not validation.valid
        assert "Available: 1 (limited by Component B)" in validation.errors[0]
