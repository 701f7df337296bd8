"""
API Integration Tests — Inventory endpoints with seeded data.
"""

import uuid

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestInventoryAPI:
    async def test_list_inventory(self, client: AsyncClient, catalog):
        resp = await client.get("/api/v1/inventory/")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 4
        assert {"productName", "sku", "warehouseName", "quantity", "minQuantity", "status"} <= set(data[0])

    async def test_list_filter_by_warehouse(self, client: AsyncClient, catalog):
        resp = await client.get("/api/v1/inventory/", params={"warehouseId": str(catalog.other_warehouse_id)})
        data = resp.json()
        assert [(r["sku"], r["quantity"]) for r in data] == [("SKU-A", 3)]

    async def test_list_search(self, client: AsyncClient, catalog):
        resp = await client.get("/api/v1/inventory/", params={"search": "component b"})
        data = resp.json()
        assert [r["sku"] for r in data] == ["SKU-B"]
        assert data[0]["status"] == "low"

    async def test_low_stock(self, client: AsyncClient, catalog):
        resp = await client.get("/api/v1/inventory/low-stock")
        assert resp.status_code == 200
        data = resp.json()
        assert [(r["productId"], r["warehouseId"]) for r in data] == [
            (str(catalog.product_b_id), str(catalog.warehouse_id))
        ]
        assert data[0]["quantity"] == 4
        assert data[0]["minQuantity"] == 5
        assert data[0]["warehouseName"] == "Main Warehouse"

    async def test_low_stock_limit_and_warehouse(self, client: AsyncClient, catalog):
        resp = await client.get(
            "/api/v1/inventory/low-stock", params={"limit": 1, "warehouseId": str(catalog.other_warehouse_id)}
        )
        assert resp.json() == []

    async def test_product_inventory(self, client: AsyncClient, catalog):
        resp = await client.get(f"/api/v1/inventory/products/{catalog.product_a_id}")
        assert resp.status_code == 200
        assert sorted(r["quantity"] for r in resp.json()) == [3, 10]

    async def test_product_inventory_for_bundle_rejected(self, client: AsyncClient, catalog):
        resp = await client.get(f"/api/v1/inventory/products/{catalog.bundle_x_id}")
        assert resp.status_code == 400


@pytest.mark.asyncio
class TestInventoryAssignmentAPI:
    async def test_create_record(self, client: AsyncClient, catalog):
        resp = await client.post(
            "/api/v1/inventory/",
            json={
                "productId": str(catalog.product_p_id),
                "warehouseId": str(catalog.other_warehouse_id),
                "quantity": 0,
                "minQuantity": 1,
            },
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "out_of_stock"
        assert data["warehouseName"] == "Overflow Warehouse"

    async def test_create_duplicate(self, client: AsyncClient, catalog):
        resp = await client.post(
            "/api/v1/inventory/",
            json={"productId": str(catalog.product_p_id), "warehouseId": str(catalog.warehouse_id)},
        )
        assert resp.status_code == 409

    async def test_create_for_bundle_rejected(self, client: AsyncClient, catalog):
        resp = await client.post(
            "/api/v1/inventory/",
            json={"productId": str(catalog.bundle_x_id), "warehouseId": str(catalog.warehouse_id), "quantity": 5},
        )
        assert resp.status_code == 400

    async def test_create_unknown_warehouse(self, client: AsyncClient, catalog):
        resp = await client.post(
            "/api/v1/inventory/",
            json={"productId": str(catalog.product_b_id), "warehouseId": str(uuid.uuid4())},
        )
        assert resp.status_code == 404

    async def test_create_negative_quantity(self, client: AsyncClient, catalog):
        resp = await client.post(
            "/api/v1/inventory/",
            json={
                "productId": str(catalog.product_b_id),
                "warehouseId": str(catalog.other_warehouse_id),
                "quantity": -1,
            },
        )
        assert resp.status_code == 422

    async def test_update_min_quantity(self, client: AsyncClient, catalog):
        records = (await client.get(f"/api/v1/inventory/products/{catalog.product_p_id}")).json()

        resp = await client.patch(f"/api/v1/inventory/{records[0]['id']}", json={"minQuantity": 20})

        assert resp.status_code == 200
        assert resp.json()["minQuantity"] == 20
        assert resp.json()["status"] == "low"

    async def test_update_unknown_record(self, client: AsyncClient, catalog):
        resp = await client.patch(f"/api/v1/inventory/{uuid.uuid4()}", json={"minQuantity": 1})
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestAdjustmentsAPI:
    async def test_receive_stock(self, client: AsyncClient, catalog, stock_level):
        resp = await client.post(
            "/api/v1/inventory/adjustments",
            json={
                "productId": str(catalog.product_b_id),
                "warehouseId": str(catalog.warehouse_id),
                "change": 6,
                "notes": "Delivery",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["quantity"] == 10
        assert resp.json()["status"] == "ok"
        assert await stock_level(catalog.product_b_id, catalog.warehouse_id) == 10

    async def test_overdraw_conflict(self, client: AsyncClient, catalog, stock_level):
        resp = await client.post(
            "/api/v1/inventory/adjustments",
            json={"productId": str(catalog.product_b_id), "warehouseId": str(catalog.warehouse_id), "change": -5},
        )
        assert resp.status_code == 409
        assert await stock_level(catalog.product_b_id, catalog.warehouse_id) == 4

    async def test_missing_record(self, client: AsyncClient, catalog):
        resp = await client.post(
            "/api/v1/inventory/adjustments",
            json={"productId": str(catalog.product_b_id), "warehouseId": str(catalog.other_warehouse_id), "change": 1},
        )
        assert resp.status_code == 404

    async def test_zero_change(self, client: AsyncClient, catalog):
        resp = await client.post(
            "/api/v1/inventory/adjustments",
            json={"productId": str(catalog.product_b_id), "warehouseId": str(catalog.warehouse_id), "change": 0},
        )
        assert resp.status_code == 400


@pytest.mark.asyncio
class TestWarehousesAPI:
    async def test_create_and_list(self, client: AsyncClient):
        resp = await client.post("/api/v1/warehouses/", json={"name": "East", "state": "NY", "zipCode": "10001"})
        assert resp.status_code == 201
        assert resp.json()["zipCode"] == "10001"

        resp = await client.get("/api/v1/warehouses/")
        assert [w["name"] for w in resp.json()] == ["East"]

    async def test_delete_refused_while_stocked(self, client: AsyncClient, catalog):
        resp = await client.delete(f"/api/v1/warehouses/{catalog.warehouse_id}")
        assert resp.status_code == 409

    async def test_delete_refused_while_orders_assigned(self, client: AsyncClient, catalog, make_order):
        warehouse_id = (await client.post("/api/v1/warehouses/", json={"name": "Dock"})).json()["warehouseId"]
        await make_order([(catalog.product_p_id, uuid.UUID(warehouse_id), 1)])

        resp = await client.delete(f"/api/v1/warehouses/{warehouse_id}")

        assert resp.status_code == 409
        assert "order items" in resp.json()["detail"]
        assert (await client.get(f"/api/v1/warehouses/{warehouse_id}")).status_code == 200

    async def test_delete_empty_warehouse(self, client: AsyncClient):
        warehouse_id = (await client.post("/api/v1/warehouses/", json={"name": "Temp"})).json()["warehouseId"]
        resp = await client.delete(f"/api/v1/warehouses/{warehouse_id}")
        assert resp.status_code == 204
        assert (await client.get(f"/api/v1/warehouses/{warehouse_id}")).status_code == 404
