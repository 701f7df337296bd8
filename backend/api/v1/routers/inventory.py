"""
Inventory Router — stock levels, low-stock watch, assignment and adjustments.

Bundles never appear here: their stock is derived, see
GET /api/v1/products/{id}/bundle-inventory.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from sqlalchemy import case, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, get_inventory_store, get_stock_mutator
from api.schemas import CamelModel
from core.config import get_settings
from db.models import InventoryRecord, Product, Warehouse
from inventory.errors import (
    DuplicateInventoryRecordError,
    InsufficientStockError,
    InventoryValidationError,
    NotFoundError,
)
from inventory.mutator import StockMutator
from inventory.store import InventoryStore

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class InventoryItemResponse(CamelModel):
    id: UUID
    product_id: UUID
    product_name: str
    sku: str
    warehouse_id: UUID
    warehouse_name: str
    quantity: int
    min_quantity: int
    status: str  # "ok", "low", "out_of_stock"
    updated_at: datetime


class InventoryCreate(CamelModel):
    product_id: UUID
    warehouse_id: UUID
    quantity: int = Field(0, ge=0)
    min_quantity: int = Field(0, ge=0)


class InventoryUpdate(CamelModel):
    min_quantity: int = Field(..., ge=0)


class StockAdjustment(CamelModel):
    product_id: UUID
    warehouse_id: UUID
    change: int
    notes: str | None = None


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _status_case_expression():
    """SQL CASE expression that computes inventory status."""
    return case(
        (InventoryRecord.quantity == 0, literal("out_of_stock")),
        (InventoryRecord.quantity < InventoryRecord.min_quantity, literal("low")),
        else_=literal("ok"),
    ).label("status")


def _inventory_query():
    return (
        select(
            InventoryRecord.id,
            InventoryRecord.product_id,
            Product.name.label("product_name"),
            Product.sku,
            InventoryRecord.warehouse_id,
            Warehouse.name.label("warehouse_name"),
            InventoryRecord.quantity,
            InventoryRecord.min_quantity,
            InventoryRecord.updated_at,
            _status_case_expression(),
        )
        .join(Product, Product.product_id == InventoryRecord.product_id)
        .join(Warehouse, Warehouse.warehouse_id == InventoryRecord.warehouse_id)
    )


def _to_response(row) -> InventoryItemResponse:
    return InventoryItemResponse(
        id=row.id,
        product_id=row.product_id,
        product_name=row.product_name,
        sku=row.sku,
        warehouse_id=row.warehouse_id,
        warehouse_name=row.warehouse_name,
        quantity=row.quantity,
        min_quantity=row.min_quantity,
        status=row.status,
        updated_at=row.updated_at,
    )


async def _load_item(db: AsyncSession, record_id: UUID) -> InventoryItemResponse:
    result = await db.execute(_inventory_query().where(InventoryRecord.id == record_id))
    row = result.one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Inventory record not found")
    return _to_response(row)


async def _load_items(db: AsyncSession, record_ids: list[UUID]) -> list[InventoryItemResponse]:
    """Rows for the given records, keeping the caller's order."""
    if not record_ids:
        return []
    result = await db.execute(_inventory_query().where(InventoryRecord.id.in_(record_ids)))
    rows = {row.id: row for row in result.all()}
    return [_to_response(rows[record_id]) for record_id in record_ids]


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[InventoryItemResponse])
async def list_inventory(
    warehouse_id: UUID | None = Query(None, alias="warehouseId"),
    search: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    store: InventoryStore = Depends(get_inventory_store),
):
    """List stock levels; `search` matches product name or SKU."""
    records = await store.list_records(warehouse_id, search, skip, limit)
    return await _load_items(db, [record.id for record in records])


@router.get("/low-stock", response_model=list[InventoryItemResponse])
async def list_low_stock(
    limit: int | None = Query(None, ge=1, le=500),
    warehouse_id: UUID | None = Query(None, alias="warehouseId"),
    db: AsyncSession = Depends(get_db),
    store: InventoryStore = Depends(get_inventory_store),
):
    """Records whose quantity is below their minimum, most recently changed first."""
    records = await store.list_below_minimum(limit or get_settings().low_stock_default_limit, warehouse_id)
    return await _load_items(db, [record.id for record in records])


@router.get("/products/{product_id}", response_model=list[InventoryItemResponse])
async def get_product_inventory(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Stock of one simple product across all warehouses."""
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if product.is_bundle:
        raise HTTPException(
            status_code=400,
            detail="Bundle stock is derived from its components; use the bundle-inventory endpoint",
        )
    result = await db.execute(
        _inventory_query().where(InventoryRecord.product_id == product_id).order_by(Warehouse.name)
    )
    return [_to_response(row) for row in result.all()]


@router.post("/", response_model=InventoryItemResponse, status_code=201)
async def create_inventory(
    body: InventoryCreate,
    db: AsyncSession = Depends(get_db),
    store: InventoryStore = Depends(get_inventory_store),
):
    """Assign a simple product to a warehouse with an initial quantity."""
    try:
        record = await store.create(body.product_id, body.warehouse_id, body.quantity, body.min_quantity)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DuplicateInventoryRecordError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InventoryValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    await db.commit()
    return await _load_item(db, record.id)


@router.patch("/{record_id}", response_model=InventoryItemResponse)
async def update_inventory(
    record_id: UUID,
    update: InventoryUpdate,
    db: AsyncSession = Depends(get_db),
    store: InventoryStore = Depends(get_inventory_store),
):
    """
    Update the low-stock watermark of a record.

    Quantity is not editable here; stock changes go through adjustments or
    order fulfillment so every change is in the movement ledger.
    """
    try:
        await store.set_min_quantity(record_id, update.min_quantity)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    await db.commit()
    return await _load_item(db, record_id)


@router.post("/adjustments", response_model=InventoryItemResponse)
async def adjust_inventory(
    body: StockAdjustment,
    db: AsyncSession = Depends(get_db),
    mutator: StockMutator = Depends(get_stock_mutator),
):
    """Manual stock correction (receiving, stock take, damage). Never drives stock negative."""
    try:
        record = await mutator.apply_adjustment(body.product_id, body.warehouse_id, body.change, notes=body.notes)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InsufficientStockError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InventoryValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    await db.commit()
    return await _load_item(db, record.id)
