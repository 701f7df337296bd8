"""
Warehouses Router — stock locations.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from api.schemas import CamelModel
from db.models import InventoryMovement, InventoryRecord, OrderItem, Warehouse

router = APIRouter(prefix="/api/v1/warehouses", tags=["warehouses"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class WarehouseCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = None
    city: str | None = None
    state: str | None = Field(None, min_length=2, max_length=2)
    zip_code: str | None = None


class WarehouseUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = None
    city: str | None = None
    state: str | None = Field(None, min_length=2, max_length=2)
    zip_code: str | None = None


class WarehouseResponse(CamelModel):
    warehouse_id: UUID
    name: str
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    created_at: datetime
    updated_at: datetime


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[WarehouseResponse])
async def list_warehouses(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List all warehouses."""
    result = await db.execute(select(Warehouse).order_by(Warehouse.name).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{warehouse_id}", response_model=WarehouseResponse)
async def get_warehouse(
    warehouse_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single warehouse by ID."""
    warehouse = await db.get(Warehouse, warehouse_id)
    if not warehouse:
        raise HTTPException(status_code=404, detail="Warehouse not found")
    return warehouse


@router.post("/", response_model=WarehouseResponse, status_code=201)
async def create_warehouse(
    body: WarehouseCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new warehouse."""
    warehouse = Warehouse(**body.model_dump())
    db.add(warehouse)
    await db.commit()
    await db.refresh(warehouse)
    return warehouse


@router.patch("/{warehouse_id}", response_model=WarehouseResponse)
async def update_warehouse(
    warehouse_id: UUID,
    update: WarehouseUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a warehouse."""
    warehouse = await db.get(Warehouse, warehouse_id)
    if not warehouse:
        raise HTTPException(status_code=404, detail="Warehouse not found")

    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(warehouse, field, value)
    warehouse.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(warehouse)
    return warehouse


@router.delete("/{warehouse_id}", status_code=204)
async def delete_warehouse(
    warehouse_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Delete an unused warehouse.

    Warehouses still referenced by inventory records, order items or the
    movement ledger are kept.
    """
    warehouse = await db.get(Warehouse, warehouse_id)
    if not warehouse:
        raise HTTPException(status_code=404, detail="Warehouse not found")

    references = (
        (InventoryRecord.id, InventoryRecord.warehouse_id, "inventory records"),
        (OrderItem.item_id, OrderItem.warehouse_id, "order items"),
        (InventoryMovement.movement_id, InventoryMovement.warehouse_id, "inventory movements"),
    )
    for key, column, label in references:
        result = await db.execute(select(func.count(key)).where(column == warehouse_id))
        if result.scalar():
            raise HTTPException(status_code=409, detail=f"Warehouse is still referenced by {label}")

    await db.delete(warehouse)
    await db.commit()
