"""
Inventory Store — per-(product, warehouse) quantity ledger.

`adjust` is the only code path that changes a stored quantity. It is a single
conditional UPDATE evaluated by the database:

    UPDATE inventory_records
       SET quantity = quantity + :delta
     WHERE product_id = :product AND warehouse_id = :warehouse
       AND quantity + :delta >= 0

so two requests racing for the same row are serialized by the store and the
loser sees zero affected rows instead of driving the quantity negative.
Everything else here is a read, or inventory assignment (row creation and
min-quantity watermark), which never touches `quantity` of an existing row.
"""

import uuid
from collections.abc import Iterable
from datetime import datetime

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import InventoryRecord, Product, Warehouse
from inventory.errors import (
    BundleConfigurationError,
    DuplicateInventoryRecordError,
    InsufficientStockError,
    InventoryRecordNotFoundError,
    InventoryValidationError,
    NotFoundError,
    ProductNotFoundError,
    WarehouseNotFoundError,
)

logger = structlog.get_logger()


class InventoryStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ──────────────────────────────────────────────────────────

    async def get(
        self,
        product_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        *,
        refresh: bool = False,
    ) -> InventoryRecord | None:
        query = select(InventoryRecord).where(
            InventoryRecord.product_id == product_id,
            InventoryRecord.warehouse_id == warehouse_id,
        )
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id(self, record_id: uuid.UUID) -> InventoryRecord:
        record = await self.db.get(InventoryRecord, record_id)
        if record is None:
            raise NotFoundError(record_id, entity="Inventory record")
        return record

    async def get_all_for_product(self, product_id: uuid.UUID) -> list[InventoryRecord]:
        result = await self.db.execute(
            select(InventoryRecord)
            .where(InventoryRecord.product_id == product_id)
            .order_by(InventoryRecord.created_at)
        )
        return list(result.scalars().all())

    async def available_quantities(
        self,
        product_ids: Iterable[uuid.UUID],
        warehouse_id: uuid.UUID | None = None,
    ) -> dict[uuid.UUID, int]:
        """
        Stock per product: at one warehouse, or summed across all warehouses.

        Products without any inventory record map to 0.
        """
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}

        query = (
            select(InventoryRecord.product_id, func.coalesce(func.sum(InventoryRecord.quantity), 0))
            .where(InventoryRecord.product_id.in_(ids))
            .group_by(InventoryRecord.product_id)
        )
        if warehouse_id is not None:
            query = query.where(InventoryRecord.warehouse_id == warehouse_id)

        result = await self.db.execute(query)
        totals = {row[0]: int(row[1]) for row in result.all()}
        return {pid: totals.get(pid, 0) for pid in ids}

    async def list_below_minimum(
        self,
        limit: int = 50,
        warehouse_id: uuid.UUID | None = None,
    ) -> list[InventoryRecord]:
        """Records whose quantity has fallen under their min-quantity watermark."""
        query = select(InventoryRecord).where(InventoryRecord.quantity < InventoryRecord.min_quantity)
        if warehouse_id is not None:
            query = query.where(InventoryRecord.warehouse_id == warehouse_id)
        query = query.order_by(InventoryRecord.updated_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_records(
        self,
        warehouse_id: uuid.UUID | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[InventoryRecord]:
        query = select(InventoryRecord).join(Product, Product.product_id == InventoryRecord.product_id)
        if warehouse_id is not None:
            query = query.where(InventoryRecord.warehouse_id == warehouse_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
        query = query.order_by(InventoryRecord.updated_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ─── Mutation ───────────────────────────────────────────────────────

    async def adjust(self, product_id: uuid.UUID, warehouse_id: uuid.UUID, delta: int) -> InventoryRecord:
        """
        Apply ``quantity += delta`` as one conditional UPDATE.

        Raises InventoryRecordNotFoundError if no row exists for the pair and
        InsufficientStockError if the result would be negative. Does not commit.
        """
        result = await self.db.execute(
            update(InventoryRecord)
            .where(
                InventoryRecord.product_id == product_id,
                InventoryRecord.warehouse_id == warehouse_id,
                InventoryRecord.quantity + delta >= 0,
            )
            .values(quantity=InventoryRecord.quantity + delta, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = await self.get(product_id, warehouse_id, refresh=True)
            if current is None:
                raise InventoryRecordNotFoundError(product_id, warehouse_id)
            logger.warning(
                "inventory.adjust_rejected",
                product_id=str(product_id),
                warehouse_id=str(warehouse_id),
                delta=delta,
                quantity=current.quantity,
            )
            raise InsufficientStockError(product_id, warehouse_id, requested=-delta, available=current.quantity)

        record = await self.get(product_id, warehouse_id, refresh=True)
        logger.info(
            "inventory.adjusted",
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            delta=delta,
            quantity=record.quantity,
        )
        return record

    # ─── Inventory assignment ───────────────────────────────────────────

    async def create(
        self,
        product_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        quantity: int = 0,
        min_quantity: int = 0,
    ) -> InventoryRecord:
        """Assign stock of a simple product to a warehouse for the first time."""
        if quantity < 0 or min_quantity < 0:
            raise InventoryValidationError("Quantity and minimum quantity must be non-negative")

        product = await self.db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.is_bundle:
            raise BundleConfigurationError(
                f"Bundle product {product.sku} cannot hold inventory; stock its components instead"
            )
        if await self.db.get(Warehouse, warehouse_id) is None:
            raise WarehouseNotFoundError(warehouse_id)
        if await self.get(product_id, warehouse_id) is not None:
            raise DuplicateInventoryRecordError("Inventory already exists for this product in this warehouse")

        record = InventoryRecord(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
            min_quantity=min_quantity,
        )
        self.db.add(record)
        await self.db.flush()
        logger.info(
            "inventory.assigned",
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity=quantity,
        )
        return record

    async def set_min_quantity(self, record_id: uuid.UUID, min_quantity: int) -> InventoryRecord:
        if min_quantity < 0:
            raise InventoryValidationError("Minimum quantity must be non-negative")
        record = await self.get_by_id(record_id)
        record.min_quantity = min_quantity
        record.updated_at = datetime.utcnow()
        await self.db.flush()
        return record
