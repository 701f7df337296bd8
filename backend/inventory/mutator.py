"""
Stock Mutator — applies order-driven quantity changes through InventoryStore.adjust.

decrement: one adjustment per (order item, stock product, warehouse).
           Simple products decrement themselves; bundles decrement each
           component by item.quantity × quantity_per_bundle.
restore:   returns exactly what each item still holds according to the
           movement ledger, so it stays the inverse of decrement even if a
           bundle's composition changed while the order was fulfilled.

Every applied change is written to inventory_movements. Nothing here
commits: the caller scopes the transaction, so a failed adjustment can roll
back the status change it belongs to.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import InventoryMovement, OrderItem, Product
from inventory.bundles import load_components
from inventory.errors import BundleConfigurationError, InventoryValidationError, ProductNotFoundError
from inventory.store import InventoryStore

logger = structlog.get_logger()

REASON_FULFILLMENT = "order_fulfillment"
REASON_RESTORE = "order_restore"
REASON_MANUAL = "manual_adjustment"


@dataclass(frozen=True)
class StockRequirement:
    """Quantity of one stock-holding product an order item consumes."""

    product_id: uuid.UUID
    quantity: int


async def expand_item_requirements(db: AsyncSession, item: OrderItem) -> list[StockRequirement]:
    """Resolve an order item to the simple products it consumes."""
    product = await db.get(Product, item.product_id)
    if product is None:
        raise ProductNotFoundError(item.product_id)
    if not product.is_bundle:
        return [StockRequirement(product.product_id, item.quantity)]

    components = await load_components(db, product.product_id)
    if not components:
        raise BundleConfigurationError(f"Bundle {product.sku} has no components")
    return [
        StockRequirement(component.component_product_id, item.quantity * component.quantity_per_bundle)
        for component, _ in components
    ]


class StockMutator:
    def __init__(self, db: AsyncSession, store: InventoryStore | None = None):
        self.db = db
        self.store = store or InventoryStore(db)

    async def decrement(self, order_items: Sequence[OrderItem]) -> int:
        """Consume stock for every item. Returns the number of adjustments applied."""
        applied = 0
        for item in order_items:
            if item.warehouse_id is None:
                raise InventoryValidationError(f"Order item {item.item_id} has no warehouse_id")
            for requirement in await expand_item_requirements(self.db, item):
                await self.store.adjust(requirement.product_id, item.warehouse_id, -requirement.quantity)
                self._record(
                    product_id=requirement.product_id,
                    warehouse_id=item.warehouse_id,
                    change=-requirement.quantity,
                    reason=REASON_FULFILLMENT,
                    item=item,
                )
                applied += 1
        await self.db.flush()
        logger.info("stock.decremented", items=len(order_items), adjustments=applied)
        return applied

    async def restore(self, order_items: Sequence[OrderItem]) -> int:
        """Return every unit the items currently hold. Returns the number of adjustments applied."""
        held = await self.held_quantities(order_items)
        items_by_id = {item.item_id: item for item in order_items}

        applied = 0
        for (item_id, product_id, warehouse_id), quantity in held.items():
            if quantity <= 0:
                continue
            await self.store.adjust(product_id, warehouse_id, quantity)
            self._record(
                product_id=product_id,
                warehouse_id=warehouse_id,
                change=quantity,
                reason=REASON_RESTORE,
                item=items_by_id[item_id],
                is_reversal=True,
            )
            applied += 1
        if order_items and not applied:
            logger.warning(
                "stock.restore_nothing_held",
                order_item_ids=[str(item.item_id) for item in order_items],
            )
        await self.db.flush()
        logger.info("stock.restored", items=len(order_items), adjustments=applied)
        return applied

    async def held_quantities(
        self, order_items: Sequence[OrderItem]
    ) -> dict[tuple[uuid.UUID, uuid.UUID, uuid.UUID], int]:
        """
        Net quantity held per (item, product, warehouse): decrements minus restores.
        """
        item_ids = [item.item_id for item in order_items]
        if not item_ids:
            return {}

        result = await self.db.execute(
            select(
                InventoryMovement.order_item_id,
                InventoryMovement.product_id,
                InventoryMovement.warehouse_id,
                func.sum(InventoryMovement.change),
            )
            .where(
                InventoryMovement.order_item_id.in_(item_ids),
                InventoryMovement.reason.in_((REASON_FULFILLMENT, REASON_RESTORE)),
            )
            .group_by(
                InventoryMovement.order_item_id,
                InventoryMovement.product_id,
                InventoryMovement.warehouse_id,
            )
        )
        return {
            (item_id, product_id, warehouse_id): -int(net_change or 0)
            for item_id, product_id, warehouse_id, net_change in result.all()
        }

    async def apply_adjustment(
        self,
        product_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        delta: int,
        reason: str = REASON_MANUAL,
        notes: str | None = None,
    ):
        """Stock take or correction outside the order flow."""
        if delta == 0:
            raise InventoryValidationError("Adjustment must change the quantity")
        record = await self.store.adjust(product_id, warehouse_id, delta)
        self._record(
            product_id=product_id,
            warehouse_id=warehouse_id,
            change=delta,
            reason=reason,
            notes=notes,
        )
        await self.db.flush()
        return record

    def _record(
        self,
        *,
        product_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        change: int,
        reason: str,
        item: OrderItem | None = None,
        is_reversal: bool = False,
        notes: str | None = None,
    ) -> None:
        self.db.add(
            InventoryMovement(
                product_id=product_id,
                warehouse_id=warehouse_id,
                change=change,
                reason=reason,
                order_id=item.order_id if item is not None else None,
                order_item_id=item.item_id if item is not None else None,
                is_reversal=is_reversal,
                notes=notes,
            )
        )
