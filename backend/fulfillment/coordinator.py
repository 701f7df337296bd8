"""
Order Fulfillment Coordinator — bulk order status transitions.

Only 'Complete' counts as fulfilled for inventory purposes:

  * → Complete     every entering order is validated up front, in one pass;
                   any failure rejects the whole batch before anything is
                   written. Then, per order: status change + stock decrement.
  Complete → *     per order: status change + stock restore.
  anything else    status change only.

Each order's status change and its inventory effect are committed together.
If the mutation fails (the conditional decrement lost a race, a stock row
vanished, ...) that order is rolled back and reported; orders already
committed in the same batch stay committed.

The batch split above only decides what gets validated. Each order's actual
effect is taken from its status when it is reloaded for its own transaction,
and the status write is guarded on that status, so an order moved by another
request in the meantime is never decremented or restored twice.
"""

import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.config import get_settings
from db.models import Order, OrderItem
from fulfillment.validator import FulfillmentValidator
from inventory.errors import (
    ConsistencyError,
    FulfillmentValidationError,
    InventoryError,
    InventoryValidationError,
    OrderNotFoundError,
    OrderStatusConflictError,
)
from inventory.mutator import StockMutator
from inventory.store import InventoryStore

logger = structlog.get_logger()


class OrderStatus(str, Enum):
    PROPOSED = "Proposed"
    SCHEDULED = "Scheduled"
    PAID = "Paid"
    COMPLETE = "Complete"
    CANCELLED = "Cancelled"


FULFILLED_STATUS = OrderStatus.COMPLETE


def is_fulfilled(status: str | OrderStatus) -> bool:
    return OrderStatus(status) is FULFILLED_STATUS


@dataclass
class BulkStatusResult:
    status: OrderStatus
    requested: int
    updated_order_ids: list[uuid.UUID] = field(default_factory=list)
    failed: dict[uuid.UUID, str] = field(default_factory=dict)

    @property
    def updated_count(self) -> int:
        return len(self.updated_order_ids)

    @property
    def message(self) -> str:
        if not self.failed:
            return f"Successfully updated {self.updated_count} orders to {self.status.value}"
        return (
            f"Updated {self.updated_count} of {self.requested} orders to {self.status.value}; "
            f"{len(self.failed)} rejected"
        )


Mutation = Callable[[Sequence[OrderItem]], Awaitable[int]]


class OrderFulfillmentCoordinator:
    def __init__(self, db: AsyncSession, max_orders: int | None = None):
        self.db = db
        store = InventoryStore(db)
        self.validator = FulfillmentValidator(db, store)
        self.mutator = StockMutator(db, store)
        self.max_orders = max_orders or get_settings().bulk_status_max_orders

    async def bulk_update_status(
        self,
        order_ids: Sequence[uuid.UUID],
        status: str | OrderStatus,
    ) -> BulkStatusResult:
        target = OrderStatus(status)
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise InventoryValidationError("Order IDs array is required and must not be empty")
        if len(ids) > self.max_orders:
            raise InventoryValidationError(f"At most {self.max_orders} orders can be updated at once")

        orders = await self._load_orders(ids)

        entering = [o.order_id for o in orders if is_fulfilled(target) and not is_fulfilled(o.status)]
        leaving = [o.order_id for o in orders if is_fulfilled(o.status) and not is_fulfilled(target)]
        touched = set(entering) | set(leaving)
        unaffected = [o.order_id for o in orders if o.order_id not in touched]

        if entering:
            entering_set = set(entering)
            items = [item for o in orders if o.order_id in entering_set for item in o.items]
            validation = await self.validator.validate(items)
            if not validation.valid:
                logger.warning(
                    "fulfillment.batch_rejected",
                    status=target.value,
                    orders=len(ids),
                    failed_orders=[str(oid) for oid in validation.failed_order_ids],
                )
                raise FulfillmentValidationError(validation)

        result = BulkStatusResult(status=target, requested=len(ids))
        for order_id in [*entering, *leaving, *unaffected]:
            await self._transition(result, order_id, target)

        logger.info(
            "fulfillment.bulk_status_applied",
            status=target.value,
            requested=result.requested,
            updated=result.updated_count,
            entering=len(entering),
            leaving=len(leaving),
            failed=len(result.failed),
        )
        return result

    def _mutation_for(self, previous: str, target: OrderStatus) -> Mutation | None:
        if is_fulfilled(target) and not is_fulfilled(previous):
            return self.mutator.decrement
        if is_fulfilled(previous) and not is_fulfilled(target):
            return self.mutator.restore
        return None

    async def _transition(self, result: BulkStatusResult, order_id: uuid.UUID, target: OrderStatus) -> None:
        """
        Commit one order's status change together with its inventory effect.

        The effect is chosen from the status read here, not from the batch
        snapshot, and the status write only matches while the order still has
        that status. The guarded UPDATE runs before the mutation so it also
        holds the order row until commit.
        """
        order = await self._load_order(order_id)
        previous = order.status
        mutate = self._mutation_for(previous, target)
        now = datetime.utcnow()

        values = {"status": target.value, "updated_at": now}
        if is_fulfilled(target) and not is_fulfilled(previous):
            values["completed_at"] = now
        elif is_fulfilled(previous) and not is_fulfilled(target):
            values["completed_at"] = None

        try:
            written = await self.db.execute(
                update(Order)
                .where(Order.order_id == order_id, Order.status == previous)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if written.rowcount == 0:
                raise OrderStatusConflictError(order_id, previous)

            if mutate is not None:
                await mutate(order.items)
            await self.db.commit()
        except InventoryError as exc:
            await self.db.rollback()
            error = ConsistencyError(order_id, previous, target.value, exc)
            logger.warning(
                "fulfillment.transition_rejected",
                order_id=str(order_id),
                from_status=previous,
                to_status=target.value,
                error=str(exc),
            )
            result.failed[order_id] = str(error)
            return

        result.updated_order_ids.append(order_id)

    async def _load_orders(self, order_ids: list[uuid.UUID]) -> list[Order]:
        query = (
            select(Order)
            .where(Order.order_id.in_(order_ids))
            .options(selectinload(Order.items))
            .execution_options(populate_existing=True)
        )
        found = {order.order_id: order for order in (await self.db.execute(query)).scalars().all()}
        missing = [oid for oid in order_ids if oid not in found]
        if missing:
            raise OrderNotFoundError(missing)
        return [found[oid] for oid in order_ids]

    async def _load_order(self, order_id: uuid.UUID) -> Order:
        orders = await self._load_orders([order_id])
        return orders[0]
