"""
Orders Router — bulk fulfillment status changes.

Order entry lives elsewhere; this router only moves existing orders through
the fulfillment state machine (see fulfillment.coordinator) and reads them.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.deps import get_coordinator, get_db
from api.schemas import CamelModel
from db.models import Order
from fulfillment.coordinator import OrderFulfillmentCoordinator, OrderStatus
from fulfillment.validator import ValidationResult
from inventory.errors import FulfillmentValidationError, InventoryValidationError, OrderNotFoundError

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class BulkStatusRequest(CamelModel):
    order_ids: list[UUID] = Field(..., min_length=1)
    status: OrderStatus


class BulkStatusResponse(CamelModel):
    message: str
    updated_count: int
    failed_orders: dict[UUID, str] = Field(default_factory=dict)


class OrderItemResponse(CamelModel):
    item_id: UUID
    product_id: UUID
    warehouse_id: UUID | None
    quantity: int
    price: float


class OrderResponse(CamelModel):
    order_id: UUID
    status: str
    customer_name: str | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse]


def _validation_error_body(result: ValidationResult) -> dict:
    order_ids = result.missing_warehouse_order_ids or result.failed_order_ids
    return {
        "error": result.summary,
        "orderIds": [str(order_id) for order_id in order_ids],
        "details": {str(order_id): errors for order_id, errors in result.errors_by_order.items()},
    }


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.patch("/bulk-status", response_model=BulkStatusResponse)
async def bulk_update_status(
    body: BulkStatusRequest,
    coordinator: OrderFulfillmentCoordinator = Depends(get_coordinator),
):
    """
    Move a batch of orders to a new status.

    Entering 'Complete' is all-or-nothing at validation time: every order must
    have a warehouse on each line item and enough stock (bundles resolved to
    their components) or nothing changes. After validation each order commits
    on its own; orders whose stock mutation fails are listed in failedOrders.
    """
    try:
        result = await coordinator.bulk_update_status(body.order_ids, body.status)
    except OrderNotFoundError as exc:
        raise HTTPException(
            status_code=404,
            detail={"error": "Orders not found", "orderIds": [str(oid) for oid in exc.order_ids]},
        ) from exc
    except FulfillmentValidationError as exc:
        return JSONResponse(status_code=400, content=_validation_error_body(exc.result))
    except InventoryValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return BulkStatusResponse(
        message=result.message,
        updated_count=result.updated_count,
        failed_orders=result.failed,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single order with its line items."""
    result = await db.execute(
        select(Order)
        .where(Order.order_id == order_id)
        .options(selectinload(Order.items))
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order
