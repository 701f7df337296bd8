"""
Inventory Errors — exception taxonomy for the consistency engine.

  InventoryError (ValueError)
  ├── InventoryValidationError     rejected before any mutation
  │   ├── FulfillmentValidationError
  │   ├── BundleConfigurationError
  │   ├── DuplicateComponentError
  │   └── DuplicateInventoryRecordError
  ├── NotFoundError                referenced entity does not exist
  │   ├── ProductNotFoundError
  │   ├── WarehouseNotFoundError
  │   ├── OrderNotFoundError
  │   ├── InventoryRecordNotFoundError
  │   └── BundleComponentNotFoundError
  ├── InsufficientStockError       conditional decrement refused by the store
  └── ConsistencyError             order transition rolled back after a mutation failure
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fulfillment.validator import ValidationResult


class InventoryError(ValueError):
    """Base class for all inventory engine errors."""


class InventoryValidationError(InventoryError):
    pass


class FulfillmentValidationError(InventoryValidationError):
    """One or more orders cannot enter the fulfilled state."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.summary)


class BundleConfigurationError(InventoryValidationError):
    pass


class DuplicateComponentError(InventoryValidationError):
    pass


class DuplicateInventoryRecordError(InventoryValidationError):
    pass


class NotFoundError(InventoryError):
    entity = "Entity"

    def __init__(self, entity_id: uuid.UUID | str, entity: str | None = None):
        self.entity_id = entity_id
        if entity:
            self.entity = entity
        super().__init__(f"{self.entity} {entity_id} not found")


class ProductNotFoundError(NotFoundError):
    entity = "Product"


class WarehouseNotFoundError(NotFoundError):
    entity = "Warehouse"


class BundleComponentNotFoundError(NotFoundError):
    entity = "Bundle component"


class OrderNotFoundError(NotFoundError):
    entity = "Order"

    def __init__(self, order_ids: Iterable[uuid.UUID]):
        self.order_ids = list(order_ids)
        InventoryError.__init__(self, f"Orders not found: {', '.join(str(oid) for oid in self.order_ids)}")
        self.entity_id = self.order_ids[0] if self.order_ids else None


class InventoryRecordNotFoundError(NotFoundError):
    entity = "Inventory record"

    def __init__(self, product_id: uuid.UUID, warehouse_id: uuid.UUID):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        InventoryError.__init__(
            self, f"No inventory record for product {product_id} at warehouse {warehouse_id}"
        )
        self.entity_id = (product_id, warehouse_id)


class InsufficientStockError(InventoryError):
    def __init__(self, product_id: uuid.UUID, warehouse_id: uuid.UUID, requested: int, available: int):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id} at warehouse {warehouse_id}. "
            f"Required: {requested}, Available: {available}"
        )


class OrderStatusConflictError(InventoryError):
    """The order's status moved after it was read, so the guarded status write matched nothing."""

    def __init__(self, order_id: uuid.UUID, expected_status: str):
        self.order_id = order_id
        self.expected_status = expected_status
        super().__init__(f"Order {order_id} is no longer '{expected_status}'")


class ConsistencyError(InventoryError):
    """An order's inventory mutation failed, so its status change was rolled back."""

    def __init__(self, order_id: uuid.UUID, from_status: str, to_status: str, cause: InventoryError):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        self.cause = cause
        super().__init__(f"Order {order_id} stayed '{from_status}' (transition to '{to_status}' rejected): {cause}")
