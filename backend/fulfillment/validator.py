"""
Fulfillment Validator — pre-flight check before orders enter 'Complete'.

Checks, for every line item passed in:
  1. a warehouse is assigned;
  2. simple product: stock at that warehouse covers the item quantity;
  3. bundle product: resolved bundle availability at that warehouse covers it;
  4. across all items together: summed demand per (stock product, warehouse),
     bundles expanded into components, does not exceed stock. Two orders
     asking for 6 and 5 of the same 10 units both fail here.

All problems are collected so the caller can report them in one pass.
Nothing is mutated.
"""

import uuid
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import OrderItem, Product, Warehouse
from inventory.bundles import BundleResolver
from inventory.errors import BundleConfigurationError, ProductNotFoundError
from inventory.mutator import expand_item_requirements
from inventory.store import InventoryStore

logger = structlog.get_logger()


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    errors_by_order: dict[uuid.UUID, list[str]] = field(default_factory=dict)
    missing_warehouse_order_ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def failed_order_ids(self) -> list[uuid.UUID]:
        return list(self.errors_by_order)

    @property
    def summary(self) -> str:
        if self.valid:
            return "All line items can be fulfilled"
        if self.missing_warehouse_order_ids:
            return "Each line item must have a warehouse_id"
        return "Insufficient inventory for one or more orders"

    def add(self, order_id: uuid.UUID, message: str) -> None:
        if message not in self.errors:
            self.errors.append(message)
        order_errors = self.errors_by_order.setdefault(order_id, [])
        if message not in order_errors:
            order_errors.append(message)


class FulfillmentValidator:
    def __init__(self, db: AsyncSession, store: InventoryStore | None = None):
        self.db = db
        self.store = store or InventoryStore(db)
        self.resolver = BundleResolver(db, self.store)
        self._names: dict[uuid.UUID, str] = {}

    async def validate(self, order_items: Sequence[OrderItem]) -> ValidationResult:
        result = ValidationResult()
        demand: dict[tuple[uuid.UUID, uuid.UUID], int] = defaultdict(int)
        contributors: dict[tuple[uuid.UUID, uuid.UUID], list[OrderItem]] = defaultdict(list)

        for item in order_items:
            if item.warehouse_id is None:
                product_label = await self._product_label(item.product_id)
                result.add(item.order_id, f"Line item for {product_label} has no warehouse_id")
                if item.order_id not in result.missing_warehouse_order_ids:
                    result.missing_warehouse_order_ids.append(item.order_id)
                continue

            product = await self.db.get(Product, item.product_id)
            if product is None:
                result.add(item.order_id, f"Product {item.product_id} not found")
                continue

            if product.is_bundle:
                ok = await self._check_bundle(result, item, product)
            else:
                ok = await self._check_simple(result, item, product)
            if not ok:
                continue

            for requirement in await expand_item_requirements(self.db, item):
                key = (requirement.product_id, item.warehouse_id)
                demand[key] += requirement.quantity
                contributors[key].append(item)

        await self._check_combined_demand(result, demand, contributors)

        if not result.valid:
            logger.info(
                "fulfillment.validation_failed",
                items=len(order_items),
                failed_orders=[str(oid) for oid in result.failed_order_ids],
                errors=len(result.errors),
            )
        return result

    async def _check_simple(self, result: ValidationResult, item: OrderItem, product: Product) -> bool:
        record = await self.store.get(product.product_id, item.warehouse_id, refresh=True)
        available = record.quantity if record is not None else 0
        if available < item.quantity:
            warehouse = await self._warehouse_label(item.warehouse_id)
            result.add(
                item.order_id,
                f"Insufficient inventory for {product.name} at {warehouse}. "
                f"Required: {item.quantity}, Available: {available}",
            )
            return False
        return True

    async def _check_bundle(self, result: ValidationResult, item: OrderItem, product: Product) -> bool:
        try:
            availability = await self.resolver.resolve_availability(product.product_id, item.warehouse_id)
        except (BundleConfigurationError, ProductNotFoundError) as exc:
            result.add(item.order_id, f"Bundle {product.name} cannot be fulfilled: {exc}")
            return False

        if availability.available_quantity < item.quantity:
            warehouse = await self._warehouse_label(item.warehouse_id)
            limiting = await self._product_label(availability.limiting_component_id)
            result.add(
                item.order_id,
                f"Insufficient inventory for bundle {product.name} at {warehouse}. "
                f"Required: {item.quantity}, Available: {availability.available_quantity} (limited by {limiting})",
            )
            return False
        return True

    async def _check_combined_demand(
        self,
        result: ValidationResult,
        demand: dict[tuple[uuid.UUID, uuid.UUID], int],
        contributors: dict[tuple[uuid.UUID, uuid.UUID], list[OrderItem]],
    ) -> None:
        # single-item demand was already checked item by item
        shared = {key: qty for key, qty in demand.items() if len(contributors[key]) > 1}
        if not shared:
            return

        for (product_id, warehouse_id), required in shared.items():
            record = await self.store.get(product_id, warehouse_id, refresh=True)
            available = record.quantity if record is not None else 0
            if available >= required:
                continue

            product = await self._product_label(product_id)
            warehouse = await self._warehouse_label(warehouse_id)
            message = (
                f"Combined demand for {product} at {warehouse} exceeds stock. "
                f"Required: {required}, Available: {available}"
            )
            for item in contributors[(product_id, warehouse_id)]:
                result.add(item.order_id, message)

    async def _product_label(self, product_id: uuid.UUID) -> str:
        if product_id not in self._names:
            product = await self.db.get(Product, product_id)
            self._names[product_id] = product.name if product is not None else str(product_id)
        return self._names[product_id]

    async def _warehouse_label(self, warehouse_id: uuid.UUID) -> str:
        if warehouse_id not in self._names:
            warehouse = await self.db.get(Warehouse, warehouse_id)
            self._names[warehouse_id] = warehouse.name if warehouse is not None else str(warehouse_id)
        return self._names[warehouse_id]
