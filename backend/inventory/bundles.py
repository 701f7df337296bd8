"""
Bundles — derived availability, component configuration, and pricing.

A bundle is a virtual product made of fixed quantities of simple products.
It never owns stock; its sellable quantity is recomputed on every request:

  units(component)   = floor(available(component) / quantity_per_bundle)
  bundle_available   = min(units) over all components
  limiting component = first component (by sort order) reaching that minimum

Nested bundles (a component that is itself a bundle) are rejected when the
component is added, which also rules out cycles.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import BundleComponent, Product
from inventory.errors import (
    BundleComponentNotFoundError,
    BundleConfigurationError,
    DuplicateComponentError,
    ProductNotFoundError,
)
from inventory.store import InventoryStore

logger = structlog.get_logger()


@dataclass
class ComponentAvailability:
    component_id: uuid.UUID
    component_name: str
    component_sku: str
    required_quantity: int
    available_quantity: int
    bundles_available: int
    is_limiting: bool = False


@dataclass
class BundleAvailability:
    bundle_id: uuid.UUID
    warehouse_id: uuid.UUID | None
    available_quantity: int
    limiting_component_id: uuid.UUID
    components: list[ComponentAvailability] = field(default_factory=list)


@dataclass
class BundlePricing:
    component_count: int
    total_component_price: float
    discount_percentage: float
    discount_amount: float
    calculated_price: float
    final_price: float
    pricing_type: str
    savings: float


async def get_bundle_product(db: AsyncSession, bundle_id: uuid.UUID) -> Product:
    """Load a product and insist it is configured as a bundle."""
    product = await db.get(Product, bundle_id)
    if product is None:
        raise ProductNotFoundError(bundle_id)
    if not product.is_bundle:
        raise BundleConfigurationError(f"Product {product.sku} is not a bundle")
    return product


async def load_components(db: AsyncSession, bundle_id: uuid.UUID) -> list[tuple[BundleComponent, Product]]:
    """Components of a bundle with their products, in component order."""
    result = await db.execute(
        select(BundleComponent, Product)
        .join(Product, Product.product_id == BundleComponent.component_product_id)
        .where(BundleComponent.bundle_id == bundle_id)
        .order_by(BundleComponent.sort_order, BundleComponent.created_at)
    )
    return [(row[0], row[1]) for row in result.all()]


class BundleResolver:
    """Read-only availability computation for bundle products."""

    def __init__(self, db: AsyncSession, store: InventoryStore | None = None):
        self.db = db
        self.store = store or InventoryStore(db)

    async def resolve_availability(
        self,
        bundle_id: uuid.UUID,
        warehouse_id: uuid.UUID | None = None,
    ) -> BundleAvailability:
        await get_bundle_product(self.db, bundle_id)
        components = await load_components(self.db, bundle_id)
        if not components:
            raise BundleConfigurationError(f"Bundle {bundle_id} has no components; its availability is undefined")

        nested = [product.sku for _, product in components if product.is_bundle]
        if nested:
            raise BundleConfigurationError(
                f"Bundle {bundle_id} contains nested bundle components ({', '.join(nested)}), which are not supported"
            )

        stock = await self.store.available_quantities(
            [component.component_product_id for component, _ in components],
            warehouse_id,
        )

        breakdown: list[ComponentAvailability] = []
        limiting: ComponentAvailability | None = None
        for component, product in components:
            available = stock[component.component_product_id]
            entry = ComponentAvailability(
                component_id=component.component_product_id,
                component_name=product.name,
                component_sku=product.sku,
                required_quantity=component.quantity_per_bundle,
                available_quantity=available,
                bundles_available=available // component.quantity_per_bundle,
            )
            breakdown.append(entry)
            # strict comparison keeps the first component on ties
            if limiting is None or entry.bundles_available < limiting.bundles_available:
                limiting = entry

        limiting.is_limiting = True
        return BundleAvailability(
            bundle_id=bundle_id,
            warehouse_id=warehouse_id,
            available_quantity=limiting.bundles_available,
            limiting_component_id=limiting.component_id,
            components=breakdown,
        )


class BundleCatalog:
    """Bundle component configuration and pricing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_components(self, bundle_id: uuid.UUID) -> list[tuple[BundleComponent, Product]]:
        product = await self.db.get(Product, bundle_id)
        if product is None:
            raise ProductNotFoundError(bundle_id)
        return await load_components(self.db, bundle_id)

    async def add_component(
        self,
        bundle_id: uuid.UUID,
        component_product_id: uuid.UUID,
        quantity: int,
        sort_order: int = 0,
    ) -> BundleComponent:
        if quantity <= 0:
            raise BundleConfigurationError("Quantity must be a positive number")

        bundle = await self.db.get(Product, bundle_id)
        if bundle is None:
            raise ProductNotFoundError(bundle_id)
        if not bundle.is_bundle:
            raise BundleConfigurationError("Product is not configured as a bundle")

        if component_product_id == bundle_id:
            raise BundleConfigurationError("Cannot add a bundle as a component of itself")

        component_product = await self.db.get(Product, component_product_id)
        if component_product is None:
            raise ProductNotFoundError(component_product_id)
        if component_product.is_bundle:
            raise BundleConfigurationError(
                f"Cannot add bundle {component_product.sku} as a component: nested bundles are not supported"
            )

        existing = await self.db.execute(
            select(BundleComponent.component_id).where(
                BundleComponent.bundle_id == bundle_id,
                BundleComponent.component_product_id == component_product_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateComponentError("Component product is already part of this bundle")

        component = BundleComponent(
            bundle_id=bundle_id,
            component_product_id=component_product_id,
            quantity_per_bundle=quantity,
            sort_order=sort_order,
        )
        self.db.add(component)
        await self.db.flush()

        logger.info(
            "bundle.component_added",
            bundle_id=str(bundle_id),
            component_product_id=str(component_product_id),
            quantity=quantity,
        )
        return component

    async def update_component(
        self,
        component_id: uuid.UUID,
        quantity: int | None = None,
        sort_order: int | None = None,
    ) -> BundleComponent:
        component = await self.db.get(BundleComponent, component_id)
        if component is None:
            raise BundleComponentNotFoundError(component_id)
        if quantity is not None:
            if quantity <= 0:
                raise BundleConfigurationError("Quantity must be a positive number")
            component.quantity_per_bundle = quantity
        if sort_order is not None:
            component.sort_order = sort_order
        component.updated_at = datetime.utcnow()
        await self.db.flush()
        return component

    async def remove_component(self, component_id: uuid.UUID) -> None:
        component = await self.db.get(BundleComponent, component_id)
        if component is None:
            raise BundleComponentNotFoundError(component_id)

        bundle = await self.db.get(Product, component.bundle_id)
        remaining = await self._component_count(component.bundle_id)
        if bundle is not None and bundle.is_active and remaining <= 1:
            raise BundleConfigurationError("An active bundle must keep at least one component")

        await self.db.delete(component)
        await self.db.flush()
        logger.info("bundle.component_removed", bundle_id=str(component.bundle_id), component_id=str(component_id))

    async def clear_components(self, bundle_id: uuid.UUID) -> int:
        bundle = await get_bundle_product(self.db, bundle_id)
        if bundle.is_active:
            raise BundleConfigurationError("An active bundle must keep at least one component")

        components = [component for component, _ in await load_components(self.db, bundle_id)]
        for component in components:
            await self.db.delete(component)
        await self.db.flush()
        return len(components)

    async def calculate_price(self, bundle_id: uuid.UUID) -> BundlePricing:
        bundle = await get_bundle_product(self.db, bundle_id)
        components = await load_components(self.db, bundle_id)

        total = sum((product.price or 0.0) * component.quantity_per_bundle for component, product in components)
        discount_pct = bundle.bundle_discount_percentage or 0.0

        if bundle.bundle_pricing_type == "calculated":
            discount_amount = total * discount_pct / 100
            calculated = total - discount_amount
            final = calculated
        else:
            discount_amount = 0.0
            calculated = total
            final = bundle.price or 0.0

        return BundlePricing(
            component_count=len(components),
            total_component_price=round(total, 2),
            discount_percentage=discount_pct,
            discount_amount=round(discount_amount, 2),
            calculated_price=round(calculated, 2),
            final_price=round(final, 2),
            pricing_type=bundle.bundle_pricing_type,
            savings=round(total - calculated, 2) if bundle.bundle_pricing_type == "calculated" else 0.0,
        )

    async def _component_count(self, bundle_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(BundleComponent.component_id)).where(BundleComponent.bundle_id == bundle_id)
        )
        return int(result.scalar() or 0)
