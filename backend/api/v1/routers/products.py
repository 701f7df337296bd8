"""
Products Router — catalog, bundle configuration, bundle availability and pricing.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_bundle_catalog, get_bundle_resolver, get_db
from api.schemas import CamelModel
from db.models import BundleComponent, InventoryRecord, Product
from inventory.bundles import BundleCatalog, BundleResolver
from inventory.errors import (
    BundleConfigurationError,
    DuplicateComponentError,
    NotFoundError,
)

router = APIRouter(prefix="/api/v1/products", tags=["products"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class ProductCreate(CamelModel):
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    price: float = Field(0.0, ge=0)
    is_bundle: bool = False
    is_active: bool | None = None
    bundle_pricing_type: str = Field("calculated", pattern="^(calculated|fixed)$")
    bundle_discount_percentage: float = Field(0.0, ge=0, le=100)


class ProductUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    price: float | None = Field(None, ge=0)
    is_bundle: bool | None = None
    is_active: bool | None = None
    bundle_pricing_type: str | None = Field(None, pattern="^(calculated|fixed)$")
    bundle_discount_percentage: float | None = Field(None, ge=0, le=100)


class ProductResponse(CamelModel):
    product_id: UUID
    sku: str
    name: str
    price: float
    is_bundle: bool
    is_active: bool
    bundle_pricing_type: str
    bundle_discount_percentage: float
    created_at: datetime
    updated_at: datetime


class BundleItemCreate(CamelModel):
    component_product_id: UUID
    quantity: int = Field(..., gt=0)
    sort_order: int = 0


class BundleItemUpdate(CamelModel):
    quantity: int | None = Field(None, gt=0)
    sort_order: int | None = None


class BundleItemResponse(CamelModel):
    id: UUID
    bundle_product_id: UUID
    component_product_id: UUID
    component_product_name: str
    component_product_sku: str
    component_product_price: float
    quantity: int
    sort_order: int


class ComponentInventoryResponse(CamelModel):
    component_id: UUID
    component_name: str
    component_sku: str
    required_quantity: int
    available_quantity: int
    bundles_available: int
    is_limiting: bool


class BundleInventoryResponse(CamelModel):
    bundle_id: UUID
    bundle_name: str
    bundle_sku: str
    warehouse_id: UUID | None
    available_quantity: int
    limiting_component: UUID
    component_inventory: list[ComponentInventoryResponse]


class BundlePricingResponse(CamelModel):
    component_count: int
    total_component_price: float
    discount_percentage: float
    discount_amount: float
    calculated_price: float
    final_price: float
    pricing_type: str
    savings: float


# ─── Helpers ─────────────────────────────────────────────────────────────────


async def _get_product_or_404(db: AsyncSession, product_id: UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def _count(db: AsyncSession, query) -> int:
    result = await db.execute(query)
    return int(result.scalar() or 0)


async def _bundle_items(catalog: BundleCatalog, bundle_id: UUID) -> list[BundleItemResponse]:
    return [
        BundleItemResponse(
            id=component.component_id,
            bundle_product_id=component.bundle_id,
            component_product_id=component.component_product_id,
            component_product_name=product.name,
            component_product_sku=product.sku,
            component_product_price=product.price or 0.0,
            quantity=component.quantity_per_bundle,
            sort_order=component.sort_order,
        )
        for component, product in await catalog.list_components(bundle_id)
    ]


def _raise_for(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, DuplicateComponentError):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


# ─── Catalog ────────────────────────────────────────────────────────────────


@router.get("/", response_model=list[ProductResponse])
async def list_products(
    is_bundle: bool | None = Query(None, alias="isBundle"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """List products, optionally only bundles or only simple products."""
    query = select(Product)
    if is_bundle is not None:
        query = query.where(Product.is_bundle == is_bundle)
    query = query.order_by(Product.name).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single product by ID."""
    return await _get_product_or_404(db, product_id)


@router.post("/", response_model=ProductResponse, status_code=201)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a product.

    Bundles start inactive: they have no components yet, so their availability
    is undefined until at least one component is configured.
    """
    existing = await db.execute(select(Product.product_id).where(Product.sku == body.sku))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail=f"SKU '{body.sku}' already exists")
    if body.is_bundle and body.is_active:
        raise HTTPException(status_code=400, detail="Add components to a bundle before activating it")

    data = body.model_dump()
    if data["is_active"] is None:
        data["is_active"] = not body.is_bundle
    product = Product(**data)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    update: ProductUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a product, keeping the bundle/stock invariants intact."""
    product = await _get_product_or_404(db, product_id)
    changes = update.model_dump(exclude_unset=True)

    becomes_bundle = changes.get("is_bundle") is True and not product.is_bundle
    stops_being_bundle = changes.get("is_bundle") is False and product.is_bundle
    is_bundle = changes.get("is_bundle", product.is_bundle)

    if becomes_bundle:
        if await _count(db, select(func.count(InventoryRecord.id)).where(InventoryRecord.product_id == product_id)):
            raise HTTPException(status_code=400, detail="A product holding inventory cannot become a bundle")
        used_as_component = await _count(
            db,
            select(func.count(BundleComponent.component_id)).where(
                BundleComponent.component_product_id == product_id
            ),
        )
        if used_as_component:
            raise HTTPException(
                status_code=400,
                detail="A bundle component cannot become a bundle: nested bundles are not supported",
            )

    component_count = await _count(
        db, select(func.count(BundleComponent.component_id)).where(BundleComponent.bundle_id == product_id)
    )
    if stops_being_bundle and component_count:
        raise HTTPException(status_code=400, detail="Remove the bundle's components first")
    if is_bundle and changes.get("is_active", product.is_active) and component_count == 0:
        raise HTTPException(status_code=400, detail="Add components to a bundle before activating it")

    for field, value in changes.items():
        setattr(product, field, value)
    product.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(product)
    return product


# ─── Bundle configuration ───────────────────────────────────────────────────


@router.get("/{product_id}/bundle-items", response_model=list[BundleItemResponse])
async def list_bundle_items(
    product_id: UUID,
    catalog: BundleCatalog = Depends(get_bundle_catalog),
):
    """Components of a bundle, in component order."""
    try:
        return await _bundle_items(catalog, product_id)
    except NotFoundError as exc:
        _raise_for(exc)


@router.post("/{product_id}/bundle-items", response_model=list[BundleItemResponse], status_code=201)
async def add_bundle_item(
    product_id: UUID,
    body: BundleItemCreate,
    db: AsyncSession = Depends(get_db),
    catalog: BundleCatalog = Depends(get_bundle_catalog),
):
    """Add a component to a bundle. Self-references and nested bundles are rejected."""
    try:
        await catalog.add_component(product_id, body.component_product_id, body.quantity, body.sort_order)
    except (NotFoundError, BundleConfigurationError, DuplicateComponentError) as exc:
        _raise_for(exc)
    await db.commit()
    return await _bundle_items(catalog, product_id)


@router.delete("/{product_id}/bundle-items")
async def clear_bundle_items(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    catalog: BundleCatalog = Depends(get_bundle_catalog),
):
    """Remove every component of an inactive bundle."""
    try:
        removed = await catalog.clear_components(product_id)
    except (NotFoundError, BundleConfigurationError) as exc:
        _raise_for(exc)
    await db.commit()
    return {"message": "All bundle items deleted successfully", "removed": removed}


@router.put("/bundle-items/{component_id}", response_model=BundleItemResponse)
async def update_bundle_item(
    component_id: UUID,
    body: BundleItemUpdate,
    db: AsyncSession = Depends(get_db),
    catalog: BundleCatalog = Depends(get_bundle_catalog),
):
    """Change a component's quantity per bundle or its position."""
    try:
        component = await catalog.update_component(component_id, body.quantity, body.sort_order)
    except (NotFoundError, BundleConfigurationError) as exc:
        _raise_for(exc)
    await db.commit()
    items = await _bundle_items(catalog, component.bundle_id)
    return next(item for item in items if item.id == component_id)


@router.delete("/bundle-items/{component_id}", status_code=204)
async def delete_bundle_item(
    component_id: UUID,
    db: AsyncSession = Depends(get_db),
    catalog: BundleCatalog = Depends(get_bundle_catalog),
):
    """Remove one component. An active bundle keeps at least one."""
    try:
        await catalog.remove_component(component_id)
    except (NotFoundError, BundleConfigurationError) as exc:
        _raise_for(exc)
    await db.commit()


# ─── Bundle availability & pricing ──────────────────────────────────────────


@router.get("/{product_id}/bundle-inventory", response_model=BundleInventoryResponse)
async def get_bundle_inventory(
    product_id: UUID,
    warehouse_id: UUID | None = Query(None, alias="warehouseId"),
    db: AsyncSession = Depends(get_db),
    resolver: BundleResolver = Depends(get_bundle_resolver),
):
    """
    Sellable quantity of a bundle, derived from component stock.

    Without warehouseId, component stock is summed across all warehouses.
    """
    try:
        availability = await resolver.resolve_availability(product_id, warehouse_id)
    except (NotFoundError, BundleConfigurationError) as exc:
        _raise_for(exc)

    bundle = await _get_product_or_404(db, product_id)
    return BundleInventoryResponse(
        bundle_id=bundle.product_id,
        bundle_name=bundle.name,
        bundle_sku=bundle.sku,
        warehouse_id=warehouse_id,
        available_quantity=availability.available_quantity,
        limiting_component=availability.limiting_component_id,
        component_inventory=[
            ComponentInventoryResponse(
                component_id=c.component_id,
                component_name=c.component_name,
                component_sku=c.component_sku,
                required_quantity=c.required_quantity,
                available_quantity=c.available_quantity,
                bundles_available=c.bundles_available,
                is_limiting=c.is_limiting,
            )
            for c in availability.components
        ],
    )


@router.get("/{product_id}/bundle-pricing", response_model=BundlePricingResponse)
async def get_bundle_pricing(
    product_id: UUID,
    catalog: BundleCatalog = Depends(get_bundle_catalog),
):
    """Component price total, discount and final price of a bundle."""
    try:
        pricing = await catalog.calculate_price(product_id)
    except (NotFoundError, BundleConfigurationError) as exc:
        _raise_for(exc)
    return BundlePricingResponse.model_validate(pricing)
