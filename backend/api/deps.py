"""
FulfillOps API Dependencies

Dependency injection for DB sessions and engine services.
"""

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import AsyncSessionLocal
from fulfillment.coordinator import OrderFulfillmentCoordinator
from inventory.bundles import BundleCatalog, BundleResolver
from inventory.mutator import StockMutator
from inventory.store import InventoryStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def get_inventory_store(db: AsyncSession = Depends(get_db)) -> InventoryStore:
    return InventoryStore(db)


def get_stock_mutator(db: AsyncSession = Depends(get_db)) -> StockMutator:
    return StockMutator(db)


def get_bundle_resolver(db: AsyncSession = Depends(get_db)) -> BundleResolver:
    return BundleResolver(db)


def get_bundle_catalog(db: AsyncSession = Depends(get_db)) -> BundleCatalog:
    return BundleCatalog(db)


def get_coordinator(db: AsyncSession = Depends(get_db)) -> OrderFulfillmentCoordinator:
    return OrderFulfillmentCoordinator(db)
