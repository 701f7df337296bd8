"""
FulfillOps API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("FulfillOps API starting up", version=settings.app_version, env=settings.app_env)
    yield
    logger.info("FulfillOps API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Inventory consistency engine for order fulfillment and bundle products",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import inventory, orders, products, warehouses

app.include_router(warehouses.router)
app.include_router(products.router)
app.include_router(inventory.router)
app.include_router(orders.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
