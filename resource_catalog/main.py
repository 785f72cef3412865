"""FastAPI application for the resource catalog backend."""

import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from resource_catalog import __version__
from resource_catalog.config.observability import configure_logging
from resource_catalog.config.settings import (
    AssetBackend,
    CatalogSettings,
    WorksheetBackend,
    get_catalog_settings,
)
from resource_catalog.db.postgres_worksheet import (
    close_postgres_worksheet,
    get_postgres_worksheet,
)
from resource_catalog.db.worksheet import InMemoryWorksheet, Worksheet
from resource_catalog.models.schemas import SHEET_HEADERS, HealthResponse
from resource_catalog.routers import resources_router
from resource_catalog.routers.resources import (
    get_catalog_service,
    set_catalog_service,
)
from resource_catalog.services.catalog_service import CatalogService
from resource_catalog.services.storage_service import (
    AssetStore,
    InMemoryAssetStore,
    S3AssetStore,
)

configure_logging(os.getenv("LOG_LEVEL", "INFO"))

logger = structlog.get_logger()


async def build_worksheet(settings: CatalogSettings) -> Worksheet:
    if settings.worksheet_backend == WorksheetBackend.POSTGRES:
        return await get_postgres_worksheet()
    return InMemoryWorksheet()


def build_asset_store(settings: CatalogSettings) -> AssetStore:
    if settings.asset_backend == AssetBackend.S3:
        return S3AssetStore(max_file_bytes=settings.max_file_bytes)
    return InMemoryAssetStore(max_file_bytes=settings.max_file_bytes)


async def build_catalog_service(settings: Optional[CatalogSettings] = None) -> CatalogService:
    """Wire the configured worksheet and asset store into a service."""
    settings = settings or get_catalog_settings()
    worksheet = await build_worksheet(settings)
    await worksheet.setup(SHEET_HEADERS)
    assets = build_asset_store(settings)
    logger.info(
        "Catalog service ready",
        worksheet=worksheet.name,
        assets=assets.name,
        asset_delete_policy=settings.asset_delete_policy.value,
    )
    return CatalogService(worksheet, assets, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Resource Catalog API")
    set_catalog_service(await build_catalog_service())

    yield

    logger.info("Shutting down Resource Catalog API")
    set_catalog_service(None)
    await close_postgres_worksheet()


app = FastAPI(
    title="Resource Catalog API",
    description="Community catalog of study notes and books",
    version=__version__,
    lifespan=lifespan,
)

# With allow_credentials=True we cannot use ["*"], so list the origins.
frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")
origins = [
    "http://localhost:5173",
    "http://localhost:3000",
    frontend_url,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(resources_router)  # /api/resources - catalog read/write


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check the health of the API and its backends."""
    try:
        service = get_catalog_service()
    except RuntimeError as e:
        return HealthResponse(
            status="unhealthy",
            worksheet={"status": "unknown", "error": str(e)},
            assets={"status": "unknown", "error": str(e)},
            version=__version__,
        )

    worksheet_health = await service.worksheet.health_check()
    assets_health = await service.assets.health_check()

    overall_status = "healthy"
    if worksheet_health.get("status") != "healthy" or assets_health.get("status") != "healthy":
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        worksheet=worksheet_health,
        assets=assets_health,
        version=__version__,
    )


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Resource Catalog API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "resources": "/api/resources",
    }
