"""Configuration for the resource catalog."""

from resource_catalog.config.observability import configure_logging
from resource_catalog.config.settings import (
    AssetBackend,
    AssetDeletePolicy,
    CatalogSettings,
    ClientSettings,
    WorksheetBackend,
    get_catalog_settings,
)

__all__ = [
    "configure_logging",
    "AssetBackend",
    "AssetDeletePolicy",
    "CatalogSettings",
    "ClientSettings",
    "WorksheetBackend",
    "get_catalog_settings",
]
