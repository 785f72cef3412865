"""Pytest configuration and fixtures for resource catalog tests."""

import base64
import os
from datetime import date

import pytest

# Keep tests independent of a developer's .env / shell
os.environ.pop("CATALOG_API_URL", None)
os.environ.setdefault("LOG_LEVEL", "WARNING")

from resource_catalog.config.settings import CatalogSettings, ClientSettings  # noqa: E402
from resource_catalog.db.worksheet import InMemoryWorksheet  # noqa: E402
from resource_catalog.models.schemas import SHEET_HEADERS  # noqa: E402
from resource_catalog.services.catalog_service import CatalogService  # noqa: E402
from resource_catalog.services.storage_service import InMemoryAssetStore  # noqa: E402
from resource_catalog.services.write_lock import WriteLock  # noqa: E402

FIXED_TODAY = date(2024, 3, 5)


def make_data_url(content: bytes, content_type: str = "application/pdf") -> str:
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"


@pytest.fixture
def data_url():
    """Factory building base64 data URLs."""
    return make_data_url


@pytest.fixture
def sample_rows():
    """A worksheet as people edit it by hand."""
    return [
        list(SHEET_HEADERS),
        ["a1", "Appunti di Reti", "https://example.com/reti.pdf", "Livello trasporto", "2023",
         "01/02/2023", "Reti", "blue", "note", "", ""],
        ["", "Untitled row id", "", "", "", "", "Generale", "", "", "", ""],
        ["b1", "Clean Code", "https://example.com/cc", "Robert C. Martin", "2008",
         "10/10/2023", "Ingegneria del Software", "GREEN", "Book", "", ""],
        ["c1", "   ", "", "", "", "", "", "", "", "", ""],
    ]


@pytest.fixture
def worksheet(sample_rows):
    return InMemoryWorksheet(sample_rows)


@pytest.fixture
def empty_worksheet():
    return InMemoryWorksheet()


@pytest.fixture
def asset_store():
    return InMemoryAssetStore()


@pytest.fixture
def catalog_settings():
    return CatalogSettings(lock_timeout_seconds=0.2)


@pytest.fixture
def catalog_service(worksheet, asset_store, catalog_settings):
    return CatalogService(
        worksheet,
        asset_store,
        catalog_settings,
        lock=WriteLock(catalog_settings.lock_timeout_seconds),
        today=lambda: FIXED_TODAY,
    )


@pytest.fixture
def client_settings():
    """Small chunks and no delays so chunking paths run fast."""
    return ClientSettings(
        api_url="http://catalog.test/api/resources",
        chunk_size=100,
        small_file_threshold=150,
        chunk_max_attempts=3,
        chunk_retry_delay_seconds=0,
        chunk_pause_seconds=0,
    )
