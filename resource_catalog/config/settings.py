"""Settings for the catalog backend and client."""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings

FIFTEEN_GIB = 15 * 1024 * 1024 * 1024


class WorksheetBackend(str, Enum):
    MEMORY = "memory"
    POSTGRES = "postgres"


class AssetBackend(str, Enum):
    MEMORY = "memory"
    S3 = "s3"


class AssetDeletePolicy(str, Enum):
    """What happens to a stored file when its resource is deleted."""

    TRASH = "trash"
    KEEP = "keep"


class CatalogSettings(BaseSettings):
    """Backend request handler settings."""

    worksheet_backend: WorksheetBackend = WorksheetBackend.MEMORY
    asset_backend: AssetBackend = AssetBackend.MEMORY
    asset_delete_policy: AssetDeletePolicy = AssetDeletePolicy.TRASH

    lock_timeout_seconds: float = 30.0
    storage_limit_bytes: int = FIFTEEN_GIB
    max_request_bytes: int = 8 * 1024 * 1024
    max_file_bytes: int = 50 * 1024 * 1024

    # Inline images at or below these sizes stay in the worksheet cell.
    inline_cover_max_chars: int = 49_000
    inline_icon_max_chars: int = 1_000
    inline_file_max_chars: int = 50

    model_config = {"env_prefix": "CATALOG_", "extra": "ignore"}


class ClientSettings(BaseSettings):
    """Settings for the HTTP client and chunked uploader."""

    api_url: Optional[str] = None
    request_timeout_seconds: float = 120.0

    chunk_size: int = 1024 * 1024
    small_file_threshold: int = 100 * 1024
    chunk_max_attempts: int = 3
    chunk_retry_delay_seconds: float = 2.0
    chunk_pause_seconds: float = 0.6

    model_config = {"env_prefix": "CATALOG_", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_catalog_settings() -> CatalogSettings:
    return CatalogSettings()
