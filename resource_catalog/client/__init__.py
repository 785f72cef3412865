"""Async client for the catalog backend: uploads, repositories and state."""

from resource_catalog.client.api import CatalogApiClient
from resource_catalog.client.repository import (
    CatalogSnapshot,
    InMemoryRepository,
    RemoteRepository,
    ResourceRepository,
    WriteResult,
    build_repository,
)
from resource_catalog.client.retry import retry_async
from resource_catalog.client.state import CatalogState, MutationResult
from resource_catalog.client.upload import ChunkedUploader, split_payload

__all__ = [
    "CatalogApiClient",
    "CatalogSnapshot",
    "InMemoryRepository",
    "RemoteRepository",
    "ResourceRepository",
    "WriteResult",
    "build_repository",
    "retry_async",
    "CatalogState",
    "MutationResult",
    "ChunkedUploader",
    "split_payload",
]
