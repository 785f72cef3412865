"""Repositories the client state reads from and writes through."""

import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import httpx
import structlog

from resource_catalog.client.api import CatalogApiClient, decode_resource
from resource_catalog.client.upload import ChunkedUploader, ProgressCallback
from resource_catalog.config.settings import FIFTEEN_GIB, ClientSettings
from resource_catalog.errors import ResourceNotFoundError
from resource_catalog.models.schemas import (
    Resource,
    ResourceChanges,
    ResourceDraft,
    StorageInfo,
)

logger = structlog.get_logger()

_TEMP_ID_ALPHABET = string.ascii_lowercase + string.digits


def temp_id() -> str:
    return "".join(secrets.choice(_TEMP_ID_ALPHABET) for _ in range(9))


def default_storage() -> StorageInfo:
    return StorageInfo(used=0, limit=FIFTEEN_GIB)


@dataclass
class CatalogSnapshot:
    resources: list[Resource]
    storage: StorageInfo = field(default_factory=default_storage)


@dataclass
class WriteResult:
    item: Optional[Resource] = None
    storage: Optional[StorageInfo] = None


class ResourceRepository(ABC):
    """get_all/create/update/delete over some catalog store."""

    persistent: bool = True

    @abstractmethod
    async def get_all(self) -> CatalogSnapshot:
        ...

    @abstractmethod
    async def create(self, draft: ResourceDraft, on_progress: Optional[ProgressCallback] = None) -> WriteResult:
        ...

    @abstractmethod
    async def update(self, changes: ResourceChanges, on_progress: Optional[ProgressCallback] = None) -> WriteResult:
        ...

    @abstractmethod
    async def delete(self, resource_id: str) -> WriteResult:
        ...

    async def close(self) -> None:
        return None


class RemoteRepository(ResourceRepository):
    """Repository backed by the catalog HTTP endpoint."""

    def __init__(self, api: CatalogApiClient, uploader: Optional[ChunkedUploader] = None):
        self.api = api
        self.uploader = uploader or ChunkedUploader(api)

    async def get_all(self) -> CatalogSnapshot:
        resources, storage = await self.api.fetch()
        return CatalogSnapshot(resources=resources, storage=storage or default_storage())

    async def create(self, draft: ResourceDraft, on_progress: Optional[ProgressCallback] = None) -> WriteResult:
        fields = draft.model_dump(mode="json", by_alias=True, exclude={"file_data"})
        envelope = await self.uploader.submit(
            "create", fields, draft.file_data, temp_id=temp_id(), on_progress=on_progress
        )
        return _write_result(envelope)

    async def update(self, changes: ResourceChanges, on_progress: Optional[ProgressCallback] = None) -> WriteResult:
        fields = changes.model_dump(mode="json", by_alias=True, exclude={"file_data"}, exclude_none=True)
        envelope = await self.uploader.submit(
            "edit", fields, changes.file_data or "", temp_id=changes.id, on_progress=on_progress
        )
        return _write_result(envelope)

    async def delete(self, resource_id: str) -> WriteResult:
        envelope = await self.api.post({"action": "delete", "id": resource_id})
        return _write_result(envelope)

    async def close(self) -> None:
        await self.api.close()


class InMemoryRepository(ResourceRepository):
    """Process-local store used when no backend is configured, and in tests."""

    persistent = False

    def __init__(self, resources: Optional[list[Resource]] = None, storage_limit: int = FIFTEEN_GIB):
        self.resources: list[Resource] = list(resources or [])
        self.storage_limit = storage_limit

    def _storage(self) -> StorageInfo:
        return StorageInfo(used=0, limit=self.storage_limit)

    def _index(self, resource_id: str) -> int:
        for index, resource in enumerate(self.resources):
            if resource.id == resource_id:
                return index
        raise ResourceNotFoundError(resource_id)

    async def get_all(self) -> CatalogSnapshot:
        return CatalogSnapshot(resources=list(self.resources), storage=self._storage())

    async def create(self, draft: ResourceDraft, on_progress: Optional[ProgressCallback] = None) -> WriteResult:
        data = draft.model_dump(exclude={"file_data"})
        if draft.file_data:
            data["url"] = draft.file_data
        item = Resource(id=temp_id(), date_added=date.today().strftime("%d/%m/%Y"), **data)
        self.resources.append(item)
        if on_progress:
            on_progress(100)
        return WriteResult(item=item, storage=self._storage())

    async def update(self, changes: ResourceChanges, on_progress: Optional[ProgressCallback] = None) -> WriteResult:
        index = self._index(changes.id)
        update = changes.model_dump(exclude={"id", "file_data"}, exclude_none=True)
        if changes.file_data:
            update["url"] = changes.file_data
        item = self.resources[index].model_copy(update=update)
        self.resources[index] = item
        if on_progress:
            on_progress(100)
        return WriteResult(item=item, storage=self._storage())

    async def delete(self, resource_id: str) -> WriteResult:
        del self.resources[self._index(resource_id)]
        return WriteResult(storage=self._storage())


def _write_result(envelope: dict) -> WriteResult:
    data = envelope.get("data")
    storage = envelope.get("storage")
    return WriteResult(
        item=decode_resource(data) if data else None,
        storage=StorageInfo.model_validate(storage) if storage else None,
    )


def build_repository(
    settings: Optional[ClientSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ResourceRepository:
    """Remote repository when an endpoint is configured, in-memory otherwise.

    No network call is made here.
    """
    settings = settings or ClientSettings()
    if not settings.api_url:
        logger.warning(
            "Catalog API URL not configured. Changes will not be saved.",
            hint="Set CATALOG_API_URL to the backend endpoint.",
        )
        return InMemoryRepository()

    api = CatalogApiClient(settings.api_url, timeout=settings.request_timeout_seconds, transport=transport)
    return RemoteRepository(api, ChunkedUploader(api, settings))
