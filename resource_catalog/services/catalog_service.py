"""Catalog service: the read/create/edit/delete/upload_chunk actions.

Every write except ``upload_chunk`` runs under the global WriteLock. Chunks
bypass it so a long upload never queues behind other writers; they are keyed
by upload session and chunk index and never touch the worksheet.
"""

import secrets
import string
from datetime import date
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, ValidationError

from resource_catalog.config.settings import AssetDeletePolicy, CatalogSettings
from resource_catalog.db.worksheet import NOT_FOUND, Worksheet
from resource_catalog.errors import PayloadError, ResourceNotFoundError
from resource_catalog.models.schemas import (
    SHEET_HEADERS,
    ChunkRequest,
    CreateRequest,
    DeleteRequest,
    EditRequest,
    Envelope,
    Resource,
    ResourceType,
    StorageInfo,
    TagColor,
)
from resource_catalog.services.normalizer import (
    normalize_headers,
    normalize_rows,
    row_to_record,
)
from resource_catalog.services.storage_service import AssetStore, is_data_url
from resource_catalog.services.write_lock import WriteLock

logger = structlog.get_logger()

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 9

# normalized header -> Resource attribute
_COLUMN_FIELDS = {
    "id": "id",
    "title": "title",
    "url": "url",
    "description": "description",
    "year": "year",
    "dateadded": "date_added",
    "category": "category",
    "categorycolor": "category_color",
    "type": "type",
    "icon": "icon",
    "coverimage": "cover_image",
}

ACTION_MODELS: dict[str, type[BaseModel]] = {
    "create": CreateRequest,
    "edit": EditRequest,
    "delete": DeleteRequest,
    "upload_chunk": ChunkRequest,
}


def generate_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def format_date_added(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def parse_action(payload: Any) -> BaseModel:
    """Validate a POST body into the request model for its action."""
    if not isinstance(payload, dict):
        raise PayloadError("Request body must be a JSON object")

    action = payload.get("action") or "create"
    model = ACTION_MODELS.get(action)
    if model is None:
        raise PayloadError(f"Unknown action: {action}")

    try:
        return model.model_validate({**payload, "action": action})
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
        )
        raise PayloadError(f"Invalid {action} request: {details}") from e


def _cells_for(headers: list[str], resource: Resource, existing: Optional[list[Any]] = None) -> list[Any]:
    """Lay a resource out in the worksheet's own column order.

    Columns the catalog does not know about keep their existing cells.
    """
    cells: list[Any] = []
    for col, header in enumerate(headers):
        attr = _COLUMN_FIELDS.get(header)
        if attr is None:
            cells.append(existing[col] if existing is not None and col < len(existing) else "")
            continue
        value = getattr(resource, attr)
        cells.append(value.value if isinstance(value, (ResourceType, TagColor)) else value)
    return cells


class CatalogService:
    """Performs catalog actions against a worksheet and an asset store."""

    def __init__(
        self,
        worksheet: Worksheet,
        assets: AssetStore,
        settings: Optional[CatalogSettings] = None,
        lock: Optional[WriteLock] = None,
        today: Callable[[], date] = date.today,
    ):
        self.worksheet = worksheet
        self.assets = assets
        self.settings = settings or CatalogSettings()
        self.lock = lock or WriteLock(self.settings.lock_timeout_seconds)
        self._today = today

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def storage_info(self) -> StorageInfo:
        used = await self.assets.used_bytes()
        return StorageInfo(used=used, limit=self.settings.storage_limit_bytes)

    async def list_resources(self) -> list[Resource]:
        values = await self.worksheet.get_values()
        return normalize_rows(values)

    async def read(self) -> Envelope:
        resources = await self.list_resources()
        return Envelope.success(
            data=[r.model_dump(mode="json", by_alias=True) for r in resources],
            storage=await self.storage_info(),
        )

    # ------------------------------------------------------------------
    # Write dispatch
    # ------------------------------------------------------------------

    async def handle(self, payload: Any) -> Envelope:
        """Dispatch a decoded POST body and build the success envelope.

        CatalogError subclasses propagate to the caller, which turns them
        into error envelopes.
        """
        request = parse_action(payload)

        if isinstance(request, ChunkRequest):
            await self.upload_chunk(request)
            return Envelope.success(chunk=request.chunk_index)

        async with self.lock.hold(request.action):
            if isinstance(request, CreateRequest):
                resource = await self.create(request)
            elif isinstance(request, EditRequest):
                resource = await self.edit(request)
            else:
                await self.delete(request.id)
                return Envelope.success(storage=await self.storage_info())

        return Envelope.success(
            data=resource.model_dump(mode="json", by_alias=True),
            storage=await self.storage_info(),
        )

    # ------------------------------------------------------------------
    # Actions (callers hold the write lock)
    # ------------------------------------------------------------------

    async def upload_chunk(self, request: ChunkRequest) -> None:
        if len(request.chunk_data) > self.settings.max_request_bytes:
            raise PayloadError("Chunk larger than the request size limit")
        await self.assets.put_chunk(request.upload_id, request.chunk_index, request.chunk_data)
        logger.debug(
            "CatalogService: Chunk stored",
            upload_id=request.upload_id,
            chunk_index=request.chunk_index,
            size=len(request.chunk_data),
        )

    async def create(self, request: CreateRequest) -> Resource:
        await self.worksheet.setup(SHEET_HEADERS)
        values = await self.worksheet.get_values()
        headers = normalize_headers(values[0])
        existing_ids = {row_to_record(headers, row).get("id", "") for row in values[1:]}

        new_id = generate_id()
        while new_id in existing_ids:
            new_id = generate_id()

        icon = await self.assets.save_data_url(request.icon, f"{new_id}_icon") if request.icon else ""
        cover = request.cover_image
        if len(cover) > self.settings.inline_cover_max_chars:
            cover = await self.assets.save_data_url(cover, f"{new_id}_cover")

        url = await self._resolve_file_url(
            request.file_data, request.upload_id, request.total_chunks, f"{new_id}_file"
        )
        if url is None:
            url = request.url

        resource = Resource(
            id=new_id,
            title=request.title,
            type=request.type,
            url=url,
            description=request.description,
            year=request.year,
            date_added=format_date_added(self._today()),
            category=request.category,
            category_color=request.category_color,
            icon=icon,
            cover_image=cover,
        )
        await self.worksheet.append_row(_cells_for(headers, resource))

        logger.info(
            "CatalogService: Created resource",
            resource_id=new_id,
            type=resource.type.value,
            chunked=bool(request.upload_id),
        )
        return resource

    async def edit(self, request: EditRequest) -> Resource:
        row_number = await self.worksheet.find_row(request.id)
        if row_number == NOT_FOUND:
            raise ResourceNotFoundError(request.id)

        values = await self.worksheet.get_values()
        headers = normalize_headers(values[0])
        existing = list(values[row_number - 1])
        record = row_to_record(headers, existing)

        changes = request.model_dump(
            exclude={"action", "id", "upload_id", "total_chunks", "file_data"},
            exclude_none=True,
        )

        icon = changes.get("icon")
        if icon and is_data_url(icon) and len(icon) > self.settings.inline_icon_max_chars:
            changes["icon"] = await self.assets.save_data_url(icon, f"{request.id}_icon")

        cover = changes.get("cover_image")
        if cover and len(cover) > self.settings.inline_cover_max_chars:
            changes["cover_image"] = await self.assets.save_data_url(cover, f"{request.id}_cover")

        url = await self._resolve_file_url(
            request.file_data or "", request.upload_id, request.total_chunks, f"{request.id}_file"
        )
        if url is not None:
            changes["url"] = url

        current = {
            attr: record.get(header, "") for header, attr in _COLUMN_FIELDS.items()
        }
        current.update(changes)
        # id and dateAdded never change; a synthesized id is written into the row
        current["id"] = request.id
        current["date_added"] = record.get("dateadded", "")
        current["title"] = (current.get("title") or "").strip()
        if not current["title"]:
            raise PayloadError("title must not be empty")

        resource = Resource(
            **{
                **current,
                "type": ResourceType.coerce(current.get("type")),
                "category_color": TagColor.coerce(current.get("category_color")),
            }
        )
        await self.worksheet.update_row(row_number, _cells_for(headers, resource, existing))

        logger.info(
            "CatalogService: Edited resource",
            resource_id=request.id,
            fields=sorted(changes),
        )
        return resource

    async def delete(self, resource_id: str) -> None:
        row_number = await self.worksheet.find_row(resource_id)
        if row_number == NOT_FOUND:
            raise ResourceNotFoundError(resource_id)

        values = await self.worksheet.get_values()
        record = row_to_record(normalize_headers(values[0]), values[row_number - 1])
        await self.worksheet.delete_row(row_number)
        logger.info("CatalogService: Deleted resource", resource_id=resource_id)

        if self.settings.asset_delete_policy == AssetDeletePolicy.TRASH:
            await self._trash_assets(resource_id, record)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _resolve_file_url(
        self,
        file_data: str,
        upload_id: Optional[str],
        total_chunks: Optional[int],
        base_name: str,
    ) -> Optional[str]:
        """Store an inline or chunked file; None when the request carries none."""
        if len(file_data) > self.settings.inline_file_max_chars:
            return await self.assets.save_data_url(file_data, base_name)
        if not upload_id:
            return None
        if not total_chunks:
            raise PayloadError("totalChunks is required with uploadId")

        try:
            payload = await self.assets.assemble_chunks(upload_id, total_chunks)
            if not is_data_url(payload):
                raise PayloadError("Reassembled upload is not a data URL")
            url = await self.assets.save_data_url(payload, base_name)
        finally:
            await self.assets.discard_chunks(upload_id, total_chunks)

        logger.info(
            "CatalogService: Reassembled chunked upload",
            upload_id=upload_id,
            total_chunks=total_chunks,
            size=len(payload),
        )
        return url

    async def _trash_assets(self, resource_id: str, record: dict[str, str]) -> None:
        """Best effort: a failure leaves the file orphaned."""
        for field in ("url", "icon", "coverimage"):
            value = record.get(field, "")
            if not value or is_data_url(value):
                continue
            try:
                await self.assets.delete_url(value)
            except Exception as e:
                logger.warning(
                    "CatalogService: Failed to trash asset",
                    resource_id=resource_id,
                    field=field,
                    error=str(e),
                )
