"""HTTP client for the catalog endpoint."""

import json
from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from resource_catalog.errors import BackendError, ConfigurationError
from resource_catalog.models.schemas import Resource, ResourceType, StorageInfo, TagColor
from resource_catalog.services.normalizer import cell_to_text

logger = structlog.get_logger()

# Plain text keeps browser-style requests free of a CORS preflight.
POST_HEADERS = {"Content-Type": "text/plain;charset=utf-8"}

_TEXT_FIELDS = ("id", "title", "url", "description", "year", "dateAdded", "category", "icon", "coverImage")


def decode_resource(item: Any) -> Resource:
    """Build a Resource from one item of a GET response.

    Legacy backends return raw spreadsheet cells (numeric ids and years,
    ``"Book"``, ``"GREEN"``), so values are coerced the way the worksheet
    reader does before validation.
    """
    if not isinstance(item, dict):
        raise BackendError(f"Unexpected resource in backend response: {item!r}")
    data = dict(item)
    for key in _TEXT_FIELDS:
        if key in data:
            data[key] = cell_to_text(data[key])
    data["type"] = ResourceType.coerce(data.get("type"))
    data["categoryColor"] = TagColor.coerce(data.get("categoryColor", data.get("category_color")))
    data.pop("category_color", None)
    try:
        return Resource.model_validate(data)
    except ValidationError as e:
        raise BackendError(f"Invalid resource in backend response: {e}") from e


class CatalogApiClient:
    """Thin async wrapper speaking the envelope protocol."""

    def __init__(
        self,
        api_url: Optional[str],
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_url:
            raise ConfigurationError("Catalog API URL is not configured (set CATALOG_API_URL)")
        self.api_url = api_url
        self._client = httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "CatalogApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def fetch(self) -> tuple[list[Resource], Optional[StorageInfo]]:
        """GET the catalog; accepts the envelope and the legacy bare array."""
        response = await self._client.get(self.api_url)
        body = self._decode(response)

        if isinstance(body, list):
            return [decode_resource(item) for item in body], None
        if not isinstance(body, dict):
            raise BackendError("Unexpected response shape from backend", response.status_code)
        if body.get("status") != "success":
            raise BackendError(body.get("message") or "Unknown error", response.status_code)

        storage = body.get("storage")
        resources = [decode_resource(item) for item in body.get("data") or []]
        return resources, StorageInfo.model_validate(storage) if storage else None

    async def post(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST one action and return the success envelope."""
        logger.debug("CatalogApi: POST", action=payload.get("action"))
        response = await self._client.post(self.api_url, content=json.dumps(payload), headers=POST_HEADERS)
        body = self._decode(response)
        if not isinstance(body, dict) or body.get("status") != "success":
            message = body.get("message") if isinstance(body, dict) else None
            raise BackendError(message or "Unknown error", response.status_code)
        return body

    def _decode(self, response: httpx.Response) -> Any:
        if response.status_code >= 400:
            # the reason phrase lets 401/403 read as permission failures
            message = f"HTTP Error {response.status_code} {response.reason_phrase}".rstrip()
            detail = _error_detail(response)
            if detail:
                message = f"{message}: {detail}"
            raise BackendError(message, response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Invalid JSON from backend: {e}", response.status_code) from e


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("message") if isinstance(body, dict) else None
