"""Resources Router - the single catalog endpoint.

GET reads the catalog, POST performs one action. The body is read raw so
browsers can post ``text/plain`` JSON and skip the CORS preflight. Every
outcome, failures included, is answered with the JSON envelope.
"""

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from resource_catalog.errors import CatalogError, PayloadError
from resource_catalog.models.schemas import Envelope
from resource_catalog.services.catalog_service import CatalogService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/resources", tags=["Resources"])

_catalog_service: Optional[CatalogService] = None


def set_catalog_service(service: Optional[CatalogService]) -> None:
    """Install the service used by the endpoint (called at startup and by tests)."""
    global _catalog_service
    _catalog_service = service


def get_catalog_service() -> CatalogService:
    if _catalog_service is None:
        raise RuntimeError("Catalog service not initialized")
    return _catalog_service


def envelope_response(envelope: Envelope, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope.to_json())


def decode_body(body: bytes, max_bytes: int) -> dict:
    if len(body) > max_bytes:
        raise PayloadError(f"Request too large ({len(body)} bytes). Maximum: {max_bytes} bytes")
    try:
        return json.loads(body or b"{}")
    except ValueError as e:
        raise PayloadError(f"Malformed JSON body: {e}") from e


@router.get("")
async def read_resources(service: CatalogService = Depends(get_catalog_service)):
    """Return every normalized resource plus the storage snapshot."""
    try:
        envelope = await service.read()
        logger.info("Resources: Read catalog", count=len(envelope.data))
        return envelope_response(envelope)
    except CatalogError as e:
        logger.warning("Resources: Read failed", error=e.message)
        return envelope_response(Envelope.error(e.message))
    except Exception as e:
        logger.error("Resources: Error reading catalog", error=str(e))
        return envelope_response(Envelope.error(f"Internal error: {e}"), status_code=500)


@router.post("")
async def write_resource(request: Request, service: CatalogService = Depends(get_catalog_service)):
    """Perform create, edit, delete or upload_chunk."""
    try:
        payload = decode_body(await request.body(), service.settings.max_request_bytes)
        envelope = await service.handle(payload)
        return envelope_response(envelope)
    except CatalogError as e:
        logger.warning("Resources: Write rejected", error=e.message, kind=type(e).__name__)
        return envelope_response(Envelope.error(e.message))
    except Exception as e:
        logger.error("Resources: Error handling write", error=str(e))
        return envelope_response(Envelope.error(f"Internal error: {e}"), status_code=500)
