"""API tests for the /api/resources endpoint."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from resource_catalog.main import app
from resource_catalog.routers.resources import set_catalog_service

API = "/api/resources"


@pytest.fixture
def api_client(catalog_service):
    set_catalog_service(catalog_service)
    transport = httpx.ASGITransport(app=app)
    client = httpx.AsyncClient(transport=transport, base_url="http://test")
    yield client
    set_catalog_service(None)


@pytest.mark.asyncio
async def test_get_returns_envelope(api_client):
    response = await api_client.get(API)

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "success"
    assert [r["id"] for r in body["data"]] == ["a1", "row_3", "b1"]
    assert set(body["storage"]) == {"used", "limit"}


@pytest.mark.asyncio
async def test_post_text_plain_create(api_client):
    payload = {"action": "create", "title": "Calcolo numerico", "category": "Calcolo numerico"}

    response = await api_client.post(
        API, content=json.dumps(payload), headers={"Content-Type": "text/plain;charset=utf-8"}
    )

    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["title"] == "Calcolo numerico"
    assert body["data"]["dateAdded"] == "05/03/2024"

    listing = (await api_client.get(API)).json()
    assert body["data"]["id"] in [r["id"] for r in listing["data"]]


@pytest.mark.asyncio
async def test_malformed_json_is_an_error_envelope(api_client):
    response = await api_client.post(API, content="{not json")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "error"
    assert "Malformed JSON" in body["message"]


@pytest.mark.asyncio
async def test_oversized_body_is_rejected(api_client, catalog_service):
    catalog_service.settings.max_request_bytes = 64

    response = await api_client.post(API, content=json.dumps({"title": "x" * 100}))

    body = response.json()
    assert body["status"] == "error"
    assert "too large" in body["message"]


@pytest.mark.asyncio
async def test_edit_unknown_id(api_client):
    response = await api_client.post(API, json={"action": "edit", "id": "missing", "title": "X"})

    assert response.json() == {"status": "error", "message": "Resource not found: missing"}


@pytest.mark.asyncio
async def test_delete_then_read(api_client):
    response = await api_client.post(API, json={"action": "delete", "id": "a1"})
    assert response.json()["status"] == "success"

    listing = (await api_client.get(API)).json()
    assert [r["id"] for r in listing["data"]] == ["row_3", "b1"]


@pytest.mark.asyncio
async def test_busy_write_gets_error_envelope(api_client, catalog_service):
    async with catalog_service.lock.hold("test"):
        response = await api_client.post(API, json={"title": "In attesa"})

    assert response.json() == {"status": "error", "message": "Busy"}


@pytest.mark.asyncio
async def test_chunk_ack(api_client):
    response = await api_client.post(
        API, json={"action": "upload_chunk", "uploadId": "u1", "chunkIndex": 0, "chunkData": "abc"}
    )

    assert response.json() == {"status": "success", "chunk": 0}


@pytest.mark.asyncio
async def test_unexpected_failure_is_500_envelope(api_client, catalog_service):
    catalog_service.worksheet.get_values = AsyncMock(side_effect=RuntimeError("boom"))

    response = await api_client.get(API)

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "error"
    assert "boom" in body["message"]


@pytest.mark.asyncio
async def test_health_reports_backends(api_client):
    response = await api_client.get("/health")

    body = response.json()
    assert body["status"] == "healthy"
    assert body["worksheet"]["backend"] == "memory"
    assert body["assets"]["status"] == "healthy"
