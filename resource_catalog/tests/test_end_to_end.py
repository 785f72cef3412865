"""Client state and uploader driving the real app over an ASGI transport."""

import base64

import httpx
import pytest

from resource_catalog.client.api import CatalogApiClient
from resource_catalog.client.repository import RemoteRepository
from resource_catalog.client.state import CatalogState
from resource_catalog.client.upload import ChunkedUploader
from resource_catalog.main import app
from resource_catalog.models.schemas import ResourceChanges, ResourceDraft, TagColor
from resource_catalog.routers.resources import set_catalog_service


@pytest.fixture
def remote_state(catalog_service, client_settings):
    set_catalog_service(catalog_service)
    api = CatalogApiClient(client_settings.api_url, transport=httpx.ASGITransport(app=app))
    repository = RemoteRepository(api, ChunkedUploader(api, client_settings))
    yield CatalogState(repository)
    set_catalog_service(None)


@pytest.mark.asyncio
async def test_chunked_create_round_trip(remote_state, asset_store, data_url):
    content = bytes(range(256)) * 2
    progress = []

    await remote_state.load()
    result = await remote_state.create(
        ResourceDraft(title="Dispensa", category="Reti", file_data=data_url(content)),
        on_progress=progress.append,
    )

    assert result.ok, result.message
    assert progress[-1] == 100
    [stored] = asset_store.files.values()
    assert stored.content == content
    assert asset_store.chunks == {}
    assert remote_state.resources[0].url == result.item.url

    await remote_state.load()
    assert result.item.id in [r.id for r in remote_state.resources]


@pytest.mark.asyncio
async def test_edit_keeps_unmentioned_fields(remote_state):
    await remote_state.load()

    result = await remote_state.edit(ResourceChanges(id="b1", category_color=TagColor.RED))

    assert result.ok, result.message
    assert result.item.category_color == TagColor.RED
    assert result.item.description == "Robert C. Martin"
    assert result.item.date_added == "10/10/2023"


@pytest.mark.asyncio
async def test_full_replacement_edit_from_resource(remote_state):
    await remote_state.load()
    current = remote_state.get("a1")

    changes = ResourceChanges.from_resource(current.model_copy(update={"title": "Reti (rev)"}))
    result = await remote_state.edit(changes)

    assert result.ok, result.message
    assert result.item.title == "Reti (rev)"
    assert result.item.date_added == current.date_added


@pytest.mark.asyncio
async def test_failed_remote_delete_restores_item(remote_state):
    await remote_state.load()
    remote_state.resources.append(remote_state.resources[0].model_copy(update={"id": "stale"}))

    result = await remote_state.delete("stale")

    assert not result.ok
    assert "Resource not found" in result.message
    assert remote_state.get("stale") is not None


@pytest.mark.asyncio
async def test_icon_data_url_is_stored_on_create(remote_state, asset_store):
    icon = "data:image/png;base64," + base64.b64encode(b"\x89PNG tiny").decode()
    await remote_state.load()

    result = await remote_state.create(ResourceDraft(title="Icona", icon=icon))

    assert result.ok, result.message
    assert result.item.icon.startswith("memory://assets/")
    assert len(asset_store.files) == 1
