"""Tests for data URL decoding and the asset stores."""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from resource_catalog.errors import CatalogError, PayloadError, StoragePermissionError
from resource_catalog.services.storage_service import (
    InMemoryAssetStore,
    S3AssetStore,
    S3Settings,
    decode_data_url,
    file_name_for,
)


def _client_error(code: str, operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)


class TestDecodeDataUrl:
    def test_decodes_base64_payload(self, data_url):
        decoded = decode_data_url(data_url(b"%PDF-1.4 hello"))

        assert decoded.content == b"%PDF-1.4 hello"
        assert decoded.content_type == "application/pdf"

    @pytest.mark.parametrize(
        "value",
        [
            "not a data url",
            "data:text/plain,hello",
            "data:application/pdf;base64,@@@@",
            "data:application/pdf;base64,",
        ],
    )
    def test_rejects_bad_payloads(self, value):
        with pytest.raises(PayloadError):
            decode_data_url(value)

    def test_rejects_oversized_file(self, data_url):
        with pytest.raises(PayloadError, match="too large"):
            decode_data_url(data_url(b"x" * 11), max_bytes=10)


def test_file_name_for_uses_content_type_extension():
    assert file_name_for("abc_file", "application/pdf") == "abc_file.pdf"
    assert file_name_for("../evil name", "application/x-unknown-thing") == "..evilname.bin"


class TestInMemoryAssetStore:
    @pytest.mark.asyncio
    async def test_save_data_url_stores_file(self, data_url):
        store = InMemoryAssetStore()

        url = await store.save_data_url(data_url(b"abc", "image/png"), "r1_icon")

        assert url.startswith("memory://assets/uploads/")
        assert url.endswith("r1_icon.png")
        assert await store.used_bytes() == 3

    @pytest.mark.asyncio
    async def test_save_data_url_passes_plain_values_through(self):
        store = InMemoryAssetStore()

        assert await store.save_data_url("https://example.com/x.png", "r1_icon") == "https://example.com/x.png"
        assert await store.save_data_url("", "r1_icon") == ""
        assert store.files == {}

    @pytest.mark.asyncio
    async def test_delete_url(self, data_url):
        store = InMemoryAssetStore()
        url = await store.save_data_url(data_url(b"abc"), "f")

        assert await store.delete_url(url) is True
        assert await store.delete_url(url) is False
        assert await store.delete_url("https://elsewhere.example/x") is False

    @pytest.mark.asyncio
    async def test_assemble_chunks_in_index_order(self):
        store = InMemoryAssetStore()
        await store.put_chunk("up1", 2, "C")
        await store.put_chunk("up1", 0, "A")
        await store.put_chunk("up1", 1, "B")

        assert await store.assemble_chunks("up1", 3) == "ABC"

    @pytest.mark.asyncio
    async def test_rewritten_chunk_replaces_previous(self):
        store = InMemoryAssetStore()
        await store.put_chunk("up1", 0, "old")
        await store.put_chunk("up1", 0, "new")

        assert await store.assemble_chunks("up1", 1) == "new"

    @pytest.mark.asyncio
    async def test_missing_chunk_is_reported(self):
        store = InMemoryAssetStore()
        await store.put_chunk("up1", 0, "A")

        with pytest.raises(PayloadError, match="Missing chunk 1"):
            await store.assemble_chunks("up1", 2)

    @pytest.mark.asyncio
    async def test_discard_chunks(self):
        store = InMemoryAssetStore()
        await store.put_chunk("up1", 0, "A")
        await store.put_chunk("up2", 0, "B")

        await store.discard_chunks("up1", 1)

        assert store.chunks == {("up2", 0): "B"}


class TestS3AssetStore:
    def _store(self, client):
        settings = S3Settings(bucket_name="bucket", region="eu-west-1", public_url_base="https://cdn.example.com")
        return S3AssetStore(settings=settings, s3_client=client)

    @pytest.mark.asyncio
    async def test_put_file_returns_public_url(self):
        client = MagicMock()
        store = self._store(client)

        url = await store.put_file(b"data", "r1_file.pdf", "application/pdf")

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "bucket"
        assert kwargs["Key"].startswith("uploads/")
        assert url == f"https://cdn.example.com/{kwargs['Key']}"

    @pytest.mark.asyncio
    async def test_permission_failure_is_mapped(self):
        client = MagicMock()
        client.put_object.side_effect = _client_error("AccessDenied")
        store = self._store(client)

        with pytest.raises(StoragePermissionError, match="Permission denied"):
            await store.put_file(b"data", "f.pdf", "application/pdf")

    @pytest.mark.asyncio
    async def test_other_client_errors_become_catalog_errors(self):
        client = MagicMock()
        client.put_object.side_effect = _client_error("SlowDown")
        store = self._store(client)

        with pytest.raises(CatalogError, match="Asset store error"):
            await store.put_chunk("up", 0, "data")

    @pytest.mark.asyncio
    async def test_missing_chunk_reads_as_none(self):
        client = MagicMock()
        client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
        store = self._store(client)

        assert await store.get_chunk("up", 4) is None

    @pytest.mark.asyncio
    async def test_chunk_round_trip_through_client(self):
        client = MagicMock()
        client.get_object.return_value = {"Body": io.BytesIO(b"chunk-data")}
        store = self._store(client)

        await store.put_chunk("up/1", 3, "chunk-data")
        chunk = await store.get_chunk("up/1", 3)

        assert client.put_object.call_args.kwargs["Key"] == "chunks/up1/000003"
        assert chunk == "chunk-data"

    @pytest.mark.asyncio
    async def test_delete_url_outside_bucket_is_ignored(self):
        client = MagicMock()
        store = self._store(client)

        assert await store.delete_url("https://other.example.com/file.pdf") is False
        client.delete_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_used_bytes_sums_uploads(self):
        client = MagicMock()
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Contents": [{"Size": 10}, {"Size": 5}]},
            {"Contents": [{"Size": 1}]},
        ]
        client.get_paginator.return_value = paginator
        store = self._store(client)

        assert await store.used_bytes() == 16
        paginator.paginate.assert_called_once_with(Bucket="bucket", Prefix="uploads/")
