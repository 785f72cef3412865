"""Chunked upload of large encoded files.

The backend caps request size and execution time, so a file payload above
``small_file_threshold`` characters is split into ``chunk_size`` slices and
sent one at a time through ``upload_chunk``. A final create/edit call then
carries the metadata with ``uploadId``/``totalChunks`` and an empty
``fileData``; the backend reassembles the file from the stored chunks.

Chunks go strictly in sequence with a short pause between them to stay under
the backend's request quota. A failed session cannot be resumed.
"""

import asyncio
import math
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from resource_catalog.client.api import CatalogApiClient
from resource_catalog.client.retry import retry_async
from resource_catalog.config.settings import ClientSettings
from resource_catalog.errors import BackendError, UploadError, is_permission_error

logger = structlog.get_logger()

ProgressCallback = Callable[[int], None]

SMALL_FILE_THRESHOLD = 100 * 1024
CHUNK_SIZE = 1024 * 1024


def count_chunks(size: int, chunk_size: int) -> int:
    return math.ceil(size / chunk_size)


def split_payload(payload: str, chunk_size: int) -> list[str]:
    """Slice a payload into chunk_size pieces; joining them restores it."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [payload[start:start + chunk_size] for start in range(0, len(payload), chunk_size)]


def make_upload_id(temp_id: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{temp_id}_{now_ms}"


def is_transient(error: BaseException) -> bool:
    """Network failures and backend error replies, unless permission related."""
    if is_permission_error(error):
        return False
    return isinstance(error, (BackendError, httpx.HTTPError))


class ChunkedUploader:
    """Sends create/edit requests, chunking the file payload when large."""

    def __init__(
        self,
        api: CatalogApiClient,
        settings: Optional[ClientSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api = api
        self.settings = settings or ClientSettings()
        self._sleep = sleep

    def needs_chunking(self, payload: str) -> bool:
        # payloads exactly at the threshold still go in one request
        return len(payload) > self.settings.small_file_threshold

    async def submit(
        self,
        action: str,
        fields: dict[str, Any],
        file_data: str = "",
        temp_id: str = "upload",
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict[str, Any]:
        """Send one create/edit, returning the backend's success envelope.

        Raises UploadError on any unrecoverable failure.
        """
        try:
            if not file_data or not self.needs_chunking(file_data):
                return await self._submit_single(action, fields, file_data, on_progress)

            upload_id, total_chunks = await self.upload_chunks(file_data, temp_id, on_progress)
            payload = {
                "action": action,
                **fields,
                "fileData": "",
                "uploadId": upload_id,
                "totalChunks": total_chunks,
            }
            result = await self.api.post(payload)
            logger.info("Upload: Finalized chunked upload", upload_id=upload_id, total_chunks=total_chunks)
            return result
        except UploadError:
            raise
        except (BackendError, httpx.HTTPError) as e:
            logger.error("Upload: Failed", action=action, error=str(e))
            raise UploadError(str(e), permission_denied=is_permission_error(e)) from e

    async def upload_chunks(
        self,
        payload: str,
        temp_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> tuple[str, int]:
        """Send every chunk in order; returns (upload_id, total_chunks)."""
        chunks = split_payload(payload, self.settings.chunk_size)
        total = count_chunks(len(payload), self.settings.chunk_size)
        upload_id = make_upload_id(temp_id)

        logger.info("Upload: Starting chunked upload", upload_id=upload_id, total_chunks=total, size=len(payload))

        for index, chunk in enumerate(chunks):
            await self.send_chunk(upload_id, index, chunk)
            if on_progress:
                on_progress(round((index + 1) / total * 100))
            if index + 1 < total:
                await self._sleep(self.settings.chunk_pause_seconds)

        return upload_id, total

    async def send_chunk(self, upload_id: str, index: int, data: str) -> dict[str, Any]:
        async def attempt() -> dict[str, Any]:
            return await self.api.post(
                {"action": "upload_chunk", "uploadId": upload_id, "chunkIndex": index, "chunkData": data}
            )

        try:
            return await retry_async(
                attempt,
                max_attempts=self.settings.chunk_max_attempts,
                delay=self.settings.chunk_retry_delay_seconds,
                is_retryable=is_transient,
                label=f"chunk {index}",
                sleep=self._sleep,
            )
        except (BackendError, httpx.HTTPError) as e:
            denied = is_permission_error(e)
            logger.error("Upload: Chunk failed", upload_id=upload_id, chunk_index=index, permission_denied=denied)
            raise UploadError(f"Chunk {index} failed: {e}", permission_denied=denied) from e

    async def _submit_single(
        self,
        action: str,
        fields: dict[str, Any],
        file_data: str,
        on_progress: Optional[ProgressCallback],
    ) -> dict[str, Any]:
        if on_progress:
            on_progress(10)
        payload = {"action": action, **fields}
        if file_data:
            payload["fileData"] = file_data
        result = await self.api.post(payload)
        if on_progress:
            on_progress(100)
        return result
