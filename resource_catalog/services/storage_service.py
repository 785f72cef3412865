"""Asset storage for icons, covers, uploaded files and upload chunks."""

import asyncio
import base64
import binascii
import mimetypes
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic_settings import BaseSettings

from resource_catalog.errors import CatalogError, PayloadError, StoragePermissionError

logger = structlog.get_logger()

MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024  # 50 MB

UPLOAD_PREFIX = "uploads/"
CHUNK_PREFIX = "chunks/"

_DATA_URL = re.compile(r"^data:([^;,]*)((?:;[^;,]*)*),(.*)$", re.DOTALL)
_PERMISSION_CODES = {"AccessDenied", "AllAccessDisabled", "InvalidAccessKeyId", "SignatureDoesNotMatch", "403"}


@dataclass
class DecodedFile:
    """Binary content recovered from a data URL."""

    content: bytes
    content_type: str


def is_data_url(value: Optional[str]) -> bool:
    return bool(value) and value.startswith("data:")


def decode_data_url(data_url: str, max_bytes: int = MAX_FILE_SIZE_BYTES) -> DecodedFile:
    """Decode a ``data:<mime>;base64,<payload>`` string.

    Raises PayloadError for anything that is not a well-formed base64 data URL
    or that decodes to more than ``max_bytes``.
    """
    match = _DATA_URL.match(data_url)
    if not match:
        raise PayloadError("Malformed data URL")
    content_type = match.group(1) or "application/octet-stream"
    params = match.group(2).split(";")
    if "base64" not in params:
        raise PayloadError("Data URL must be base64 encoded")

    try:
        content = base64.b64decode(match.group(3), validate=True)
    except (binascii.Error, ValueError) as e:
        raise PayloadError(f"Invalid base64 payload: {e}") from e

    if not content:
        raise PayloadError("File is empty")
    if len(content) > max_bytes:
        raise PayloadError(
            f"File too large ({len(content)} bytes). Maximum: {max_bytes} bytes ({max_bytes // 1024 // 1024} MB)"
        )
    return DecodedFile(content=content, content_type=content_type)


def safe_name(name: str, default: str = "upload") -> str:
    cleaned = "".join(c for c in name if c.isalnum() or c in ".-_").strip()
    return cleaned or default


def file_name_for(base: str, content_type: str) -> str:
    extension = mimetypes.guess_extension(content_type) or ".bin"
    return f"{safe_name(base)}{extension}"


class AssetStore(ABC):
    """Cloud file store collaborator of the catalog service."""

    name: str = "assets"

    def __init__(self, max_file_bytes: int = MAX_FILE_SIZE_BYTES):
        self.max_file_bytes = max_file_bytes

    @abstractmethod
    async def put_file(self, content: bytes, filename: str, content_type: str) -> str:
        """Store a file and return its shareable URL."""

    @abstractmethod
    async def delete_url(self, url: str) -> bool:
        """Delete the file behind a URL this store produced."""

    @abstractmethod
    async def put_chunk(self, upload_id: str, chunk_index: int, data: str) -> None:
        """Store one temporary chunk of an upload session."""

    @abstractmethod
    async def get_chunk(self, upload_id: str, chunk_index: int) -> Optional[str]:
        """Return a stored chunk or None when it is missing."""

    @abstractmethod
    async def delete_chunk(self, upload_id: str, chunk_index: int) -> None:
        """Remove a temporary chunk."""

    @abstractmethod
    async def used_bytes(self) -> int:
        """Bytes currently held by stored files."""

    async def save_data_url(self, value: str, base_name: str) -> str:
        """Persist inline data and return its URL; other values pass through."""
        if not is_data_url(value):
            return value or ""
        decoded = decode_data_url(value, self.max_file_bytes)
        return await self.put_file(decoded.content, file_name_for(base_name, decoded.content_type), decoded.content_type)

    async def assemble_chunks(self, upload_id: str, total_chunks: int) -> str:
        """Concatenate chunks 0..total_chunks-1 in index order."""
        if total_chunks <= 0:
            raise PayloadError("totalChunks must be positive")
        parts = []
        for index in range(total_chunks):
            chunk = await self.get_chunk(upload_id, index)
            if chunk is None:
                raise PayloadError(f"Missing chunk {index} of upload {upload_id}")
            parts.append(chunk)
        return "".join(parts)

    async def discard_chunks(self, upload_id: str, total_chunks: int) -> None:
        for index in range(total_chunks):
            await self.delete_chunk(upload_id, index)

    async def health_check(self) -> dict:
        try:
            used = await self.used_bytes()
            return {"status": "healthy", "backend": self.name, "used": used}
        except Exception as e:
            logger.error("Storage health check failed", backend=self.name, error=str(e))
            return {"status": "unhealthy", "backend": self.name, "error": str(e)}


class InMemoryAssetStore(AssetStore):
    """Asset store kept in process memory, for demos and tests."""

    name = "memory"

    def __init__(self, base_url: str = "memory://assets", max_file_bytes: int = MAX_FILE_SIZE_BYTES):
        super().__init__(max_file_bytes)
        self.base_url = base_url.rstrip("/")
        self.files: dict[str, DecodedFile] = {}
        self.chunks: dict[tuple[str, int], str] = {}
        self._counter = 0

    async def put_file(self, content: bytes, filename: str, content_type: str) -> str:
        self._counter += 1
        key = f"{UPLOAD_PREFIX}{self._counter}_{safe_name(filename)}"
        self.files[key] = DecodedFile(content=content, content_type=content_type)
        logger.info("Storage: File stored", key=key, size=len(content), content_type=content_type)
        return f"{self.base_url}/{key}"

    async def delete_url(self, url: str) -> bool:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            return False
        return self.files.pop(url[len(prefix):], None) is not None

    async def put_chunk(self, upload_id: str, chunk_index: int, data: str) -> None:
        self.chunks[(upload_id, chunk_index)] = data

    async def get_chunk(self, upload_id: str, chunk_index: int) -> Optional[str]:
        return self.chunks.get((upload_id, chunk_index))

    async def delete_chunk(self, upload_id: str, chunk_index: int) -> None:
        self.chunks.pop((upload_id, chunk_index), None)

    async def used_bytes(self) -> int:
        return sum(len(f.content) for f in self.files.values())


class S3Settings(BaseSettings):
    """S3-compatible storage settings (AWS S3, Supabase Storage, MinIO, ...)."""

    bucket_name: str = "resource-catalog-uploads"
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    public_url_base: str = ""
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    model_config = {"env_prefix": "S3_", "extra": "ignore"}


class S3AssetStore(AssetStore):
    """S3-compatible file storage."""

    name = "s3"

    def __init__(
        self,
        settings: Optional[S3Settings] = None,
        s3_client=None,
        max_file_bytes: int = MAX_FILE_SIZE_BYTES,
    ) -> None:
        super().__init__(max_file_bytes)
        self.settings = settings or S3Settings()
        self.bucket_name = self.settings.bucket_name
        self.public_url_base = self.settings.public_url_base
        self.region = self.settings.region

        self.s3_client = s3_client or boto3.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.settings.endpoint_url or None,
            aws_access_key_id=self.settings.access_key_id,
            aws_secret_access_key=self.settings.secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    async def put_file(self, content: bytes, filename: str, content_type: str) -> str:
        """Upload file to S3 and return the public URL."""
        key = f"{UPLOAD_PREFIX}{int(time.time())}_{safe_name(filename)}"

        await self._call(
            "put_object",
            Bucket=self.bucket_name,
            Key=key,
            Body=content,
            ContentType=content_type,
        )

        logger.info("Storage: File uploaded", key=key, size=len(content), content_type=content_type)
        return self._key_to_url(key)

    async def delete_url(self, url: str) -> bool:
        """Delete file from S3 by its public URL. Returns True on success."""
        key = self._url_to_key(url)
        if not key:
            logger.warning("Storage: Could not extract key from URL", file_url=url)
            return False

        try:
            await self._call("delete_object", Bucket=self.bucket_name, Key=key)
            logger.info("Storage: File deleted", key=key)
            return True
        except StoragePermissionError as e:
            logger.error("Storage: Failed to delete file", key=key, error=e.message)
            return False

    async def put_chunk(self, upload_id: str, chunk_index: int, data: str) -> None:
        await self._call(
            "put_object",
            Bucket=self.bucket_name,
            Key=self._chunk_key(upload_id, chunk_index),
            Body=data.encode("utf-8"),
            ContentType="text/plain",
        )

    async def get_chunk(self, upload_id: str, chunk_index: int) -> Optional[str]:
        try:
            response = await self._call(
                "get_object",
                Bucket=self.bucket_name,
                Key=self._chunk_key(upload_id, chunk_index),
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise
        body = await asyncio.to_thread(response["Body"].read)
        return body.decode("utf-8")

    async def delete_chunk(self, upload_id: str, chunk_index: int) -> None:
        await self._call(
            "delete_object",
            Bucket=self.bucket_name,
            Key=self._chunk_key(upload_id, chunk_index),
        )

    async def used_bytes(self) -> int:
        def _sum_sizes() -> int:
            total = 0
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=UPLOAD_PREFIX):
                total += sum(obj.get("Size", 0) for obj in page.get("Contents", []))
            return total

        try:
            return await asyncio.to_thread(_sum_sizes)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Storage: Could not compute usage", error=str(e))
            return 0

    async def _call(self, operation: str, **kwargs):
        """Run a blocking boto3 call off the event loop, mapping permission errors."""
        try:
            return await asyncio.to_thread(getattr(self.s3_client, operation), **kwargs)
        except ClientError as e:
            error = e.response.get("Error", {})
            if str(error.get("Code")) in _PERMISSION_CODES:
                raise StoragePermissionError(
                    f"Permission denied by asset store: {error.get('Message') or error.get('Code')}"
                ) from e
            if operation == "get_object":
                raise
            raise CatalogError(f"Asset store error: {e}") from e

    def _chunk_key(self, upload_id: str, chunk_index: int) -> str:
        return f"{CHUNK_PREFIX}{safe_name(upload_id)}/{chunk_index:06d}"

    def _key_to_url(self, key: str) -> str:
        if self.public_url_base:
            return f"{self.public_url_base.rstrip('/')}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    def _url_to_key(self, url: str) -> Optional[str]:
        """Extract S3 key from a public URL."""
        if self.public_url_base and url.startswith(self.public_url_base):
            base = self.public_url_base.rstrip("/")
            return url[len(base) + 1 :]

        # Standard AWS S3 URL patterns
        for prefix in [
            f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/",
            f"https://{self.bucket_name}.s3.amazonaws.com/",
            f"https://s3.{self.region}.amazonaws.com/{self.bucket_name}/",
        ]:
            if url.startswith(prefix):
                return url[len(prefix) :]

        return None
