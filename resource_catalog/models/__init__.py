"""Pydantic models for the resource catalog."""

from resource_catalog.models.schemas import (
    ChunkRequest,
    CreateRequest,
    DeleteRequest,
    EditRequest,
    Envelope,
    Resource,
    ResourceChanges,
    ResourceDraft,
    ResourceType,
    StorageInfo,
    TagColor,
)

__all__ = [
    "ChunkRequest",
    "CreateRequest",
    "DeleteRequest",
    "EditRequest",
    "Envelope",
    "Resource",
    "ResourceChanges",
    "ResourceDraft",
    "ResourceType",
    "StorageInfo",
    "TagColor",
]
