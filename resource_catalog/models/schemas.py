"""Pydantic models for the resource catalog wire contract."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ============================================================================
# Enums
# ============================================================================


class ResourceType(str, Enum):
    """Kind of catalog entry."""

    NOTE = "note"
    BOOK = "book"

    @classmethod
    def coerce(cls, value: Any) -> "ResourceType":
        """Map any raw value onto a member, defaulting to NOTE."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError:
            return cls.NOTE


class TagColor(str, Enum):
    """Display tag for a category badge."""

    RED = "red"
    YELLOW = "yellow"
    BROWN = "brown"
    PINK = "pink"
    GREEN = "green"
    GRAY = "gray"
    DEFAULT = "default"
    PURPLE = "purple"
    ORANGE = "orange"
    BLUE = "blue"

    @classmethod
    def coerce(cls, value: Any) -> "TagColor":
        """Map any raw value onto a member, defaulting to GRAY."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError:
            return cls.GRAY


PREDEFINED_CATEGORIES = [
    "Generale",
    "Calcolo numerico",
    "Linguaggi C/C++ Python",
    "Fisica",
    "Ingegneria del Software",
    "Reti",
    "Gestioni Informazioni",
    "Ricerca operativa OLI",
    "Architettura dei calcolatori",
]

# Column order of the Resources worksheet.
SHEET_HEADERS = [
    "id",
    "title",
    "url",
    "description",
    "year",
    "dateAdded",
    "category",
    "categoryColor",
    "type",
    "icon",
    "coverImage",
]


class WireModel(BaseModel):
    """Base model speaking camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Core Domain Models
# ============================================================================


class Resource(WireModel):
    """One catalog entry (note or book)."""

    id: str
    title: str
    type: ResourceType = ResourceType.NOTE
    url: str = ""
    description: str = ""
    year: str = ""
    date_added: str = ""
    category: str = ""
    category_color: TagColor = TagColor.GRAY
    icon: str = ""
    cover_image: str = ""


class StorageInfo(BaseModel):
    """Snapshot of asset store usage in bytes."""

    used: int = 0
    limit: int = 0


# ============================================================================
# Write Requests
# ============================================================================


class ResourceDraft(WireModel):
    """Fields a user supplies when creating a resource."""

    title: str = Field(..., description="Display title, required")
    type: ResourceType = ResourceType.NOTE
    url: str = ""
    description: str = ""
    year: str = ""
    category: str = ""
    category_color: TagColor = TagColor.GRAY
    icon: str = ""
    cover_image: str = ""
    file_data: str = Field(default="", description="Encoded file as a data URL")

    @field_validator("url", "description", "year", "category", "icon", "cover_image", "file_data", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> ResourceType:
        return ResourceType.coerce(value)

    @field_validator("category_color", mode="before")
    @classmethod
    def _coerce_color(cls, value: Any) -> TagColor:
        return TagColor.coerce(value)


class CreateRequest(ResourceDraft):
    """POST body for action=create, possibly finalizing a chunked upload."""

    action: Literal["create"] = "create"
    upload_id: Optional[str] = None
    total_chunks: Optional[int] = Field(default=None, ge=0)


class ResourceChanges(WireModel):
    """Partial update: None means leave the stored value unchanged."""

    id: str
    title: Optional[str] = None
    type: Optional[ResourceType] = None
    url: Optional[str] = None
    description: Optional[str] = None
    year: Optional[str] = None
    category: Optional[str] = None
    category_color: Optional[TagColor] = None
    icon: Optional[str] = None
    cover_image: Optional[str] = None
    file_data: Optional[str] = None

    @field_validator("url", "description", "year", "category", "icon", "cover_image", "file_data", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        return str(value)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Optional[ResourceType]:
        return None if value is None else ResourceType.coerce(value)

    @field_validator("category_color", mode="before")
    @classmethod
    def _coerce_color(cls, value: Any) -> Optional[TagColor]:
        return None if value is None else TagColor.coerce(value)

    @classmethod
    def from_resource(cls, resource: Resource) -> "ResourceChanges":
        """Full replacement of every editable field."""
        data = resource.model_dump(exclude={"date_added"})
        return cls(**data)


class EditRequest(ResourceChanges):
    """POST body for action=edit."""

    action: Literal["edit"] = "edit"
    upload_id: Optional[str] = None
    total_chunks: Optional[int] = Field(default=None, ge=0)


class DeleteRequest(WireModel):
    """POST body for action=delete."""

    action: Literal["delete"] = "delete"
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        return str(value)


class ChunkRequest(WireModel):
    """POST body for action=upload_chunk."""

    action: Literal["upload_chunk"] = "upload_chunk"
    upload_id: str = Field(..., min_length=1)
    chunk_index: int = Field(..., ge=0)
    chunk_data: str


# ============================================================================
# Responses
# ============================================================================


class Envelope(BaseModel):
    """Uniform response envelope for every backend call."""

    status: Literal["success", "error"]
    data: Optional[Any] = None
    message: Optional[str] = None
    storage: Optional[StorageInfo] = None
    chunk: Optional[int] = None

    @classmethod
    def success(cls, data: Any = None, storage: Optional[StorageInfo] = None, **extra) -> "Envelope":
        return cls(status="success", data=data, storage=storage, **extra)

    @classmethod
    def error(cls, message: str) -> "Envelope":
        return cls(status="error", message=message)

    def to_json(self) -> dict:
        """JSON-ready dict, omitting unset envelope keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    worksheet: dict
    assets: dict
    version: str
