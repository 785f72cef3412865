"""Turn raw worksheet rows into valid Resource records.

Worksheets are edited by hand, so the reader tolerates:

- header cells with any casing or stray whitespace
- rows without an id (a stable ``row_<n>`` id is derived from the position)
- missing or unknown ``type`` / ``categoryColor`` values
- cells holding numbers or dates instead of text
- legacy Google Drive links that are not directly viewable
"""

import re
from datetime import date, datetime
from typing import Any, Optional, Sequence

import structlog

from resource_catalog.models.schemas import Resource, ResourceType, TagColor

logger = structlog.get_logger()

DRIVE_VIEW_URL = "https://drive.google.com/uc?export=view&id={file_id}"
_DRIVE_FILE_ID = re.compile(r"([a-zA-Z0-9_-]{33,})")

# Worksheet row number of the first data row (the header is row 1).
FIRST_DATA_ROW = 2


def cell_to_text(value: Any) -> str:
    """Render a raw cell as display text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.strftime("%d/%m/%Y")
    return str(value)


def repair_asset_url(url: str) -> str:
    """Rewrite a legacy Drive link into its directly viewable form.

    Already canonical URLs, inline data and non-Drive links pass through.
    """
    if not url or not url.startswith("http"):
        return url
    if "drive.google.com" not in url or "export=view" in url:
        return url
    match = _DRIVE_FILE_ID.search(url)
    if not match:
        return url
    return DRIVE_VIEW_URL.format(file_id=match.group(1))


def normalize_headers(header_row: Sequence[Any]) -> list[str]:
    return [cell_to_text(h).strip().lower() for h in header_row]


def row_to_record(headers: list[str], row: Sequence[Any]) -> dict[str, str]:
    """Map normalized header names to cell text; the first duplicate column wins."""
    record: dict[str, str] = {}
    for col, header in enumerate(headers):
        if not header or header in record:
            continue
        record[header] = cell_to_text(row[col]) if col < len(row) else ""
    return record


def normalize_row(headers: list[str], row: Sequence[Any], row_number: int) -> Optional[Resource]:
    """Build a Resource from one data row, or None when it has no title."""
    record = row_to_record(headers, row)

    title = record.get("title", "").strip()
    if not title:
        return None

    resource_id = record.get("id", "").strip() or f"row_{row_number}"

    return Resource(
        id=resource_id,
        title=title,
        type=ResourceType.coerce(record.get("type")),
        url=record.get("url", ""),
        description=record.get("description", ""),
        year=record.get("year", ""),
        date_added=record.get("dateadded", ""),
        category=record.get("category", ""),
        category_color=TagColor.coerce(record.get("categorycolor")),
        icon=repair_asset_url(record.get("icon", "")),
        cover_image=repair_asset_url(record.get("coverimage", "")),
    )


def normalize_rows(values: Sequence[Sequence[Any]]) -> list[Resource]:
    """Normalize a full worksheet (header row first) preserving row order."""
    if not values:
        return []

    headers = normalize_headers(values[0])
    resources = []
    skipped = 0
    for offset, row in enumerate(values[1:]):
        resource = normalize_row(headers, row, FIRST_DATA_ROW + offset)
        if resource is None:
            skipped += 1
            continue
        resources.append(resource)

    if skipped:
        logger.debug("Normalizer: Dropped rows without title", skipped=skipped)
    return resources
