"""Worksheet interface: the spreadsheet the catalog is persisted in.

A worksheet is a list of rows of raw cells. Row numbers are 1-based and the
first row holds the headers, like a spreadsheet UI shows them.
"""

import copy
import re
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import structlog

from resource_catalog.services.normalizer import cell_to_text, normalize_headers

logger = structlog.get_logger()

NOT_FOUND = -1

_ROW_ID = re.compile(r"^row_(\d+)$")


class Worksheet(ABC):
    """Minimal tabular store the catalog service writes through."""

    name: str = "worksheet"

    @abstractmethod
    async def get_values(self) -> list[list[Any]]:
        """Return every row, header row included."""

    @abstractmethod
    async def append_row(self, values: Sequence[Any]) -> None:
        """Append one row after the last one."""

    @abstractmethod
    async def update_row(self, row_number: int, values: Sequence[Any]) -> None:
        """Replace the cells of an existing row."""

    @abstractmethod
    async def delete_row(self, row_number: int) -> None:
        """Remove a row, shifting the following rows up."""

    async def setup(self, headers: Sequence[str]) -> None:
        """Write the header row when the worksheet is empty."""
        values = await self.get_values()
        if not values:
            await self.append_row(list(headers))
            logger.info("Worksheet: Header row written", worksheet=self.name)

    async def find_row(self, resource_id: str) -> int:
        """Linear scan of the id column; NOT_FOUND when absent."""
        values = await self.get_values()
        if not values:
            return NOT_FOUND
        headers = normalize_headers(values[0])
        id_col = headers.index("id") if "id" in headers else 0
        for offset, row in enumerate(values[1:]):
            if id_col < len(row) and cell_to_text(row[id_col]) == resource_id:
                return offset + 2

        # ids synthesized on read point at a row whose id cell is blank
        match = _ROW_ID.match(resource_id)
        if match:
            row_number = int(match.group(1))
            if 2 <= row_number <= len(values):
                row = values[row_number - 1]
                if id_col >= len(row) or not cell_to_text(row[id_col]).strip():
                    return row_number
        return NOT_FOUND

    async def health_check(self) -> dict:
        try:
            values = await self.get_values()
            return {"status": "healthy", "backend": self.name, "rows": len(values)}
        except Exception as e:
            logger.error("Worksheet health check failed", backend=self.name, error=str(e))
            return {"status": "unhealthy", "backend": self.name, "error": str(e)}


class InMemoryWorksheet(Worksheet):
    """Worksheet held in process memory."""

    name = "memory"

    def __init__(self, rows: Optional[Sequence[Sequence[Any]]] = None):
        self._rows: list[list[Any]] = [list(r) for r in rows or []]

    async def get_values(self) -> list[list[Any]]:
        return copy.deepcopy(self._rows)

    async def append_row(self, values: Sequence[Any]) -> None:
        self._rows.append(list(values))

    async def update_row(self, row_number: int, values: Sequence[Any]) -> None:
        self._check_row(row_number)
        self._rows[row_number - 1] = list(values)

    async def delete_row(self, row_number: int) -> None:
        self._check_row(row_number)
        del self._rows[row_number - 1]

    def _check_row(self, row_number: int) -> None:
        if not 1 <= row_number <= len(self._rows):
            raise IndexError(f"Row {row_number} out of range")
