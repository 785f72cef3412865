"""Worksheet backends the catalog is persisted in."""

from resource_catalog.db.worksheet import NOT_FOUND, InMemoryWorksheet, Worksheet
from resource_catalog.db.postgres_worksheet import PostgresWorksheet, get_postgres_worksheet

__all__ = ["NOT_FOUND", "Worksheet", "InMemoryWorksheet", "PostgresWorksheet", "get_postgres_worksheet"]
