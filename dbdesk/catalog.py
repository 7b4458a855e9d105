"""information_schema queries backing the schema browser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import BackendKind


class CatalogLevel(str, Enum):
    """What the browser is asking to list."""

    DATABASES = "databases"
    SCHEMAS = "schemas"
    TABLES = "tables"
    COLUMNS = "columns"
    PREVIEW = "preview"


@dataclass(frozen=True, slots=True)
class CatalogRequest:
    """A browser request; ``schema``/``table`` are needed from TABLES downwards."""

    level: CatalogLevel
    schema: str | None = None
    table: str | None = None
    limit: int = 100


_PG_DATABASES = """
    SELECT datname AS database_name
    FROM pg_database
    WHERE NOT datistemplate
    ORDER BY datname
"""

_PG_SCHEMAS = """
    SELECT schema_name
    FROM information_schema.schemata
    WHERE schema_name NOT IN ('pg_catalog', 'information_schema')
      AND schema_name NOT LIKE 'pg_toast%'
    ORDER BY schema_name
"""

_MYSQL_SCHEMAS = """
    SELECT schema_name
    FROM information_schema.schemata
    ORDER BY schema_name
"""


def catalog_sql(kind: BackendKind, request: CatalogRequest) -> str:
    """Return the SQL that answers ``request`` on a ``kind`` server."""

    level = request.level
    if level is CatalogLevel.DATABASES:
        return _PG_DATABASES if kind is BackendKind.POSTGRES else _MYSQL_SCHEMAS
    if level is CatalogLevel.SCHEMAS:
        # MySQL has no schema level below the database.
        return _PG_SCHEMAS if kind is BackendKind.POSTGRES else _MYSQL_SCHEMAS
    schema = _required(request.schema, "schema")
    if level is CatalogLevel.TABLES:
        table_filter = "table_type = 'BASE TABLE' AND " if kind is BackendKind.POSTGRES else ""
        return (
            "SELECT table_name FROM information_schema.tables "
            f"WHERE {table_filter}table_schema = {quote_literal(kind, schema)} ORDER BY table_name"
        )
    table = _required(request.table, "table")
    if level is CatalogLevel.COLUMNS:
        type_column = "data_type" if kind is BackendKind.POSTGRES else "column_type"
        return (
            f"SELECT column_name, {type_column}, is_nullable, column_default "
            "FROM information_schema.columns "
            f"WHERE table_schema = {quote_literal(kind, schema)} AND table_name = {quote_literal(kind, table)} "
            "ORDER BY ordinal_position"
        )
    if level is CatalogLevel.PREVIEW:
        if request.limit <= 0:
            raise ValueError("limit must be positive")
        qualified = f"{quote_identifier(kind, schema)}.{quote_identifier(kind, table)}"
        return f"SELECT * FROM {qualified} LIMIT {int(request.limit)}"
    raise ValueError(f"Unknown catalog level: {level}")  # pragma: no cover


def next_request(request: CatalogRequest, selected: str) -> CatalogRequest | None:
    """Request opened by choosing ``selected`` from the rows of ``request``.

    Each level opens the one below it, down to a row preview. Databases and
    previews are leaves.
    """

    level = request.level
    if level is CatalogLevel.SCHEMAS:
        return CatalogRequest(CatalogLevel.TABLES, schema=selected)
    if level is CatalogLevel.TABLES:
        return CatalogRequest(CatalogLevel.COLUMNS, schema=request.schema, table=selected)
    if level is CatalogLevel.COLUMNS:
        return CatalogRequest(CatalogLevel.PREVIEW, schema=request.schema, table=request.table)
    return None


def quote_literal(kind: BackendKind, value: str) -> str:
    if kind is BackendKind.MYSQL:
        value = value.replace("\\", "\\\\")
    return "'" + value.replace("'", "''") + "'"


def quote_identifier(kind: BackendKind, name: str) -> str:
    quote = '"' if kind is BackendKind.POSTGRES else "`"
    return quote + name.replace(quote, quote * 2) + quote


def _required(value: str | None, field: str) -> str:
    if not value:
        raise ValueError(f"{field} is required for this catalog request")
    return value


__all__ = ["CatalogLevel", "CatalogRequest", "catalog_sql", "next_request", "quote_identifier", "quote_literal"]
