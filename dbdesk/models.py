"""Shared dataclasses used across connection/query modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .errors import UnsupportedBackendError


class BackendKind(str, Enum):
    """Database products dbdesk knows how to dial."""

    POSTGRES = "postgres"
    MYSQL = "mysql"

    @classmethod
    def parse(cls, value: "BackendKind | str") -> "BackendKind":
        """Return the matching kind or raise ``UnsupportedBackendError``."""

        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedBackendError(f"unsupported database type: {value}", kind=str(value)) from None


class TlsMode(str, Enum):
    """sslmode literals the connector treats specially."""

    DISABLE = "disable"
    PREFER = "prefer"
    REQUIRE = "require"


DEFAULT_PORTS: dict[BackendKind, int] = {
    BackendKind.POSTGRES: 5432,
    BackendKind.MYSQL: 3306,
}


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of a connection profile."""

    id: str
    name: str
    kind: str
    host: str = "localhost"
    port: int = 5432
    user: str = ""
    password: str = field(default="", repr=False)
    database: str = ""
    tls_mode: str | None = None


@dataclass(frozen=True, slots=True)
class ColumnDescriptor:
    """Column name plus the backend's own name for its type."""

    name: str
    type_name: str


@dataclass(frozen=True, slots=True)
class ResultSet:
    """Columns and display-ready rows produced by one statement."""

    columns: tuple[ColumnDescriptor, ...]
    rows: tuple[tuple[str, ...], ...]

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized query output returned to the UI."""

    result_sets: tuple[ResultSet, ...]
    status: str
    elapsed_ms: int

    @property
    def row_count(self) -> int:
        return sum(result.row_count for result in self.result_sets)


__all__ = [
    "BackendKind",
    "ColumnDescriptor",
    "ConnectionProfile",
    "DEFAULT_PORTS",
    "QueryResult",
    "ResultSet",
    "TlsMode",
]
