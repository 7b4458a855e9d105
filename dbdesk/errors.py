"""Exception hierarchy shared by the connector, query and store layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .models import ResultSet


class ConnectionBackendError(RuntimeError):
    """Raised when a backend cannot be dialed or fails its liveness probe."""

    def __init__(self, message: str, *, profile_name: str | None = None, kind: str | None = None) -> None:
        super().__init__(message)
        self.profile_name = profile_name
        self.kind = kind


class UnsupportedBackendError(ConnectionBackendError):
    """The profile names a database type dbdesk has no driver for."""


class DialError(ConnectionBackendError):
    """The driver refused to open a connection (bad arguments, socket failure)."""


class ProbeError(ConnectionBackendError):
    """A connection was requested but the server did not answer the liveness check."""


class QueryExecutionError(RuntimeError):
    """Raised when a query fails to execute."""

    def __init__(self, message: str, *, completed: Sequence["ResultSet"] = ()) -> None:
        super().__init__(message)
        # Result sets fully drained before the failure; never returned by materialize().
        self.completed: tuple["ResultSet", ...] = tuple(completed)


class ExecutionError(QueryExecutionError):
    """The backend rejected the SQL text."""


class MetadataError(QueryExecutionError):
    """Column names or types could not be read for a result set."""


class ScanError(QueryExecutionError):
    """A row could not be fetched or did not match the column layout."""


class IterationError(QueryExecutionError):
    """The driver failed while advancing to the next result set."""


class QueryCancelledError(QueryExecutionError):
    """The caller cancelled the query while rows were being read."""


class ProfileNotFoundError(LookupError):
    """No stored profile has the requested id."""


__all__ = [
    "ConnectionBackendError",
    "DialError",
    "ExecutionError",
    "IterationError",
    "MetadataError",
    "ProbeError",
    "ProfileNotFoundError",
    "QueryCancelledError",
    "QueryExecutionError",
    "ScanError",
    "UnsupportedBackendError",
]
