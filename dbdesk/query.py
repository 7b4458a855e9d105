"""Query execution: drain every result set a statement batch produces."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import closing
from typing import Any, Callable, Mapping, Sequence

from pymysql.constants import FIELD_TYPE

from .coercion import to_display_string
from .connections import ConnectionHandle, Timeouts, connect
from .errors import (
    ExecutionError,
    IterationError,
    MetadataError,
    QueryCancelledError,
    QueryExecutionError,
    ScanError,
)
from .models import BackendKind, ColumnDescriptor, ConnectionProfile, QueryResult, ResultSet

LOG = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500

_MYSQL_TYPE_NAMES: Mapping[int, str] = {
    FIELD_TYPE.DECIMAL: "DECIMAL",
    FIELD_TYPE.NEWDECIMAL: "DECIMAL",
    FIELD_TYPE.TINY: "TINYINT",
    FIELD_TYPE.SHORT: "SMALLINT",
    FIELD_TYPE.INT24: "MEDIUMINT",
    FIELD_TYPE.LONG: "INT",
    FIELD_TYPE.LONGLONG: "BIGINT",
    FIELD_TYPE.FLOAT: "FLOAT",
    FIELD_TYPE.DOUBLE: "DOUBLE",
    FIELD_TYPE.NULL: "NULL",
    FIELD_TYPE.TIMESTAMP: "TIMESTAMP",
    FIELD_TYPE.DATE: "DATE",
    FIELD_TYPE.NEWDATE: "DATE",
    FIELD_TYPE.TIME: "TIME",
    FIELD_TYPE.DATETIME: "DATETIME",
    FIELD_TYPE.YEAR: "YEAR",
    FIELD_TYPE.VARCHAR: "VARCHAR",
    FIELD_TYPE.VAR_STRING: "VARCHAR",
    FIELD_TYPE.STRING: "CHAR",
    FIELD_TYPE.BIT: "BIT",
    FIELD_TYPE.JSON: "JSON",
    FIELD_TYPE.ENUM: "ENUM",
    FIELD_TYPE.SET: "SET",
    FIELD_TYPE.TINY_BLOB: "TINYBLOB",
    FIELD_TYPE.MEDIUM_BLOB: "MEDIUMBLOB",
    FIELD_TYPE.LONG_BLOB: "LONGBLOB",
    FIELD_TYPE.BLOB: "BLOB",
    FIELD_TYPE.GEOMETRY: "GEOMETRY",
}


def materialize(
    handle: ConnectionHandle,
    sql: str,
    *,
    cancel: threading.Event | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[ResultSet]:
    """Execute ``sql`` on ``handle`` and return every result set, in order.

    Statements that return no rows (DDL, plain DML) contribute nothing, so a
    pure DDL batch yields an empty list. Any failure aborts the whole call:
    the raised ``QueryExecutionError`` lists the result sets finished so far
    in ``completed`` but nothing partial is returned. The cursor and the
    handle are both closed before this function returns or raises.
    """

    completed: list[ResultSet] = []
    with handle:
        _check_cancel(cancel, completed)
        try:
            cursor = handle.cursor()
        except Exception as exc:
            raise ExecutionError(str(exc)) from exc
        with closing(cursor):
            try:
                cursor.execute(sql)
            except Exception as exc:
                raise ExecutionError(str(exc)) from exc
            while True:
                try:
                    description = cursor.description
                except Exception as exc:
                    raise MetadataError(
                        f"Failed to read result set {len(completed) + 1} description: {exc}",
                        completed=completed,
                    ) from exc
                if description is not None:
                    completed.append(_drain(handle.kind, cursor, description, completed, cancel, batch_size))
                try:
                    has_next = cursor.nextset()
                except Exception as exc:
                    raise IterationError(
                        f"Failed to advance to result set {len(completed) + 1}: {exc}",
                        completed=completed,
                    ) from exc
                if not has_next:
                    break
    return completed


class QueryExecutor:
    """Runs SQL text for a profile on a connection opened just for that call."""

    def __init__(
        self,
        *,
        timeouts: Timeouts | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        connector: Callable[..., ConnectionHandle] = connect,
    ) -> None:
        self._timeouts = timeouts
        self._batch_size = batch_size
        self._connector = connector

    def execute(
        self,
        profile: ConnectionProfile,
        sql: str,
        *,
        cancel: threading.Event | None = None,
    ) -> QueryResult:
        statement = sql.strip()
        if not statement:
            raise QueryExecutionError("Provide SQL to execute.")
        started = time.perf_counter()
        handle = self._connector(profile, timeouts=self._timeouts)
        result_sets = materialize(handle, statement, cancel=cancel, batch_size=self._batch_size)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        LOG.debug(
            "Query finished",
            extra={"profile": profile.name, "elapsed_ms": elapsed_ms, "result_sets": len(result_sets)},
        )
        return QueryResult(
            result_sets=tuple(result_sets),
            status=_status_for(result_sets),
            elapsed_ms=elapsed_ms,
        )


def _drain(
    kind: BackendKind,
    cursor: Any,
    description: Sequence[Any],
    completed: Sequence[ResultSet],
    cancel: threading.Event | None,
    batch_size: int,
) -> ResultSet:
    try:
        columns = _describe(kind, cursor, description)
    except Exception as exc:
        raise MetadataError(f"Failed to read column metadata: {exc}", completed=completed) from exc
    width = len(columns)
    rows: list[tuple[str, ...]] = []
    while True:
        _check_cancel(cancel, completed)
        try:
            batch = cursor.fetchmany(batch_size)
        except Exception as exc:
            raise ScanError(f"Failed to read row {len(rows) + 1}: {exc}", completed=completed) from exc
        if not batch:
            break
        for raw in batch:
            try:
                values = tuple(raw)
            except TypeError as exc:
                raise ScanError(f"Row {len(rows) + 1} is not a sequence: {exc}", completed=completed) from exc
            if len(values) != width:
                raise ScanError(
                    f"Row {len(rows) + 1} has {len(values)} value(s) for {width} column(s)",
                    completed=completed,
                )
            rows.append(tuple(to_display_string(value) for value in values))
    return ResultSet(columns=columns, rows=tuple(rows))


def _describe(kind: BackendKind, cursor: Any, description: Sequence[Any]) -> tuple[ColumnDescriptor, ...]:
    if kind is BackendKind.POSTGRES:
        types = cursor.adapters.types
        return tuple(
            ColumnDescriptor(name=str(entry[0]), type_name=_postgres_type_name(types, entry[1]))
            for entry in description
        )
    if kind is BackendKind.MYSQL:
        return tuple(
            ColumnDescriptor(name=str(entry[0]), type_name=_MYSQL_TYPE_NAMES.get(entry[1], str(entry[1])))
            for entry in description
        )
    raise MetadataError(f"No column type vocabulary for backend {kind.value}")  # pragma: no cover


def _postgres_type_name(types: Any, oid: int) -> str:
    info = types.get(oid)
    if info is None:
        return str(oid)
    name = str(info.name).upper()
    if oid != info.oid and oid == getattr(info, "array_oid", None):
        return f"_{name}"
    return name


def _check_cancel(cancel: threading.Event | None, completed: Sequence[ResultSet]) -> None:
    if cancel is not None and cancel.is_set():
        raise QueryCancelledError("Query cancelled.", completed=completed)


def _status_for(result_sets: Sequence[ResultSet]) -> str:
    if not result_sets:
        return "OK"
    rows = sum(result.row_count for result in result_sets)
    if len(result_sets) == 1:
        return f"{rows} row(s)"
    return f"{len(result_sets)} result sets, {rows} row(s)"


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "ExecutionError",
    "IterationError",
    "MetadataError",
    "QueryCancelledError",
    "QueryExecutionError",
    "QueryExecutor",
    "ScanError",
    "materialize",
]
