"""Tests for connection dialing and the PostgreSQL TLS fallback."""

from __future__ import annotations

from typing import Any

import psycopg
import pytest
from psycopg.conninfo import conninfo_to_dict
from pymysql.constants import CLIENT

from dbdesk.connections import (
    ConnectionHandle,
    DialError,
    ProbeError,
    Timeouts,
    UnsupportedBackendError,
    connect,
    mysql_connect_kwargs,
    mysql_dsn,
    postgres_conninfo,
    test_connection as check_connection,
)
from dbdesk.models import BackendKind, ConnectionProfile


def _pg_profile(**overrides: Any) -> ConnectionProfile:
    values: dict[str, Any] = {
        "id": "pg-1",
        "name": "Local PG",
        "kind": "postgres",
        "host": "db.internal",
        "port": 5432,
        "user": "app",
        "password": "secret",
        "database": "appdb",
    }
    values.update(overrides)
    return ConnectionProfile(**values)


def _mysql_profile(**overrides: Any) -> ConnectionProfile:
    values: dict[str, Any] = {
        "id": "my-1",
        "name": "Local MySQL",
        "kind": "mysql",
        "host": "mysql.internal",
        "port": 3306,
        "user": "root",
        "password": "pw",
        "database": "shop",
    }
    values.update(overrides)
    return ConnectionProfile(**values)


class _FakeCursor:
    def __init__(self, connection: "_FakePgConnection") -> None:
        self._connection = connection

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def execute(self, sql: str) -> None:
        self._connection.executed.append(sql)
        if self._connection.check_error is not None:
            raise self._connection.check_error

    def fetchone(self) -> tuple[int]:
        return (1,)


class _FakePgConnection:
    def __init__(self, conninfo: str, check_error: Exception | None = None) -> None:
        self.conninfo = conninfo
        self.params = conninfo_to_dict(conninfo)
        self.check_error = check_error
        self.executed: list[str] = []
        self.closed = False

    def cursor(self) -> _FakeCursor:
        return _FakeCursor(self)

    def close(self) -> None:
        self.closed = True


class _PgDialer:
    """Stands in for psycopg.connect; behaviour keyed by sslmode."""

    def __init__(self, outcomes: dict[str, Exception | str | None]) -> None:
        self.outcomes = outcomes
        self.connections: list[_FakePgConnection] = []
        self.modes: list[str] = []

    def __call__(self, conninfo: str, **kwargs: Any) -> _FakePgConnection:
        assert kwargs.get("autocommit") is True
        mode = conninfo_to_dict(conninfo)["sslmode"]
        self.modes.append(mode)
        outcome = self.outcomes.get(mode)
        if isinstance(outcome, Exception):
            raise outcome
        check_error = RuntimeError(outcome) if isinstance(outcome, str) else None
        connection = _FakePgConnection(conninfo, check_error=check_error)
        self.connections.append(connection)
        return connection


class _FakeMysqlConnection:
    def __init__(self, ping_error: Exception | None = None) -> None:
        self.ping_error = ping_error
        self.pings = 0
        self.closed = False

    def ping(self, reconnect: bool = True) -> None:
        assert reconnect is False
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error

    def close(self) -> None:
        self.closed = True


def _forbid(*args: Any, **kwargs: Any) -> None:
    raise AssertionError("driver should not be called")


def test_unsupported_kind_fails_without_io(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", _forbid)
    monkeypatch.setattr("dbdesk.connections.pymysql.connect", _forbid)

    with pytest.raises(UnsupportedBackendError) as excinfo:
        connect(_pg_profile(kind="sqlite"))

    assert "unsupported database type: sqlite" in str(excinfo.value)
    assert excinfo.value.profile_name == "Local PG"
    assert excinfo.value.kind == "sqlite"


def test_kind_matching_is_exact(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", _forbid)

    with pytest.raises(UnsupportedBackendError):
        connect(_pg_profile(kind="Postgres"))


def test_unset_tls_uses_plain_connection_when_it_works(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer({"disable": None})
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    handle = connect(_pg_profile())

    assert dialer.modes == ["disable"]
    assert handle.kind is BackendKind.POSTGRES
    assert handle.raw is dialer.connections[0]
    assert dialer.connections[0].executed == ["SELECT 1"]
    handle.close()
    assert dialer.connections[0].closed is True


def test_prefer_falls_back_to_require_when_plain_is_refused(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer(
        {
            "disable": psycopg.OperationalError("server requires SSL"),
            "require": None,
        }
    )
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    handle = connect(_pg_profile(tls_mode="prefer"))

    assert dialer.modes == ["disable", "require"]
    assert handle.raw.params["sslmode"] == "require"
    assert handle.closed is False


def test_fallback_when_plain_check_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer({"disable": "connection reset", "require": None})
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    handle = connect(_pg_profile())

    assert dialer.modes == ["disable", "require"]
    assert dialer.connections[0].closed is True
    assert handle.raw is dialer.connections[1]


def test_fallback_reports_only_the_second_error(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer(
        {
            "disable": psycopg.OperationalError("first failure"),
            "require": psycopg.OperationalError("second failure"),
        }
    )
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    with pytest.raises(ProbeError) as excinfo:
        connect(_pg_profile(tls_mode=""))

    message = str(excinfo.value)
    assert "second failure" in message
    assert "sslmode=require" in message
    assert "first failure" not in message
    assert excinfo.value.profile_name == "Local PG"


def test_explicit_tls_mode_gets_a_single_attempt(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer({"disable": psycopg.OperationalError("refused")})
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    with pytest.raises(ProbeError):
        connect(_pg_profile(tls_mode="disable"))

    assert dialer.modes == ["disable"]


def test_explicit_tls_mode_is_passed_verbatim(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer({"verify-full": None})
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    handle = connect(_pg_profile(tls_mode="verify-full"))

    assert dialer.modes == ["verify-full"]
    handle.close()


def test_driver_rejecting_settings_is_a_dial_error(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer({"disable": psycopg.ProgrammingError("invalid connection option")})
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    with pytest.raises(DialError):
        connect(_pg_profile())

    assert dialer.modes == ["disable"]


def test_postgres_conninfo_orders_parameters() -> None:
    conninfo = postgres_conninfo(_pg_profile(), "disable")

    keys = [part.split("=", 1)[0] for part in conninfo.split()]
    assert keys == ["host", "port", "user", "password", "dbname", "sslmode"]
    params = conninfo_to_dict(conninfo)
    assert params["host"] == "db.internal"
    assert params["port"] == "5432"
    assert params["dbname"] == "appdb"


def test_postgres_conninfo_carries_timeouts() -> None:
    conninfo = postgres_conninfo(_pg_profile(), "require", Timeouts(connect=2.5, query=1.5))

    params = conninfo_to_dict(conninfo)
    assert params["connect_timeout"] == "3"
    assert params["options"] == "-c statement_timeout=1500"


def test_mysql_connect_skips_ping(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}
    connection = _FakeMysqlConnection()

    def _connect(**kwargs: Any) -> _FakeMysqlConnection:
        captured.update(kwargs)
        return connection

    monkeypatch.setattr("dbdesk.connections.pymysql.connect", _connect)

    handle = connect(_mysql_profile(), timeouts=Timeouts(connect=4, query=9))

    assert handle.kind is BackendKind.MYSQL
    assert connection.pings == 0
    assert captured["host"] == "mysql.internal"
    assert captured["database"] == "shop"
    assert captured["client_flag"] & CLIENT.MULTI_STATEMENTS
    assert captured["connect_timeout"] == 4
    assert captured["read_timeout"] == 9


def test_mysql_open_failure_is_a_dial_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _connect(**kwargs: Any) -> None:
        raise OSError("no route to host")

    monkeypatch.setattr("dbdesk.connections.pymysql.connect", _connect)

    with pytest.raises(DialError) as excinfo:
        connect(_mysql_profile())

    assert "no route to host" in str(excinfo.value)
    assert "pw" not in str(excinfo.value)


def test_mysql_dsn_masks_password_by_default() -> None:
    profile = _mysql_profile()

    assert mysql_dsn(profile) == "root:****@tcp(mysql.internal:3306)/shop"
    assert mysql_dsn(profile, mask_password=False) == "root:pw@tcp(mysql.internal:3306)/shop"


def test_mysql_kwargs_use_none_for_missing_database() -> None:
    kwargs = mysql_connect_kwargs(_mysql_profile(database=""))

    assert kwargs["database"] is None
    assert "read_timeout" not in kwargs


def test_test_connection_pings_mysql_and_closes(monkeypatch: pytest.MonkeyPatch) -> None:
    connection = _FakeMysqlConnection()
    monkeypatch.setattr("dbdesk.connections.pymysql.connect", lambda **kwargs: connection)

    check_connection(_mysql_profile())

    assert connection.pings == 1
    assert connection.closed is True


def test_test_connection_surfaces_mysql_ping_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    connection = _FakeMysqlConnection(ping_error=ConnectionResetError("gone"))
    monkeypatch.setattr("dbdesk.connections.pymysql.connect", lambda **kwargs: connection)

    with pytest.raises(ProbeError):
        check_connection(_mysql_profile())

    assert connection.closed is True


def test_test_connection_checks_postgres_once(monkeypatch: pytest.MonkeyPatch) -> None:
    dialer = _PgDialer({"disable": None})
    monkeypatch.setattr("dbdesk.connections.psycopg.connect", dialer)

    check_connection(_pg_profile())

    assert dialer.connections[0].executed == ["SELECT 1"]
    assert dialer.connections[0].closed is True


def test_handle_close_is_idempotent() -> None:
    connection = _FakeMysqlConnection()
    handle = ConnectionHandle(BackendKind.MYSQL, connection, profile_name="x")

    with handle:
        pass
    handle.close()

    assert handle.closed is True
    assert connection.closed is True
