"""Connection dialing for the supported database backends."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

import psycopg
import pymysql
from psycopg.conninfo import make_conninfo
from pymysql.constants import CLIENT

from .errors import ConnectionBackendError, DialError, ProbeError, UnsupportedBackendError
from .models import BackendKind, ConnectionProfile, TlsMode

LOG = logging.getLogger(__name__)

PROBE_SQL = "SELECT 1"


@dataclass(frozen=True, slots=True)
class Timeouts:
    """Upper bounds, in seconds, for dialing and for each server round trip."""

    connect: float | None = 5.0
    query: float | None = None


class ConnectionHandle:
    """Live driver connection owned by a single operation.

    The handle is a context manager; leaving the ``with`` block closes the
    underlying connection whether the block succeeded or raised.
    """

    def __init__(self, kind: BackendKind, connection: Any, *, profile_name: str | None = None) -> None:
        self.kind = kind
        self.raw = connection
        self.profile_name = profile_name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def cursor(self) -> Any:
        return self.raw.cursor()

    def probe(self) -> None:
        """Round-trip to the server; raise ``ProbeError`` when it does not answer."""

        try:
            if self.kind is BackendKind.POSTGRES:
                with self.raw.cursor() as cursor:
                    cursor.execute(PROBE_SQL)
                    cursor.fetchone()
            elif self.kind is BackendKind.MYSQL:
                self.raw.ping(reconnect=False)
        except Exception as exc:
            raise ProbeError(
                f"Server for profile '{self.profile_name}' did not respond: {exc}",
                profile_name=self.profile_name,
                kind=self.kind.value,
            ) from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.raw.close()
        except Exception:  # pragma: no cover - best effort cleanup
            LOG.debug("Ignoring error while closing connection", extra={"profile": self.profile_name}, exc_info=True)

    def __enter__(self) -> ConnectionHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<ConnectionHandle {self.kind.value} profile={self.profile_name!r} {state}>"


def connect(profile: ConnectionProfile, *, timeouts: Timeouts | None = None) -> ConnectionHandle:
    """Open a connection for ``profile``.

    PostgreSQL handles are probed before they are returned (the TLS fallback
    depends on it). MySQL handles are returned as soon as the driver accepts
    them; :func:`test_connection` probes them explicitly.
    """

    try:
        kind = BackendKind.parse(profile.kind)
    except UnsupportedBackendError as exc:
        exc.profile_name = profile.name
        raise
    timeouts = timeouts or Timeouts()
    if kind is BackendKind.POSTGRES:
        return _connect_postgres(profile, timeouts)
    if kind is BackendKind.MYSQL:
        return _connect_mysql(profile, timeouts)
    raise UnsupportedBackendError(  # pragma: no cover - exhaustive over BackendKind
        f"unsupported database type: {kind.value}", profile_name=profile.name, kind=kind.value
    )


def test_connection(profile: ConnectionProfile, *, timeouts: Timeouts | None = None) -> None:
    """Check that ``profile`` reaches a live server, then release the connection."""

    with connect(profile, timeouts=timeouts) as handle:
        if handle.kind is not BackendKind.POSTGRES:
            handle.probe()
        LOG.info("Connection test succeeded", extra={"profile": profile.name})


def postgres_conninfo(profile: ConnectionProfile, sslmode: str, timeouts: Timeouts | None = None) -> str:
    """Build a libpq keyword/value string for ``profile`` with the given sslmode."""

    params: dict[str, object] = {
        "host": profile.host,
        "port": profile.port,
        "user": profile.user,
        "password": profile.password,
        "dbname": profile.database,
        "sslmode": sslmode,
    }
    if timeouts and timeouts.connect:
        # libpq only takes whole seconds.
        params["connect_timeout"] = max(1, math.ceil(timeouts.connect))
    if timeouts and timeouts.query:
        params["options"] = f"-c statement_timeout={int(timeouts.query * 1000)}"
    return make_conninfo("", **params)


def mysql_dsn(profile: ConnectionProfile, *, mask_password: bool = True) -> str:
    """Render ``user:password@tcp(host:port)/database`` for ``profile``."""

    password = "****" if mask_password and profile.password else profile.password
    return f"{profile.user}:{password}@tcp({profile.host}:{profile.port})/{profile.database}"


def mysql_connect_kwargs(profile: ConnectionProfile, timeouts: Timeouts | None = None) -> dict[str, object]:
    kwargs: dict[str, object] = {
        "host": profile.host,
        "port": int(profile.port),
        "user": profile.user,
        "password": profile.password,
        "database": profile.database or None,
        "charset": "utf8mb4",
        "autocommit": True,
        "client_flag": CLIENT.MULTI_STATEMENTS,
    }
    if timeouts and timeouts.connect:
        kwargs["connect_timeout"] = timeouts.connect
    if timeouts and timeouts.query:
        kwargs["read_timeout"] = timeouts.query
    return kwargs


def _connect_postgres(profile: ConnectionProfile, timeouts: Timeouts) -> ConnectionHandle:
    mode = profile.tls_mode
    if mode and mode != TlsMode.PREFER.value:
        return _dial_postgres(profile, mode, timeouts)
    try:
        return _dial_postgres(profile, TlsMode.DISABLE.value, timeouts)
    except ProbeError as exc:
        LOG.info(
            "Plain connection failed; retrying with sslmode=require",
            extra={"profile": profile.name, "reason": str(exc)},
        )
    return _dial_postgres(profile, TlsMode.REQUIRE.value, timeouts)


def _dial_postgres(profile: ConnectionProfile, sslmode: str, timeouts: Timeouts) -> ConnectionHandle:
    LOG.info("Connecting to PostgreSQL", extra={"profile": profile.name, "sslmode": sslmode})
    try:
        conninfo = postgres_conninfo(profile, sslmode, timeouts)
        connection = psycopg.connect(conninfo, autocommit=True)
    except psycopg.OperationalError as exc:
        # psycopg connects eagerly: a server that refuses the session fails here.
        raise ProbeError(
            f"Failed to connect to profile '{profile.name}' (sslmode={sslmode}): {exc}",
            profile_name=profile.name,
            kind=BackendKind.POSTGRES.value,
        ) from exc
    except Exception as exc:
        raise DialError(
            f"Invalid connection settings for profile '{profile.name}': {exc}",
            profile_name=profile.name,
            kind=BackendKind.POSTGRES.value,
        ) from exc
    handle = ConnectionHandle(BackendKind.POSTGRES, connection, profile_name=profile.name)
    try:
        handle.probe()
    except ProbeError:
        handle.close()
        raise
    return handle


def _connect_mysql(profile: ConnectionProfile, timeouts: Timeouts) -> ConnectionHandle:
    LOG.info("Connecting to MySQL", extra={"profile": profile.name, "dsn": mysql_dsn(profile)})
    try:
        connection = pymysql.connect(**mysql_connect_kwargs(profile, timeouts))
    except Exception as exc:
        raise DialError(
            f"Failed to connect to profile '{profile.name}' ({mysql_dsn(profile)}): {exc}",
            profile_name=profile.name,
            kind=BackendKind.MYSQL.value,
        ) from exc
    return ConnectionHandle(BackendKind.MYSQL, connection, profile_name=profile.name)


__all__ = [
    "ConnectionBackendError",
    "ConnectionHandle",
    "DialError",
    "ProbeError",
    "Timeouts",
    "UnsupportedBackendError",
    "connect",
    "mysql_connect_kwargs",
    "mysql_dsn",
    "postgres_conninfo",
    "test_connection",
]
