"""Parse pasted connection URLs into profile fields."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, unquote, urlsplit

from .models import DEFAULT_PORTS, BackendKind
from .store import StoredProfile

_SCHEMES: dict[str, BackendKind] = {
    "postgres": BackendKind.POSTGRES,
    "postgresql": BackendKind.POSTGRES,
    "mysql": BackendKind.MYSQL,
}


@dataclass(frozen=True, slots=True)
class ParsedConnection:
    """Fields recovered from a connection URL."""

    kind: BackendKind
    host: str
    port: int
    username: str | None = None
    password: str | None = None
    database: str | None = None
    sslmode: str | None = None

    def to_stored_profile(self, name: str) -> StoredProfile:
        """Build a new stored profile named ``name`` from the parsed fields."""

        return StoredProfile(
            name=name,
            type=self.kind,
            host=self.host or "localhost",
            port=self.port,
            username=self.username or "",
            password=self.password or "",
            database=self.database or "",
            sslmode=self.sslmode,
        )


def parse_connection_url(text: str) -> ParsedConnection | None:
    """Parse ``postgres://``, ``postgresql://`` or ``mysql://`` URLs.

    Returns ``None`` for anything that is not one of those URLs.
    """

    candidate = text.strip()
    scheme, sep, _ = candidate.partition("://")
    if not sep:
        return None
    kind = _SCHEMES.get(scheme.lower())
    if kind is None:
        return None
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError:
        return None
    query = parse_qs(parts.query)
    database = unquote(parts.path.lstrip("/")) or None
    if database is None:
        database = _first(query, "database") or _first(query, "dbname")
    sslmode = _first(query, "sslmode") if kind is BackendKind.POSTGRES else None
    return ParsedConnection(
        kind=kind,
        host=parts.hostname or "",
        port=port or DEFAULT_PORTS[kind],
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password else None,
        database=database,
        sslmode=sslmode,
    )


def profile_from_url(name: str, text: str) -> StoredProfile:
    """Build a new stored profile from a pasted URL.

    Raises ``ValueError`` when ``text`` is not a supported URL. A blank
    ``name`` defaults to ``host/database``.
    """

    parsed = parse_connection_url(text)
    if parsed is None:
        raise ValueError("Enter a postgres://, postgresql:// or mysql:// URL.")
    label = name.strip() or "/".join(part for part in (parsed.host, parsed.database) if part)
    return parsed.to_stored_profile(label or parsed.kind.value)


def _first(query: dict[str, list[str]], key: str) -> str | None:
    values = query.get(key)
    if not values:
        return None
    return values[0] or None


__all__ = ["ParsedConnection", "parse_connection_url", "profile_from_url"]
