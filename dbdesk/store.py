"""JSON-backed storage for saved connection profiles."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator, model_validator

from .errors import ProfileNotFoundError
from .models import DEFAULT_PORTS, BackendKind, ConnectionProfile

LOG = logging.getLogger(__name__)

PROFILES_FILE = Path.home() / ".config" / "dbdesk" / "connections.json"


class StoredProfile(BaseModel):
    """One entry of connections.json."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    type: BackendKind
    host: str = "localhost"
    port: int | None = Field(default=None, gt=0)
    username: str = ""
    password: str = Field(default="", repr=False)
    database: str = ""
    sslmode: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _generate_missing_id(cls, value: object) -> object:
        if value is None or value == "":
            return uuid.uuid4().hex
        return value

    @field_validator("sslmode")
    @classmethod
    def _blank_sslmode_is_unset(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _default_port(self) -> StoredProfile:
        if self.port is None:
            self.port = DEFAULT_PORTS[self.type]
        return self

    def to_profile(self) -> ConnectionProfile:
        """Convert to the runtime profile consumed by the connector."""

        return ConnectionProfile(
            id=self.id,
            name=self.name,
            kind=self.type.value,
            host=self.host,
            port=self.port or DEFAULT_PORTS[self.type],
            user=self.username,
            password=self.password,
            database=self.database,
            tls_mode=self.sslmode,
        )


_PROFILE_LIST = TypeAdapter(list[StoredProfile])


class ProfileStore:
    """Loads, lists, saves and deletes stored profiles."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or PROFILES_FILE
        self._profiles: list[StoredProfile] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def list_profiles(self) -> tuple[StoredProfile, ...]:
        return tuple(self._profiles)

    def get(self, profile_id: str) -> StoredProfile:
        for profile in self._profiles:
            if profile.id == profile_id:
                return profile
        raise ProfileNotFoundError(f"connection not found: {profile_id}")

    def save(self, profile: StoredProfile) -> StoredProfile:
        """Insert ``profile`` or replace the entry with the same id.

        An update with an empty password keeps the password already stored.
        """

        for index, existing in enumerate(self._profiles):
            if existing.id == profile.id:
                if not profile.password:
                    profile = profile.model_copy(update={"password": existing.password})
                self._profiles[index] = profile
                self._write()
                return profile
        self._profiles.append(profile)
        self._write()
        return profile

    def delete(self, profile_id: str) -> None:
        for index, existing in enumerate(self._profiles):
            if existing.id == profile_id:
                del self._profiles[index]
                self._write()
                return
        raise ProfileNotFoundError(f"connection not found: {profile_id}")

    def _load(self) -> list[StoredProfile]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            LOG.warning("Could not read profiles file", extra={"path": str(self._path), "error": str(exc)})
            return []
        if not raw.strip():
            return []
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOG.warning("Profiles file is not valid JSON", extra={"path": str(self._path), "error": str(exc)})
            return []
        if not isinstance(entries, list):
            LOG.warning("Profiles file does not hold a list", extra={"path": str(self._path)})
            return []
        profiles: list[StoredProfile] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                profiles.append(StoredProfile.model_validate(entry))
            except ValidationError as exc:
                LOG.warning(
                    "Skipping invalid stored profile",
                    extra={"profile": entry.get("name"), "error": str(exc)},
                )
        return profiles

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(_PROFILE_LIST.dump_json(self._profiles, indent=2))


__all__ = ["PROFILES_FILE", "ProfileNotFoundError", "ProfileStore", "StoredProfile"]
