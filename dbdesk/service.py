"""Connection service wiring the profile store, connector and query executor."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from .catalog import CatalogRequest, catalog_sql
from .connections import Timeouts, test_connection
from .models import BackendKind, ConnectionProfile, QueryResult
from .query import QueryExecutor
from .store import ProfileStore, StoredProfile

LOG = logging.getLogger(__name__)

SessionListener = Callable[["SessionState"], None]


@dataclass(frozen=True, slots=True)
class SessionState:
    """Current selection snapshot (profiles + active profile)."""

    profiles: tuple[StoredProfile, ...]
    active: StoredProfile | None
    updated_at: datetime


class ConnectionService:
    """Front door used by the UI for profile management, tests and queries.

    Every call that touches a server opens its own connection and closes it
    before returning; the service keeps no connection between calls.
    """

    def __init__(
        self,
        store: ProfileStore,
        *,
        timeouts: Timeouts | None = None,
        executor: QueryExecutor | None = None,
        tester: Callable[..., None] = test_connection,
    ) -> None:
        self._store = store
        self._timeouts = timeouts
        self._executor = executor or QueryExecutor(timeouts=timeouts)
        self._tester = tester
        self._listeners: set[SessionListener] = set()
        self._active_id: str | None = None

    @property
    def state(self) -> SessionState:
        return SessionState(
            profiles=self._store.list_profiles(),
            active=self.active_profile,
            updated_at=datetime.now(tz=timezone.utc),
        )

    @property
    def active_profile(self) -> StoredProfile | None:
        if self._active_id is None:
            return None
        for profile in self._store.list_profiles():
            if profile.id == self._active_id:
                return profile
        return None

    def profiles(self) -> tuple[StoredProfile, ...]:
        return self._store.list_profiles()

    def get_profile(self, profile_id: str) -> StoredProfile:
        return self._store.get(profile_id)

    def select(self, profile_id: str) -> StoredProfile:
        """Mark ``profile_id`` as the profile queries run against."""

        profile = self._store.get(profile_id)
        self._active_id = profile.id
        self._notify()
        return profile

    def save_profile(self, profile: StoredProfile) -> StoredProfile:
        saved = self._store.save(profile)
        self._notify()
        return saved

    def delete_profile(self, profile_id: str) -> None:
        self._store.delete(profile_id)
        if self._active_id == profile_id:
            self._active_id = None
        self._notify()

    def test_profile(self, profile: StoredProfile | ConnectionProfile) -> None:
        """Validate a profile (saved or not) against its server."""

        runtime = profile.to_profile() if isinstance(profile, StoredProfile) else profile
        self._tester(runtime, timeouts=self._timeouts)

    def test_saved(self, profile_id: str) -> None:
        self.test_profile(self.get_profile(profile_id))

    def run_query(
        self,
        profile_id: str,
        sql: str,
        *,
        cancel: threading.Event | None = None,
    ) -> QueryResult:
        profile = self._store.get(profile_id)
        LOG.info("Running query", extra={"profile": profile.name})
        return self._executor.execute(profile.to_profile(), sql, cancel=cancel)

    def browse(self, profile_id: str, request: CatalogRequest) -> QueryResult:
        """Run a schema-browser request against the profile's server."""

        profile = self._store.get(profile_id)
        sql = catalog_sql(BackendKind.parse(profile.type), request)
        return self._executor.execute(profile.to_profile(), sql)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Subscribe to profile/selection updates; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self.state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def _notify(self) -> None:
        state = self.state
        for listener in tuple(self._listeners):
            listener(state)


__all__ = ["ConnectionService", "SessionState"]
