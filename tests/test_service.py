"""Tests for the connection service."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest

from dbdesk.catalog import CatalogLevel, CatalogRequest
from dbdesk.connections import Timeouts
from dbdesk.errors import ProfileNotFoundError
from dbdesk.models import ConnectionProfile, QueryResult
from dbdesk.service import ConnectionService, SessionState
from dbdesk.store import ProfileStore, StoredProfile


class _RecordingExecutor:
    def __init__(self) -> None:
        self.calls: list[tuple[ConnectionProfile, str, Any]] = []

    def execute(self, profile: ConnectionProfile, sql: str, *, cancel: threading.Event | None = None) -> QueryResult:
        self.calls.append((profile, sql, cancel))
        return QueryResult(result_sets=(), status="OK", elapsed_ms=1)


@pytest.fixture
def store(tmp_path: Path) -> ProfileStore:
    store = ProfileStore(tmp_path / "connections.json")
    store.save(StoredProfile(id="pg", name="Local PG", type="postgres", username="postgres", password="pw"))
    store.save(StoredProfile(id="my", name="Shop", type="mysql", username="root", database="shop"))
    return store


def test_subscribe_emits_current_state(store: ProfileStore) -> None:
    service = ConnectionService(store, executor=_RecordingExecutor())
    states: list[SessionState] = []

    unsubscribe = service.subscribe(states.append)

    assert len(states) == 1
    assert [profile.id for profile in states[0].profiles] == ["pg", "my"]
    assert states[0].active is None

    service.select("my")
    unsubscribe()
    service.select("pg")

    assert len(states) == 2
    assert states[1].active is not None and states[1].active.id == "my"


def test_select_unknown_profile_raises(store: ProfileStore) -> None:
    service = ConnectionService(store, executor=_RecordingExecutor())

    with pytest.raises(ProfileNotFoundError):
        service.select("missing")

    assert service.active_profile is None


def test_delete_clears_active_profile(store: ProfileStore) -> None:
    service = ConnectionService(store, executor=_RecordingExecutor())
    service.select("pg")

    service.delete_profile("pg")

    assert service.active_profile is None
    assert [profile.id for profile in service.profiles()] == ["my"]


def test_run_query_uses_runtime_profile(store: ProfileStore) -> None:
    executor = _RecordingExecutor()
    service = ConnectionService(store, executor=executor)
    cancel = threading.Event()

    result = service.run_query("my", "SELECT 1", cancel=cancel)

    assert result.status == "OK"
    profile, sql, seen_cancel = executor.calls[0]
    assert profile.kind == "mysql"
    assert profile.user == "root"
    assert sql == "SELECT 1"
    assert seen_cancel is cancel


def test_browse_runs_catalog_sql(store: ProfileStore) -> None:
    executor = _RecordingExecutor()
    service = ConnectionService(store, executor=executor)

    service.browse("my", CatalogRequest(CatalogLevel.TABLES, schema="shop"))

    _, sql, _ = executor.calls[0]
    assert "information_schema.tables" in sql
    assert "'shop'" in sql


def test_test_profile_passes_timeouts(store: ProfileStore) -> None:
    seen: list[tuple[ConnectionProfile, Timeouts | None]] = []

    def _tester(profile: ConnectionProfile, *, timeouts: Timeouts | None = None) -> None:
        seen.append((profile, timeouts))

    timeouts = Timeouts(connect=2)
    service = ConnectionService(store, timeouts=timeouts, executor=_RecordingExecutor(), tester=_tester)

    service.test_saved("pg")
    service.test_profile(ConnectionProfile(id="x", name="Adhoc", kind="postgres"))

    assert [profile.name for profile, _ in seen] == ["Local PG", "Adhoc"]
    assert all(value is timeouts for _, value in seen)


def test_test_saved_unknown_profile(store: ProfileStore) -> None:
    service = ConnectionService(store, executor=_RecordingExecutor(), tester=lambda *a, **k: None)

    with pytest.raises(ProfileNotFoundError):
        service.test_saved("missing")
