"""Sidebar listing stored connection profiles."""

from __future__ import annotations

from typing import Callable

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Label, ListItem, ListView, Static

from dbdesk.service import ConnectionService, SessionState
from dbdesk.store import StoredProfile


class ProfileSidebar(Container):
    """Displays saved profiles and a summary of the active one."""

    DEFAULT_CSS = """
    ProfileSidebar {
        width: 30;
        min-width: 22;
        border-right: solid $surface-darken-1;
        padding: 1;
        height: 1fr;
        background: $surface-darken-2;
    }

    ProfileSidebar .sidebar-heading {
        text-style: bold;
        margin-bottom: 1;
    }

    #profile-list {
        height: 1fr;
        border: round $primary 30%;
        margin-bottom: 1;
    }

    #profile-list .active {
        text-style: bold;
    }

    #profile-summary {
        padding-top: 1;
        border-top: solid $surface-darken-1;
        color: $text-muted;
        height: auto;
        min-height: 5;
    }
    """

    BINDINGS = [
        Binding("t", "test_highlighted", "Test connection", show=False),
        Binding("b", "browse_highlighted", "Browse schemas", show=False),
        Binding("d", "delete_highlighted", "Delete connection", show=False),
    ]

    def __init__(self, service: ConnectionService) -> None:
        super().__init__(id="profile-sidebar")
        self._service = service
        self._profile_list: ListView | None = None
        self._summary: Static | None = None
        self._profile_ids: tuple[str, ...] = ()
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Static("Connections", classes="sidebar-heading")
        self._profile_list = ListView(id="profile-list")
        yield self._profile_list
        self._summary = Static("No connection selected.", id="profile-summary")
        yield self._summary

    async def on_mount(self) -> None:
        self._unsubscribe = self._service.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def action_test_highlighted(self) -> None:
        self._call_app("test_profile")

    def action_browse_highlighted(self) -> None:
        self._call_app("browse_profile")

    def action_delete_highlighted(self) -> None:
        self._call_app("delete_profile")

    def _call_app(self, method: str) -> None:
        if self._profile_list is None:
            return
        item = self._profile_list.highlighted_child
        if isinstance(item, _ProfileListItem):
            handler = getattr(self.app, method, None)
            if handler is not None:
                handler(item.profile_id)

    @on(ListView.Selected, "#profile-list")
    def _handle_profile_selected(self, event: ListView.Selected) -> None:
        item = event.item
        if isinstance(item, _ProfileListItem):
            switcher = getattr(self.app, "select_profile", None)
            if switcher is not None:
                switcher(item.profile_id)
            event.stop()

    def _handle_session_update(self, state: SessionState) -> None:
        self._render_profiles(state)
        self._render_summary(state.active)

    def _render_profiles(self, state: SessionState) -> None:
        if self._profile_list is None:
            return
        ids = tuple(profile.id for profile in state.profiles)
        if ids != self._profile_ids:
            self._profile_ids = ids
            self._profile_list.clear()
            self._profile_list.extend(_ProfileListItem(profile) for profile in state.profiles)
        active_id = state.active.id if state.active else None
        for child in self._profile_list.children:
            if isinstance(child, _ProfileListItem):
                child.set_class(child.profile_id == active_id, "active")

    def _render_summary(self, profile: StoredProfile | None) -> None:
        if self._summary is None:
            return
        if profile is None:
            self._summary.update("No connection selected.")
            return
        sslmode = profile.sslmode or "auto"
        self._summary.update(
            "\n".join(
                [
                    f"Profile: {profile.name}",
                    f"Type: {profile.type.value}",
                    f"Host: {profile.host}:{profile.port}",
                    f"Database: {profile.database or '-'}",
                    f"User: {profile.username or '-'}",
                    f"SSL: {sslmode}" if profile.type.value == "postgres" else "SSL: driver default",
                ]
            )
        )


class _ProfileListItem(ListItem):
    """List item storing a profile id for selection callbacks."""

    def __init__(self, profile: StoredProfile) -> None:
        super().__init__(Label(profile.name))
        self.profile_id = profile.id


__all__ = ["ProfileSidebar"]
