"""Status bar widget that mirrors the active connection."""

from __future__ import annotations

from typing import Callable

from textual.widgets import Static

from dbdesk.service import ConnectionService, SessionState


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self, service: ConnectionService) -> None:
        super().__init__("", id="status-bar")
        self._service = service
        self._unsubscribe: Callable[[], None] | None = None

    async def on_mount(self) -> None:
        self._unsubscribe = self._service.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle_session_update(self, state: SessionState) -> None:
        self.update(format_status(state))


def format_status(state: SessionState) -> str:
    """Render ``state`` as a single status line."""

    profile = state.active
    refreshed = state.updated_at.astimezone().strftime("%H:%M:%S")
    if profile is None:
        parts = ["Profile: none", f"Profiles: {len(state.profiles)}"]
    else:
        target = f"{profile.host}:{profile.port}"
        if profile.database:
            target += f"/{profile.database}"
        parts = [
            f"Profile: {profile.name}",
            f"Backend: {profile.type.value}",
            f"Target: {target}",
            f"Profiles: {len(state.profiles)}",
        ]
    parts.append(f"Updated: {refreshed}")
    return " | ".join(parts)


__all__ = ["StatusBar", "format_status"]
