"""Textual application entry point for dbdesk."""

from __future__ import annotations

import logging

from textual import work
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import Footer, Header

from .catalog import CatalogLevel, CatalogRequest
from .config import AppConfig, load_config, save_config
from .errors import ConnectionBackendError, ProfileNotFoundError
from .providers import ProfileBrowseProvider, ProfileDatabasesProvider, ProfileSwitchProvider, ProfileTestProvider
from .service import ConnectionService
from .store import ProfileStore, StoredProfile
from .widgets import NewProfileScreen, ProfileSidebar, QueryPad, StatusBar

LOG = logging.getLogger(__name__)


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


def configure_logging(config: AppConfig) -> None:
    """Send log records to ``config.log_file`` so they stay out of the terminal UI."""

    config.log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=config.log_file,
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class DbdeskApp(App[None]):
    """Terminal client for saved PostgreSQL and MySQL profiles."""

    COMMANDS = App.COMMANDS | {
        ProfileSwitchProvider,
        ProfileTestProvider,
        ProfileBrowseProvider,
        ProfileDatabasesProvider,
    }
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    #main-column {
        layout: vertical;
        padding: 1 2;
        height: 1fr;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+n", "new_profile", "New Connection"),
        ("ctrl+t", "test_connection", "Test Connection"),
        ("ctrl+b", "browse", "Browse"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(self, *, config: AppConfig | None = None, service: ConnectionService | None = None) -> None:
        super().__init__()
        self._config = config or _load_app_config()
        self._service = service or ConnectionService(
            ProfileStore(self._config.profiles_file),
            timeouts=self._config.timeouts(),
        )
        self._restore_active_profile()

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        main_column = Container(QueryPad(self._service, row_limit=self._config.row_limit), id="main-column")
        yield Horizontal(ProfileSidebar(self._service), main_column, id="content")
        yield StatusBar(self._service)
        yield Footer()

    @property
    def service(self) -> ConnectionService:
        """Expose the connection service for widgets, providers and tests."""

        return self._service

    def select_profile(self, profile_id: str) -> None:
        """Activate the requested connection profile and persist the choice."""

        try:
            profile = self._service.select(profile_id)
        except ProfileNotFoundError as exc:
            self.notify(str(exc), severity="error")
            return
        self._config = self._config.with_active_profile(profile.id)
        save_config(self._config)
        self.notify(f"Using profile: {profile.name}", severity="information")

    def action_new_profile(self) -> None:
        self.push_screen(NewProfileScreen(), self._handle_new_profile)

    def delete_profile(self, profile_id: str) -> None:
        """Remove a saved profile, forgetting it as the active one if needed."""

        try:
            profile = self._service.get_profile(profile_id)
            self._service.delete_profile(profile_id)
        except ProfileNotFoundError as exc:
            self.notify(str(exc), severity="error")
            return
        if self._config.active_profile == profile_id:
            self._config = self._config.with_active_profile(None)
            save_config(self._config)
        self.notify(f"Deleted profile: {profile.name}", severity="information")

    def action_browse(self) -> None:
        profile = self._service.active_profile
        if profile is None:
            self.notify("Select a connection first.", severity="warning")
            return
        self.browse_profile(profile.id)

    def browse_profile(self, profile_id: str, level: CatalogLevel = CatalogLevel.SCHEMAS) -> None:
        """Show the schema browser for a saved profile in the query pad."""

        self.query_one(QueryPad).browse(profile_id, CatalogRequest(level))

    def list_databases(self, profile_id: str) -> None:
        self.browse_profile(profile_id, CatalogLevel.DATABASES)

    def action_test_connection(self) -> None:
        profile = self._service.active_profile
        if profile is None:
            self.notify("Select a connection first.", severity="warning")
            return
        self.test_profile(profile.id)

    @work(thread=True, group="connection-test")
    def test_profile(self, profile_id: str) -> None:
        """Probe a saved profile off the UI thread and report the outcome."""

        try:
            profile = self._service.get_profile(profile_id)
            self._service.test_profile(profile)
        except ProfileNotFoundError as exc:
            self.call_from_thread(self.notify, str(exc), severity="error")
            return
        except ConnectionBackendError as exc:
            LOG.warning("Connection test failed", extra={"profile": profile_id, "error": str(exc)})
            self.call_from_thread(self.notify, str(exc), title="Connection test failed", severity="error")
            return
        self.call_from_thread(self.notify, "Connection successful.", title=profile.name, severity="information")

    def _handle_new_profile(self, profile: StoredProfile | None) -> None:
        if profile is None:
            return
        saved = self._service.save_profile(profile)
        self.select_profile(saved.id)

    def _restore_active_profile(self) -> None:
        profile_id = self._config.active_profile
        if not profile_id:
            return
        try:
            self._service.select(profile_id)
        except ProfileNotFoundError:
            LOG.info("Configured active profile no longer exists", extra={"profile": profile_id})


def main() -> None:
    """Invoke the Textual application."""

    config = _load_app_config()
    configure_logging(config)
    DbdeskApp(config=config).run()


if __name__ == "__main__":
    main()
