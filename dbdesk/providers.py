"""Command palette providers for core app features."""

from __future__ import annotations

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .service import ConnectionService


class _ProfileActionProvider(Provider):
    """Base provider yielding one palette entry per saved profile."""

    label = ""
    help_text = ""
    app_method = ""

    async def search(self, query: str) -> Hits:
        service = self._service
        if service is None:
            return
        matcher = self.matcher(query)
        for profile in service.profiles():
            text = f"{self.label}: {profile.name}"
            match = matcher.match(text)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=matcher.highlight(text),
                    command=self._build_callback(profile.id),
                    help=self.help_text,
                )

    async def discover(self) -> Hits:
        service = self._service
        if service is None:
            return
        for profile in service.profiles():
            yield DiscoveryHit(
                display=f"{self.label}: {profile.name}",
                command=self._build_callback(profile.id),
                help=self.help_text,
            )

    @property
    def _service(self) -> ConnectionService | None:
        service = getattr(self.app, "service", None)
        if isinstance(service, ConnectionService):
            return service
        return None

    def _build_callback(self, profile_id: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            handler = getattr(self.app, self.app_method, None)
            if handler is None:
                return
            handler(profile_id)

        return _run


class ProfileSwitchProvider(_ProfileActionProvider):
    """Expose connection profiles to the command palette."""

    label = "Use profile"
    help_text = "Set the active connection profile."
    app_method = "select_profile"


class ProfileTestProvider(_ProfileActionProvider):
    """Expose a connection test for every saved profile."""

    label = "Test connection"
    help_text = "Open a connection and probe the server."
    app_method = "test_profile"


class ProfileBrowseProvider(_ProfileActionProvider):
    """Open the schema browser for a saved profile."""

    label = "Browse schemas"
    help_text = "List schemas; select a row to open tables, columns and a preview."
    app_method = "browse_profile"


class ProfileDatabasesProvider(_ProfileActionProvider):
    """List the databases visible to a saved profile."""

    label = "List databases"
    help_text = "Show the databases on the profile's server."
    app_method = "list_databases"


__all__ = ["ProfileBrowseProvider", "ProfileDatabasesProvider", "ProfileSwitchProvider", "ProfileTestProvider"]
