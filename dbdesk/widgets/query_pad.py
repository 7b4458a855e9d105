"""Query pad widget: SQL editor plus one result table per result set."""

from __future__ import annotations

import threading
from typing import Callable

from rich.text import Text
from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, VerticalScroll
from textual.widgets import Button, DataTable, Static, TextArea

from dbdesk.catalog import CatalogRequest, next_request
from dbdesk.errors import ConnectionBackendError, ProfileNotFoundError, QueryCancelledError, QueryExecutionError
from dbdesk.models import QueryResult, ResultSet
from dbdesk.service import ConnectionService, SessionState
from dbdesk.store import StoredProfile


class QueryPad(Container):
    """Editor surface that runs SQL against the active profile."""

    DEFAULT_CSS = """
    QueryPad {
        layout: vertical;
        border: round $primary 40%;
        padding: 1 2;
        height: 1fr;
        background: $surface;
    }

    QueryPad .panel-title {
        text-style: bold;
    }

    QueryPad #query-input {
        height: 8;
        border: heavy $primary;
    }

    QueryPad:focus-within {
        border: round $primary;
    }

    QueryPad .query-actions {
        height: auto;
        margin-top: 1;
        align-horizontal: left;
    }

    QueryPad .query-actions > * {
        margin-right: 1;
    }

    QueryPad #query-results {
        height: 1fr;
        margin-top: 1;
        border-top: solid $surface-darken-2;
    }

    QueryPad .result-caption {
        color: $text-muted;
        margin-top: 1;
    }

    QueryPad .result-table {
        height: auto;
        max-height: 20;
    }
    """

    BINDINGS = Container.BINDINGS + [
        Binding("ctrl+enter", "run_query", "Run query", priority=True),
        Binding("ctrl+j", "run_query", "Run query", show=False, priority=True),
        Binding("escape", "cancel_query", "Cancel query", show=False),
    ]

    def __init__(self, service: ConnectionService, *, row_limit: int = 500) -> None:
        super().__init__(id="query-pad")
        self._service = service
        self._row_limit = row_limit
        self._active: StoredProfile | None = None
        self._cancel: threading.Event | None = None
        self._status_panel: Static | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._catalog: tuple[str, CatalogRequest, ResultSet] | None = None

    def compose(self) -> ComposeResult:
        yield Static("Query Pad", classes="panel-title")
        yield TextArea(id="query-input")
        yield Horizontal(
            Button("Run query", id="run-query", variant="primary"),
            Button("Cancel", id="cancel-query"),
            Static("", id="query-status"),
            classes="query-actions",
        )
        yield VerticalScroll(id="query-results")

    async def on_mount(self) -> None:
        self._status_panel = self.query_one("#query-status", Static)
        self._unsubscribe = self._service.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._cancel:
            self._cancel.set()
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def sql(self) -> str:
        return self.query_one("#query-input", TextArea).text

    def set_sql(self, sql: str) -> None:
        self.query_one("#query-input", TextArea).load_text(sql)

    def action_run_query(self) -> None:
        self.run_current_query()

    def action_cancel_query(self) -> None:
        if self._cancel and not self._cancel.is_set():
            self._cancel.set()
            self._set_status("Cancelling…", severity="warning")

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "run-query":
            self.run_current_query()
            event.stop()
        elif event.button.id == "cancel-query":
            self.action_cancel_query()
            event.stop()

    def run_current_query(self) -> None:
        sql = self.sql.strip()
        if not sql:
            self._set_status("Enter SQL to run.", severity="warning")
            return
        if self._active is None:
            self._set_status("Select a connection first.", severity="warning")
            return
        self._cancel = threading.Event()
        self._set_status(f"Executing on {self._active.name}…", severity="information")
        self._execute(self._active.id, sql, self._cancel)

    def browse(self, profile_id: str, request: CatalogRequest) -> None:
        """Show the catalog rows for ``request``; selecting a row drills down."""

        self._set_status(f"Loading {request.level.value}…", severity="information")
        self._load_catalog(profile_id, request)

    def open_catalog_row(self, index: int) -> None:
        """Open the catalog entry at ``index`` of the browsed result."""

        if self._catalog is None:
            return
        profile_id, request, result_set = self._catalog
        if not 0 <= index < result_set.row_count or not result_set.columns:
            return
        following = next_request(request, result_set.rows[index][0])
        if following is not None:
            self.browse(profile_id, following)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if self._catalog is not None:
            self.open_catalog_row(event.cursor_row)
            event.stop()

    @work(thread=True, exclusive=True, group="query")
    def _load_catalog(self, profile_id: str, request: CatalogRequest) -> None:
        try:
            result = self._service.browse(profile_id, request)
        except (QueryExecutionError, ConnectionBackendError, ProfileNotFoundError, ValueError) as exc:
            self.app.call_from_thread(self.show_error, str(exc))
            return
        self.app.call_from_thread(self.show_catalog, profile_id, request, result)

    @work(thread=True, exclusive=True, group="query")
    def _execute(self, profile_id: str, sql: str, cancel: threading.Event) -> None:
        try:
            result = self._service.run_query(profile_id, sql, cancel=cancel)
        except QueryCancelledError:
            self.app.call_from_thread(self._set_status, "Query cancelled.", severity="warning")
            return
        except (QueryExecutionError, ConnectionBackendError, ProfileNotFoundError) as exc:
            self.app.call_from_thread(self.show_error, str(exc))
            return
        self.app.call_from_thread(self.show_result, result)

    async def show_result(self, result: QueryResult) -> None:
        """Replace the results area with ``result``."""

        self._catalog = None
        container = self.query_one("#query-results", VerticalScroll)
        await container.remove_children()
        total = len(result.result_sets)
        for index, result_set in enumerate(result.result_sets, start=1):
            caption = Static(self._caption(index, total, result_set), classes="result-caption")
            table = DataTable(zebra_stripes=True, classes="result-table")
            await container.mount(caption, table)
            self._fill_table(table, result_set)
        self._set_status(f"{result.status} · {result.elapsed_ms} ms", severity="success")

    async def show_catalog(self, profile_id: str, request: CatalogRequest, result: QueryResult) -> None:
        await self.show_result(result)
        if result.result_sets:
            self._catalog = (profile_id, request, result.result_sets[0])

    async def show_error(self, message: str) -> None:
        self._catalog = None
        await self.query_one("#query-results", VerticalScroll).remove_children()
        self._set_status(f"Error: {message}", severity="error")

    def _handle_session_update(self, state: SessionState) -> None:
        self._active = state.active

    def _fill_table(self, table: DataTable, result_set: ResultSet) -> None:
        table.cursor_type = "row"
        if not result_set.columns:
            return
        table.add_columns(*(Text(column.name) for column in result_set.columns))
        for row in result_set.rows[: self._row_limit]:
            table.add_row(*(Text(value) for value in row))

    def _caption(self, index: int, total: int, result_set: ResultSet) -> str:
        shown = min(result_set.row_count, self._row_limit)
        text = f"Result {index} of {total} · {result_set.row_count} row(s)"
        if shown < result_set.row_count:
            text += f", showing first {shown}"
        types = ", ".join(f"{column.name}: {column.type_name}" for column in result_set.columns)
        if types:
            text += f"\n{types}"
        return text

    def _set_status(self, message: str, *, severity: str) -> None:
        if self._status_panel is None:
            return
        prefix = {
            "information": "ℹ",
            "warning": "⚠",
            "error": "✖",
            "success": "✔",
        }.get(severity, "•")
        self._status_panel.update(Text(f"{prefix} {message}"))


__all__ = ["QueryPad"]
