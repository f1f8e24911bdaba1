"""focusnudge - Main Textual application."""

import logging
import time

from dotenv import load_dotenv
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.logging import TextualHandler
from textual.widgets import DataTable, Footer, Static

from focusnudge.alerts import AlertRack, TextualPresenter
from focusnudge.api import FocusApi
from focusnudge.config import Settings
from focusnudge.dispatcher import NotificationDispatcher
from focusnudge.foreground import ForegroundQuery, detect_foreground_query
from focusnudge.models import FocusSession
from focusnudge.processes import ProcessSnapshotAdapter
from focusnudge.watcher import FocusWatcher, format_duration

logger = logging.getLogger(__name__)

_UNSET = object()


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_elapsed(ms: int | None) -> str:
    """Format a process age as [d-]hh:mm:ss, or "-" when unknown."""
    if ms is None:
        return "-"
    seconds = ms // 1000
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    clock = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{days}-{clock}" if days else clock


class FocusStatus(Static):
    """Header widget showing the current focus session and the last response."""

    DEFAULT_CSS = """
    FocusStatus {
        height: auto;
        min-height: 3;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize FocusStatus."""
        super().__init__(*args, **kwargs)
        self._tracking_enabled: bool = False
        self._session: FocusSession | None = None
        self._elapsed_ms: float = 0.0
        self._last_response: dict | None = None
        self._responses: int = 0
        self._error: str | None = None

    def on_mount(self) -> None:
        self.update(self._render_text())

    def set_tracking(self, enabled: bool) -> None:
        self._tracking_enabled = enabled
        self._refresh_display()

    def update_session(self, session: FocusSession | None, now_ms: float) -> None:
        """Show how long the focused application has held focus."""
        self._session = session
        self._elapsed_ms = now_ms - session.since if session else 0.0
        self._refresh_display()

    def record_response(self, event: dict) -> None:
        self._last_response = event
        self._responses += 1
        self._refresh_display()

    def set_error(self, error: str | None) -> None:
        self._error = error
        self._refresh_display()

    def _refresh_display(self) -> None:
        if self.is_mounted:
            self.update(self._render_text())

    def _render_text(self) -> str:
        if not self._tracking_enabled:
            focus = "Focus tracking unavailable on this system"
        elif self._session is None:
            focus = "Waiting for the focused application..."
        else:
            focus = f"Focused: {self._session.app_name} for {format_duration(self._elapsed_ms)}"

        if self._last_response is None:
            response = "No notification responses yet"
        else:
            response = f"Last response: {self._last_response['result']} ({self._responses} total)"

        lines = [focus, response]
        if self._error:
            lines.append(f"Process list unavailable: {self._error}")
        return "\n".join(lines)


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("NAME", key="name", width=20)
        table.add_column("STATE", key="status", width=8)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("MEM", key="mem", width=8)
        table.add_column("ELAPSED", key="elapsed", width=12)
        table.add_column("Command", key="command")

    def update_processes(self, processes: list[dict]) -> None:
        """
        Update the process table with a new snapshot.

        Takes records in the boundary shape (see ProcessRecord.to_payload).
        Rows are matched by pid so the cursor and scroll position survive a
        refresh; the table is then re-sorted busiest first.
        """
        table = self.query_one("#process-table", DataTable)
        new_pids = {proc["pid"] for proc in processes}

        for pid in self._current_pids - new_pids:
            table.remove_row(str(pid))

        for proc in processes:
            row_key = str(proc["pid"])
            if proc["pid"] in self._current_pids:
                self._update_row(table, row_key, proc)
            else:
                table.add_row(*self._cells(proc), key=row_key)

        self._current_pids = new_pids
        table.sort("cpu", "pid", key=lambda cells: (-float(cells[0]), int(cells[1])))

    def _cells(self, proc: dict) -> tuple[str, ...]:
        return (
            str(proc["pid"]),
            proc["name"][:20],
            proc["status"],
            f"{proc['cpuPercent']:5.1f}",
            format_bytes(proc["memoryBytes"]),
            format_elapsed(proc["elapsedMs"]),
            proc["command"][:60],
        )

    def _update_row(self, table: DataTable, row_key: str, proc: dict) -> None:
        """Update an existing row in place with update_cell."""
        columns = ("pid", "name", "status", "cpu", "mem", "elapsed", "command")
        for column, value in zip(columns, self._cells(proc)):
            table.update_cell(row_key, column, value)


class FocusApp(App):
    """Main focusnudge application."""

    TITLE = "focusnudge"
    SUB_TITLE = "Focus tracker"

    CSS = """
    Screen {
        layout: vertical;
        layers: base alerts;
    }

    #focus-status {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("n", "notify_alert", "Alert"),
        ("d", "notify_dialog", "Dialog"),
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        foreground_query: ForegroundQuery | None | object = _UNSET,
        adapter: ProcessSnapshotAdapter | None = None,
    ) -> None:
        """
        Initialize the FocusApp.

        Args:
            settings: Runtime settings. Defaults to Settings().
            foreground_query: Active-window facility. Detected when omitted;
                None disables focus tracking.
            adapter: Process snapshot adapter.
        """
        super().__init__()
        self._settings = settings or Settings()
        if foreground_query is _UNSET:
            foreground_query = detect_foreground_query()
        self._foreground_query = foreground_query
        self._dispatcher = NotificationDispatcher(
            TextualPresenter(self, alert_timeout=self._settings.alert_timeout)
        )
        self._api = FocusApi(adapter or ProcessSnapshotAdapter(), self._dispatcher)
        self._watcher: FocusWatcher | None = None
        self._unsubscribe = None
        self._status: FocusStatus | None = None
        self._process_table: ProcessTable | None = None

    @property
    def api(self) -> FocusApi:
        return self._api

    @property
    def watcher(self) -> FocusWatcher | None:
        return self._watcher

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        self._status = FocusStatus(id="focus-status")
        self._process_table = ProcessTable()
        yield self._status
        yield self._process_table
        yield AlertRack(id="alert-rack")
        yield Footer()

    def on_mount(self) -> None:
        """Start focus tracking and the process refresh timer."""
        self._unsubscribe = self._api.on_notification_response(self._on_response)

        if self._foreground_query is None:
            logger.info("No active-window facility; focus tracking disabled")
        else:
            self._watcher = FocusWatcher(
                self._foreground_query,
                self._dispatcher,
                threshold_ms=self._settings.threshold_ms,
                cooldown_ms=self._settings.cooldown_ms,
                poll_interval=self._settings.poll_interval,
                cooldown_retention=self._settings.cooldown_retention,
            )
            self._watcher.start()
        self._status.set_tracking(self._watcher is not None)

        self.set_interval(1.0, self._update_focus_status)
        self.set_interval(max(0.5, self._settings.process_refresh), self.action_refresh)
        self.action_refresh()

    def _on_response(self, event: dict) -> None:
        logger.info("Notification response: %s", event)
        self._status.record_response(event)

    def _update_focus_status(self) -> None:
        if self._watcher is not None:
            self._status.update_session(self._watcher.session, time.time() * 1000)

    def action_refresh(self) -> None:
        """Refresh the process table in the background."""
        self.run_worker(
            self._refresh_processes(), group="processes", exclusive=True, exit_on_error=False
        )

    async def _refresh_processes(self) -> None:
        payload = await self._api.get_processes()
        if not payload["ok"]:
            self._status.set_error(payload["error"])
            return
        self._status.set_error(None)
        self._process_table.update_processes(payload["list"])

    def action_notify_alert(self) -> None:
        """Show a test alert."""
        self.run_worker(self._show({"title": "focusnudge", "body": "This is an alert."}))

    def action_notify_dialog(self) -> None:
        """Show a test dialog."""
        self.run_worker(
            self._show({"title": "focusnudge", "body": "This is a dialog.", "useDialog": True})
        )

    async def _show(self, options: dict) -> None:
        response = await self._api.show_notification(options)
        if "error" in response:
            self.notify(response["error"], severity="error")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        if self._watcher is not None:
            self._watcher.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
        self.exit()


def main() -> None:
    """Entry point for focusnudge."""
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level.upper(), handlers=[TextualHandler()])
    app = FocusApp(settings)
    app.run()


if __name__ == "__main__":
    main()
