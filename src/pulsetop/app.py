"""pulsetop - Main Textual application."""

import argparse
import os
import time
from pathlib import Path

import aiohttp
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Input, Label, Sparkline, Static

from pulsetop.actions import ProcessActions
from pulsetop.backend import BackendClient, DeviceInfo, ListeningPort
from pulsetop.client import TelemetryClient
from pulsetop.config import Settings, load_settings
from pulsetop.errors import BackendError, ConfigurationError
from pulsetop.log import get_logger, setup_logging
from pulsetop.models import (
    ConnectionState,
    FilterCriteria,
    MemorySample,
    ProcessRecord,
    Severity,
    SortDirection,
    SortKey,
    Topic,
)
from pulsetop.notifications import (
    Notification,
    NotificationCenter,
    NotificationKind,
    notify_error,
    notify_warning,
)
from pulsetop.pipeline import cpu_percent, memory_mb, severity
from pulsetop.view import ProcessView

logger = get_logger(__name__)

SEVERITY_STYLES = {
    Severity.NORMAL: "",
    Severity.ELEVATED: "yellow",
    Severity.CRITICAL: "bold red",
}

STATUS_STYLES = {
    ConnectionState.CONNECTED: "green",
    ConnectionState.CONNECTING: "yellow",
    ConnectionState.RECONNECTING: "yellow",
    ConnectionState.DISCONNECTED: "dim",
    ConnectionState.ERROR: "red",
}

NOTIFY_SEVERITY = {
    NotificationKind.SUCCESS: "information",
    NotificationKind.INFO: "information",
    NotificationKind.WARNING: "warning",
    NotificationKind.ERROR: "error",
}

# Rows from the end of the materialized slice that count as "near the end"
LOAD_MORE_THRESHOLD = 5

MAIN_SCREEN_ACTIONS = frozenset({
    "sort",
    "reverse_sort",
    "search",
    "toggle_filters",
    "toggle_unknown",
    "load_more",
    "kill",
    "details",
    "ports",
})


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def render_bar(percent: float, color: str, width: int = 20) -> str:
    """Markup for a horizontal load bar."""
    filled = max(0, min(int(percent / (100 / width)), width))
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


def parse_bound(text: str) -> float | None:
    """Parse a numeric filter input; blank or garbage means no bound."""
    text = text.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


class HeaderStats(Static):
    """Header widget showing CPU, memory and channel statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 6;
        padding: 0 1;
        background: $surface;
    }

    HeaderStats Sparkline {
        height: 2;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._cpu_values: list[float] = []
        self._memory_values: list[float] = []
        self._memory_sample: MemorySample | None = None
        self._status: dict[Topic, ConnectionState] = {
            topic: ConnectionState.DISCONNECTED for topic in Topic
        }
        self._monitoring_enabled: bool | None = None
        self._device: DeviceInfo | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Vertical(
                Static(self._get_cpu_info(), id="cpu-info"),
                Sparkline(self._cpu_values, summary_function=max, id="cpu-spark"),
            ),
            Vertical(
                Static(self._get_mem_info(), id="mem-info"),
                Sparkline(self._memory_values, summary_function=max, id="mem-spark"),
            ),
        )
        yield Static(self._get_status_info(), id="status-info")

    def update_series(
        self, cpu_values: list[float], memory_values: list[float], latest: MemorySample | None
    ) -> None:
        """Update the cpu and memory series."""
        self._cpu_values = cpu_values
        self._memory_values = memory_values
        self._memory_sample = latest
        self._refresh_display()

    def update_device(self, device: DeviceInfo) -> None:
        """Show the backend host's processor."""
        self._device = device
        self._refresh_display()

    def update_status(self, status: dict[Topic, ConnectionState], monitoring_enabled: bool | None) -> None:
        """Update channel status and the monitoring flag."""
        self._status = dict(status)
        self._monitoring_enabled = monitoring_enabled
        self._refresh_display()

    def _refresh_display(self) -> None:
        """Refresh the display with current data."""
        try:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())
            self.query_one("#status-info", Static).update(self._get_status_info())
            self.query_one("#cpu-spark", Sparkline).data = self._cpu_values
            self.query_one("#mem-spark", Sparkline).data = self._memory_values
        except NoMatches:
            pass  # Widget not mounted yet

    def _get_cpu_info(self) -> str:
        """Get CPU info display."""
        device = ""
        if self._device is not None:
            device = f"\n[dim]{self._device.processor_name} ({self._device.cores} cores)[/dim]"
        if not self._cpu_values:
            return "CPU  waiting for data..." + device
        usage = self._cpu_values[-1]
        # Use escaped brackets for the bar container
        return f"CPU \\[{render_bar(usage, 'green')}] {usage:5.1f}%" + device

    def _get_mem_info(self) -> str:
        """Get memory info display."""
        sample = self._memory_sample
        if sample is None:
            return "Mem  waiting for data..."
        used_gb = sample.used_mb / 1024
        total_gb = sample.total_mb / 1024
        return (
            f"Mem \\[{render_bar(sample.value, 'cyan')}] {sample.value:5.1f}% "
            f"{used_gb:.1f}G/{total_gb:.1f}G"
        )

    def _get_status_info(self) -> str:
        """Get per-channel connection status display."""
        if self._monitoring_enabled is False:
            monitoring = "[red]monitoring off[/red]"
        elif self._monitoring_enabled is True:
            monitoring = "[green]monitoring on[/green]"
        else:
            monitoring = "[dim]monitoring ?[/dim]"
        parts = []
        for topic, state in self._status.items():
            # A live socket with monitoring off carries no data
            if state is ConnectionState.CONNECTED and self._monitoring_enabled is False:
                state = ConnectionState.DISCONNECTED
            style = STATUS_STYLES[state]
            parts.append(f"{topic.value}: [{style}]{state.value}[/{style}]")
        return f"{monitoring}  " + "  ".join(parts)


class FilterBar(Horizontal):
    """Search and range inputs for the process view."""

    DEFAULT_CSS = """
    FilterBar {
        height: auto;
        display: none;
    }

    FilterBar.visible {
        display: block;
    }

    FilterBar Input {
        width: 1fr;
    }
    """

    FIELDS = [
        ("filter-pid", "PID"),
        ("filter-name", "Name"),
        ("filter-port", "Port"),
        ("filter-user", "User"),
        ("filter-cpu-min", "CPU min"),
        ("filter-cpu-max", "CPU max"),
        ("filter-mem-min", "Mem min MB"),
        ("filter-mem-max", "Mem max MB"),
    ]

    def compose(self) -> ComposeResult:
        """Compose one input per filter field."""
        for field_id, placeholder in self.FIELDS:
            yield Input(placeholder=placeholder, id=field_id)

    def criteria(self) -> FilterCriteria:
        """Build filter criteria from the current input values."""

        def value(field_id: str) -> str:
            return self.query_one(f"#{field_id}", Input).value

        return FilterCriteria(
            pid_query=value("filter-pid"),
            name_query=value("filter-name"),
            port_query=value("filter-port"),
            username_query=value("filter-user"),
            cpu_min=parse_bound(value("filter-cpu-min")),
            cpu_max=parse_bound(value("filter-cpu-max")),
            memory_min=parse_bound(value("filter-mem-min")),
            memory_max=parse_bound(value("filter-mem-max")),
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, view: ProcessView, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._view = view
        self._pids: list[int] = []

    @property
    def view(self) -> ProcessView:
        return self._view

    @property
    def visible_pids(self) -> list[int]:
        """PIDs of the rendered rows, in display order."""
        return list(self._pids)

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._view.sort.key)
        next_key = keys[(current_index + 1) % len(keys)]
        self._view.toggle_sort(next_key)
        self.refresh_rows()
        return next_key

    def reverse_sort(self) -> SortDirection:
        """Flip the direction of the explicit sort, if any."""
        if self._view.sort.key is not SortKey.NONE:
            self._view.toggle_sort(self._view.sort.key)
            self.refresh_rows()
        return self._view.sort.direction

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("S", key="status", width=3)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("MEM MB", key="mem", width=9)
        table.add_column("RES", key="rss", width=8)
        table.add_column("THR", key="threads", width=5)
        table.add_column("PORTS", key="ports", width=12)
        table.add_column("Name", key="name")
        self.refresh_rows()

    def refresh_rows(self) -> None:
        """Re-render the materialized slice of the view."""
        try:
            table = self.query_one("#process-table", DataTable)
        except NoMatches:
            return  # Not mounted yet
        cursor_row = table.cursor_row
        table.clear()
        rows = self._view.visible_rows
        self._pids = [proc.pid for proc in rows]
        for proc in rows:
            table.add_row(*self._cells(proc), key=str(proc.pid))
        if rows:
            table.move_cursor(row=min(cursor_row, len(rows) - 1))

    def selected_process(self) -> ProcessRecord | None:
        """Process under the cursor, looked up in the current snapshot."""
        table = self.query_one("#process-table", DataTable)
        if not self._pids or not 0 <= table.cursor_row < len(self._pids):
            return None
        return self._view.find(self._pids[table.cursor_row])

    def load_more(self) -> bool:
        """Materialize one more page if rows remain."""
        if self._view.load_more():
            self.refresh_rows()
            return True
        return False

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        """Grow the slice when the cursor gets close to its end."""
        if event.cursor_row >= len(self._pids) - LOAD_MORE_THRESHOLD:
            self.load_more()

    def _cells(self, proc: ProcessRecord) -> list[Text]:
        style = SEVERITY_STYLES[severity(proc)]
        ports = ", ".join(str(port) for port in sorted(proc.ports)) or "-"
        values = [
            str(proc.pid),
            proc.username[:10],
            proc.status[:1] or "?",
            f"{cpu_percent(proc):5.1f}",
            f"{memory_mb(proc):7.1f}",
            format_bytes(proc.memory_rss),
            str(proc.num_threads),
            ports[:12],
            (proc.name or "-")[:50],
        ]
        return [Text(value, style=style) for value in values]


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no confirmation. The answer is the screen's dismiss result."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: thick $error;
        background: $surface;
    }

    #confirm-buttons {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, message: str, confirm_label: str = "Confirm") -> None:
        super().__init__()
        self._title = title
        self._message = message
        self._confirm_label = confirm_label

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"[b]{self._title}[/b]"),
            Label(self._message),
            Horizontal(
                Button(self._confirm_label, variant="error", id="confirm"),
                Button("Cancel", id="cancel"),
                id="confirm-buttons",
            ),
            id="confirm-dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm")

    def action_cancel(self) -> None:
        self.dismiss(False)


def format_started(create_time_ms: int) -> str:
    """Local start time of a process, or "-" when unknown."""
    if create_time_ms <= 0:
        return "-"
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(create_time_ms / 1000))


class ProcessDetailsScreen(ModalScreen[bool]):
    """
    Full record of one process.

    Dismisses with True when the user asks to terminate the process, so the
    caller can run its own confirmation.
    """

    DEFAULT_CSS = """
    ProcessDetailsScreen {
        align: center middle;
    }

    #details-dialog {
        width: 80;
        height: auto;
        padding: 1 2;
        border: thick $primary;
        background: $surface;
    }

    #details-buttons {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [("escape", "close", "Close")]

    def __init__(self, process: ProcessRecord) -> None:
        super().__init__()
        self._process = process

    @property
    def process(self) -> ProcessRecord:
        return self._process

    def details(self) -> list[tuple[str, str]]:
        """Label/value pairs shown in the dialog."""
        proc = self._process
        ports = ", ".join(str(port) for port in sorted(proc.ports)) or "-"
        return [
            ("PID", str(proc.pid)),
            ("Name", proc.name or "Unknown process"),
            ("User", proc.username or "-"),
            ("Status", proc.status or "-"),
            ("Parent PID", str(proc.ppid) if proc.ppid else "-"),
            ("Executable", proc.exe or "-"),
            ("Command line", proc.cmdline or "-"),
            ("Started", format_started(proc.create_time)),
            ("Priority", str(proc.priority)),
            ("Threads", str(proc.num_threads)),
            ("CPU", f"{cpu_percent(proc):.1f}%"),
            ("Memory", f"{format_bytes(proc.memory_rss).strip()} ({proc.memory_percent:.1f}%)"),
            ("Ports", ports),
            ("I/O read", format_bytes(proc.io_read_bytes).strip()),
            ("I/O write", format_bytes(proc.io_write_bytes).strip()),
        ]

    def compose(self) -> ComposeResult:
        body = Text()
        for label, value in self.details():
            body.append(f"{label:>13}  ", style="bold")
            body.append(f"{value}\n")
        yield Vertical(
            Label(f"[b]Process {self._process.pid}[/b]"),
            Static(body, id="details-body"),
            Horizontal(
                Button("Terminate", variant="error", id="terminate"),
                Button("Close", id="close"),
                id="details-buttons",
            ),
            id="details-dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "terminate")

    def action_close(self) -> None:
        self.dismiss(False)


class PortsScreen(ModalScreen[None]):
    """Listening ports of the backend host, with a form to start a process."""

    DEFAULT_CSS = """
    PortsScreen {
        align: center middle;
    }

    #ports-dialog {
        width: 90%;
        height: 80%;
        padding: 1 2;
        border: thick $primary;
        background: $surface;
    }

    #ports-table {
        height: 1fr;
    }

    #launch-form {
        height: auto;
        margin-top: 1;
    }

    #launch-form Input {
        width: 1fr;
    }
    """

    BINDINGS = [("escape", "close", "Close"), ("r", "reload", "Reload")]

    def __init__(
        self,
        backend: BackendClient,
        actions: ProcessActions,
        notifications: NotificationCenter,
    ) -> None:
        super().__init__()
        self._backend = backend
        self._actions = actions
        self._notifications = notifications
        self._ports: list[ListeningPort] = []

    @property
    def ports(self) -> list[ListeningPort]:
        return list(self._ports)

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label("[b]Listening ports[/b]"),
            DataTable(id="ports-table"),
            Horizontal(
                Input(placeholder="Command", id="launch-command"),
                Input(placeholder="Arguments", id="launch-args"),
                Input(placeholder="Working directory", id="launch-cwd"),
                Button("Start", variant="primary", id="launch"),
                Button("Close", id="close"),
                id="launch-form",
            ),
            id="ports-dialog",
        )

    def on_mount(self) -> None:
        table = self.query_one("#ports-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PORT", key="port", width=7)
        table.add_column("PROTO", key="protocol", width=6)
        table.add_column("PID", key="pid", width=8)
        table.add_column("PROCESS", key="process", width=20)
        table.add_column("STATUS", key="status", width=12)
        table.add_column("LOCAL", key="local")
        table.add_column("REMOTE", key="remote")
        self.action_reload()

    def action_reload(self) -> None:
        self.run_worker(self._load_ports(), exclusive=True, group="ports")

    def action_close(self) -> None:
        self.dismiss(None)

    async def _load_ports(self) -> None:
        try:
            ports = await self._backend.list_listening_ports()
        except (BackendError, aiohttp.ClientError, TimeoutError) as e:
            logger.warning("listening_ports_unavailable", error=str(e))
            self._notifications.add(notify_error(f"Could not list ports: {e}"))
            return
        self._ports = sorted(ports, key=lambda p: (p.port, p.protocol))
        table = self.query_one("#ports-table", DataTable)
        table.clear()
        for port in self._ports:
            table.add_row(
                str(port.port),
                port.protocol,
                str(port.pid),
                port.process[:20],
                port.status,
                port.local_addr,
                port.remote_addr,
            )

    async def _launch(self, command: str, args: str, cwd: str) -> None:
        notification = await self._actions.launch(command, args, cwd)
        if notification.kind is NotificationKind.SUCCESS:
            self.query_one("#launch-command", Input).value = ""
            await self._load_ports()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "close":
            self.dismiss(None)
            return
        command = self.query_one("#launch-command", Input).value.strip()
        if not command:
            self._notifications.add(notify_warning("Enter a command to start"))
            return
        args = self.query_one("#launch-args", Input).value.strip()
        cwd = self.query_one("#launch-cwd", Input).value.strip()
        self.run_worker(self._launch(command, args, cwd), group="launch")


class PulsetopApp(App):
    """Main pulsetop application."""

    TITLE = "pulsetop"
    SUB_TITLE = "Streaming System Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("f7", "reverse_sort", "Reverse"),
        ("slash", "search", "Search"),
        ("f", "toggle_filters", "Filters"),
        ("u", "toggle_unknown", "Unknown"),
        ("m", "toggle_monitoring", "Monitoring"),
        ("k", "kill", "Kill"),
        ("d", "details", "Details"),
        ("p", "ports", "Ports"),
        ("n", "load_more", "More"),
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        client: TelemetryClient | None = None,
        backend: BackendClient | None = None,
    ) -> None:
        """Initialize the PulsetopApp."""
        super().__init__()
        self._settings = settings or Settings()
        self._client = client or TelemetryClient(self._settings)
        self._backend = backend or BackendClient(
            self._settings.backend_url, timeout=self._settings.request_timeout
        )
        self._notification_center = NotificationCenter()
        self._actions = ProcessActions(self._backend, self._notification_center)

    @property
    def client(self) -> TelemetryClient:
        return self._client

    @property
    def notifications(self) -> NotificationCenter:
        return self._notification_center

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield FilterBar(id="filter-bar")
        yield ProcessTable(self._client.processes)
        yield Footer()

    def on_mount(self) -> None:
        """Start the telemetry channels when the app is mounted."""
        self._notification_center.subscribe(self._show_notification)
        self._client.add_listener(self._on_telemetry)
        self._client.start()
        self.run_worker(self._sync_monitoring_status(), exclusive=True, group="monitoring")
        self.run_worker(self._load_system_info(), group="system")

    async def on_unmount(self) -> None:
        """Stop channels and release the HTTP session."""
        self._client.stop()
        await self._backend.close()

    def _show_notification(self, notification: Notification) -> None:
        self.notify(
            notification.message,
            title=notification.title,
            severity=NOTIFY_SEVERITY[notification.kind],
            timeout=notification.duration_ms / 1000,
        )

    def _on_telemetry(self, topic: Topic) -> None:
        """Refresh the widgets that depend on ``topic``."""
        try:
            header = self.query_one("#header-stats", HeaderStats)
            table = self.query_one(ProcessTable)
        except NoMatches:
            return  # Screen is being torn down
        header.update_status(self._client.status, self._client.monitoring_enabled)
        if topic is Topic.PROCESSES:
            table.refresh_rows()
        else:
            memory = self._client.memory
            header.update_series(self._client.cpu.values, memory.values, memory.latest_sample)

    async def _sync_monitoring_status(self) -> None:
        try:
            enabled = await self._backend.get_monitoring_status()
        except (BackendError, aiohttp.ClientError, TimeoutError) as e:
            logger.warning("monitoring_status_unavailable", error=str(e))
            self._notification_center.add(notify_warning(f"Monitoring status unavailable: {e}"))
            return
        self._client.set_monitoring_enabled(enabled)

    async def _load_system_info(self) -> None:
        """Fetch host and device info; either may fail on its own."""
        try:
            host = await self._backend.get_host_info()
        except (BackendError, aiohttp.ClientError, TimeoutError) as e:
            logger.info("host_info_unavailable", error=str(e))
        else:
            self.sub_title = f"{self.SUB_TITLE} - {host.username}@{host.hostname}"
        try:
            device = await self._backend.get_device_info()
        except (BackendError, aiohttp.ClientError, ValueError, TimeoutError) as e:
            logger.info("device_info_unavailable", error=str(e))
            return
        # The main screen stays at the bottom of the stack under any modal
        try:
            header = self.screen_stack[0].query_one("#header-stats", HeaderStats)
        except (IndexError, NoMatches):
            return
        header.update_device(device)

    async def _set_monitoring(self, enabled: bool) -> None:
        try:
            enabled = await self._backend.set_monitoring_status(enabled)
        except (BackendError, aiohttp.ClientError, TimeoutError) as e:
            logger.warning("monitoring_toggle_failed", error=str(e))
            self._notification_center.add(notify_error(f"Could not change monitoring: {e}"))
            return
        self._client.set_monitoring_enabled(enabled)

    def on_input_changed(self, event: Input.Changed) -> None:
        """Apply filters as the user types."""
        if not (event.input.id or "").startswith("filter-"):
            return  # Inputs on modal screens bubble up here too
        criteria = self.query_one(FilterBar).criteria()
        self._client.processes.set_filters(criteria)
        self.query_one(ProcessTable).refresh_rows()

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_reverse_sort(self) -> None:
        """Flip the explicit sort direction."""
        direction = self.query_one(ProcessTable).reverse_sort()
        self.notify(f"Order: {direction.value.upper()}")

    def action_search(self) -> None:
        """Show the filter bar and focus the name search."""
        bar = self.query_one(FilterBar)
        bar.add_class("visible")
        # Hidden inputs cannot take focus until the bar is displayed
        self.call_after_refresh(bar.query_one("#filter-name", Input).focus)

    def action_toggle_filters(self) -> None:
        self.query_one(FilterBar).toggle_class("visible")

    def action_toggle_unknown(self) -> None:
        """Show or hide processes without identifying metadata."""
        view = self._client.processes
        view.set_show_unknown(not view.show_unknown)
        self.query_one(ProcessTable).refresh_rows()
        state = "shown" if view.show_unknown else "hidden"
        self.notify(f"Unknown processes {state} ({view.unknown_count})")

    def action_toggle_monitoring(self) -> None:
        """Ask the backend to flip monitoring on or off."""
        enabled = self._client.monitoring_enabled is not True
        self.run_worker(self._set_monitoring(enabled), exclusive=True, group="monitoring")

    def action_load_more(self) -> None:
        self.query_one(ProcessTable).load_more()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Table actions only run on the main screen."""
        if action in MAIN_SCREEN_ACTIONS and isinstance(self.screen, ModalScreen):
            return False
        return True

    def action_kill(self) -> None:
        """Confirm, then request termination of the selected process."""
        process = self.query_one(ProcessTable).selected_process()
        if process is not None:
            self._confirm_kill(process)

    def action_details(self) -> None:
        """Show every field of the selected process."""
        process = self.query_one(ProcessTable).selected_process()
        if process is None:
            return

        def on_close(terminate: bool | None) -> None:
            if terminate:
                self._confirm_kill(process)

        self.push_screen(ProcessDetailsScreen(process), on_close)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Enter on a process row opens its details."""
        if event.data_table.id == "process-table":
            self.action_details()

    def action_ports(self) -> None:
        """List listening ports and offer to start a process."""
        self.push_screen(PortsScreen(self._backend, self._actions, self._notification_center))

    def _confirm_kill(self, process: ProcessRecord) -> None:
        name = process.name or "Unknown process"
        pid = process.pid

        def on_answer(confirmed: bool | None) -> None:
            if confirmed:
                self.run_worker(self._actions.terminate(pid), group="actions")

        self.push_screen(
            ConfirmScreen(
                "Terminate process",
                f"Terminate the process?\n\nPID: {pid}\nName: {name}\n\nThis cannot be undone.",
                confirm_label="Terminate",
            ),
            on_answer,
        )

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._client.stop()
        self.exit()


def main(argv: list[str] | None = None) -> None:
    """Entry point for pulsetop application."""
    parser = argparse.ArgumentParser(prog="pulsetop", description="Streaming system monitor")
    parser.add_argument("--config", type=Path, help="TOML settings file")
    parser.add_argument("--backend-url", help="Backend HTTP base URL")
    parser.add_argument("--ws-url", help="Backend WebSocket base URL")
    parser.add_argument("--log-file", type=Path, help="Write logs to this file")
    parser.add_argument("--log-level", help="Minimum log level")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(
            args.config,
            backend_url=args.backend_url,
            ws_url=args.ws_url,
            log_file=args.log_file,
            log_level=args.log_level,
        )
    except ConfigurationError as e:
        parser.error(str(e))

    # The TUI owns the terminal, so logs never go to stderr
    log_file = settings.log_file or Path(os.devnull)
    setup_logging(settings.log_level, settings.log_format, log_file)

    app = PulsetopApp(settings)
    app.run()


if __name__ == "__main__":
    main()
