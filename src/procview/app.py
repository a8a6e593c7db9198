"""procview - Main Textual application."""

from queue import Empty, Queue

import structlog
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Input, Static
from textual.widgets.data_table import CellDoesNotExist

from procview.config import Config
from procview.filters import PatternCache
from procview.formatting import (
    format_bytes,
    format_memory_size,
    format_percentage,
    format_uptime,
    usage_class,
)
from procview.models import ProcessRecord
from procview.monitor import SystemMonitor, SystemSnapshot
from procview.sorting import SortDirection, SortField
from procview.view import ViewState

log = structlog.get_logger()

USAGE_COLORS = {
    "low": "green",
    "medium": "yellow",
    "high": "dark_orange",
    "critical": "red",
}

PIN_MARKER = "📌"


def usage_bar(percentage: float, color: str | None = None, width: int = 20) -> str:
    """Render a Rich-markup bar for a 0-100 percentage."""
    filled = min(int(percentage / (100 / width)), width)
    color = color or USAGE_COLORS[usage_class(percentage)]
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]"


class HeaderStats(Static):
    """Header widget showing CPU and memory statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._cpu_percents: list[float] = []
        self._memory_total: int = 0
        self._memory_used: int = 0
        self._memory_percent: float = 0.0
        self._swap_total: int = 0
        self._swap_used: int = 0
        self._swap_percent: float = 0.0
        self._load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._uptime_seconds: float = 0.0

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_stats(self, snapshot: SystemSnapshot) -> None:
        """Update the statistics from a system snapshot."""
        self._cpu_percents = snapshot.cpu_percent_per_core
        self._memory_total = snapshot.memory_total
        self._memory_used = snapshot.memory_used
        self._memory_percent = snapshot.memory_percent
        self._swap_total = snapshot.swap_total
        self._swap_used = snapshot.swap_used
        self._swap_percent = snapshot.swap_percent
        self._load_avg = snapshot.load_avg
        self._uptime_seconds = snapshot.uptime_seconds
        if self.is_mounted:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())

    def _get_cpu_info(self) -> str:
        if not self._cpu_percents:
            return "Loading CPU info..."
        lines = []
        for i, usage in enumerate(self._cpu_percents):
            # Escaped bracket opens the bar container
            lines.append(f"CPU{i:<2} \\[{usage_bar(usage)}] {format_percentage(usage):>6}")
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        if self._memory_total == 0:
            return "Loading memory info..."

        mem_bar = usage_bar(self._memory_percent)
        swap_percent = self._swap_percent if self._swap_total > 0 else 0.0
        swap_bar = usage_bar(swap_percent, color="yellow")
        load_avg = self._load_avg

        return (
            f"Mem\\[{mem_bar}] {format_memory_size(self._memory_used)}"
            f"/{format_memory_size(self._memory_total)}\n"
            f"Swp\\[{swap_bar}] {format_memory_size(self._swap_used)}"
            f"/{format_memory_size(self._swap_total)}\n"
            f"Load average: {load_avg[0]:.2f} {load_avg[1]:.2f} {load_avg[2]:.2f}\n"
            f"Uptime: {format_uptime(self._uptime_seconds)}"
        )


class ProcessTable(Container):
    """Container for the process data table.

    Renders an already filtered and sorted list; it never reorders rows
    itself.
    """

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    COLUMNS = [
        ("", "pin", 2),
        ("PID", SortField.PID.value, 8),
        ("Name", SortField.NAME.value, 20),
        ("Status", SortField.STATUS.value, 9),
        ("CPU%", SortField.CPU_USAGE.value, 7),
        ("Memory", SortField.MEMORY_USAGE.value, 11),
        ("Disk R/W", SortField.DISK_USAGE.value, 23),
        ("Runtime", SortField.RUN_TIME.value, 12),
        ("Command", SortField.COMMAND.value, None),
    ]

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._rows: dict[int, ProcessRecord] = {}

    @property
    def shown_pids(self) -> list[int]:
        """PIDs in display order."""
        return list(self._rows)

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        for label, key, width in self.COLUMNS:
            table.add_column(label, key=key, width=width)

    @property
    def selected_process(self) -> ProcessRecord | None:
        """The process under the cursor, if any."""
        table = self.query_one("#process-table", DataTable)
        if table.row_count == 0:
            return None
        try:
            row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        except CellDoesNotExist:
            return None
        return self._rows.get(int(row_key.value))

    def update_processes(self, processes: list[ProcessRecord], pinned: frozenset[str]) -> None:
        """
        Replace the table contents with processes, in order.

        The cursor stays on the same PID when it survives the update.
        """
        table = self.query_one("#process-table", DataTable)
        selected = self.selected_process

        table.clear()
        self._rows = {}
        for proc in processes:
            self._rows[proc.pid] = proc
            table.add_row(*self._cells(proc, proc.command in pinned), key=str(proc.pid))

        if selected is not None and selected.pid in self._rows:
            table.move_cursor(row=table.get_row_index(str(selected.pid)))

    @staticmethod
    def _cells(proc: ProcessRecord, pinned: bool) -> tuple[str, ...]:
        read, write = proc.disk_usage
        return (
            PIN_MARKER if pinned else "",
            str(proc.pid),
            proc.name[:20],
            proc.status.value,
            f"{proc.cpu_usage:5.1f}",
            format_bytes(proc.memory_usage),
            f"{format_bytes(read)} / {format_bytes(write)}",
            format_uptime(proc.run_time),
            proc.command[:80],
        )


class ProcviewApp(App):
    """Main procview application."""

    TITLE = "procview"
    SUB_TITLE = "Process Viewer"

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

    #search {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("slash", "focus_search", "Search"),
        ("escape", "clear_search", "Clear"),
        ("f6", "cycle_sort", "Sort"),
        ("r", "reverse_sort", "Reverse"),
        ("p", "toggle_pin", "Pin"),
        ("1", "toggle_status('Running')", "Running"),
        ("2", "toggle_status('Sleeping')", "Sleeping"),
        ("3", "toggle_status('Stopped')", "Stopped"),
        ("4", "toggle_status('Zombie')", "Zombie"),
    ]

    def __init__(
        self,
        config: Config | None = None,
        state: ViewState | None = None,
        start_monitor: bool = True,
    ) -> None:
        """
        Initialize the ProcviewApp.

        Args:
            config: Loaded configuration. Defaults to built-in defaults.
            state: Initial search/filter/sort/pin state. Defaults to config's.
            start_monitor: Start polling psutil on mount.
        """
        super().__init__()
        self._config = config or Config()
        self._state = state or ViewState(
            filters=self._config.filter_config(),
            sort=self._config.sort_config(),
        )
        self._start_monitor = start_monitor
        self._pattern_cache = PatternCache(self._config.view.pattern_cache_size)
        self._processes: list[ProcessRecord] = []
        self._search_timer: Timer | None = None
        self._update_queue: Queue[SystemSnapshot] = Queue()
        self._monitor = SystemMonitor(self._update_queue, poll_rate=self._config.monitor.poll_rate)

    @property
    def state(self) -> ViewState:
        return self._state

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield Input(
            value=self._state.query,
            placeholder="Search name, command, PID or regex (comma separates terms)",
            id="search",
        )
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self.query_one("#process-table", DataTable).focus()
        if self._start_monitor:
            self._monitor.start()
        # Poll the queue for updates
        self.set_interval(0.5, self._check_for_updates)
        self._update_subtitle()

    def on_unmount(self) -> None:
        self._monitor.stop()

    def _check_for_updates(self) -> None:
        """Check the queue for system updates and refresh the UI."""
        # Drain the queue to get the most recent snapshot
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self.update_snapshot(snapshot)

    def update_snapshot(self, snapshot: SystemSnapshot) -> None:
        """Show a new system snapshot."""
        try:
            self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
        except Exception:
            # A bad snapshot must not take down the UI
            log.exception("header_update_failed")
        self._processes = snapshot.processes
        self.refresh_view()

    def refresh_view(self) -> None:
        """Re-run filter and sort over the current snapshot and redraw the table."""
        view = self._state.apply(self._processes, self._pattern_cache)
        self.query_one(ProcessTable).update_processes(view, self._state.pinned)
        self._update_subtitle(len(view))

    def set_state(self, state: ViewState) -> None:
        """Replace the view state and redraw."""
        if state == self._state:
            return
        self._state = state
        self.refresh_view()

    def _update_subtitle(self, shown: int | None = None) -> None:
        sort = self._state.sort
        arrow = "▲" if sort.direction is SortDirection.ASC else "▼"
        shown = len(self._processes) if shown is None else shown
        self.sub_title = f"{shown}/{len(self._processes)} processes · {sort.field.value} {arrow}"

    def on_input_changed(self, event: Input.Changed) -> None:
        """Debounce search typing so each keystroke doesn't refilter."""
        if event.input.id != "search":
            return
        if self._search_timer is not None:
            self._search_timer.stop()
            self._search_timer = None

        value = event.value
        delay = self._config.view.search_debounce
        if delay <= 0:
            self.set_state(self._state.with_query(value))
        else:
            self._search_timer = self.set_timer(
                delay, lambda: self.set_state(self._state.with_query(value))
            )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Apply the search immediately and hand focus back to the table."""
        if self._search_timer is not None:
            self._search_timer.stop()
            self._search_timer = None
        self.set_state(self._state.with_query(event.value))
        self.query_one("#process-table", DataTable).focus()

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        """Sort by the clicked column, flipping direction on a repeat click."""
        try:
            sort_field = SortField(event.column_key.value)
        except ValueError:
            return  # Pin column
        self.set_state(self._state.with_sort(self._state.sort.toggled(sort_field)))

    def action_focus_search(self) -> None:
        self.query_one("#search", Input).focus()

    def action_clear_search(self) -> None:
        self.query_one("#search", Input).value = ""
        self.set_state(self._state.with_query(""))
        self.query_one("#process-table", DataTable).focus()

    def action_cycle_sort(self) -> None:
        """Cycle to the next sort field."""
        fields = list(SortField)
        next_field = fields[(fields.index(self._state.sort.field) + 1) % len(fields)]
        self.set_state(self._state.with_sort(self._state.sort.toggled(next_field)))
        self.notify(f"Sort: {next_field.value}")

    def action_reverse_sort(self) -> None:
        self.set_state(self._state.with_sort(self._state.sort.reversed()))

    def action_toggle_pin(self) -> None:
        """Pin or unpin the selected process by its command."""
        proc = self.query_one(ProcessTable).selected_process
        if proc is None:
            return
        self.set_state(self._state.toggle_pin(proc.command))
        verb = "Pinned" if proc.command in self._state.pinned else "Unpinned"
        self.notify(f"{verb}: {proc.name}")

    def action_toggle_status(self, status: str) -> None:
        """Add or remove a status from the status filter."""
        filters = self._state.filters.toggle_status(status)
        self.set_state(self._state.with_filters(filters))
        selected = sorted(s.value for s in filters.status.values)
        self.notify(f"Status: {', '.join(selected) if selected else 'all'}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def run_tui(config: Config, state: ViewState | None = None) -> None:
    """Run the interactive process view."""
    app = ProcviewApp(config, state)
    app.run()

