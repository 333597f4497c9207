"""svcexporter-top - Textual dashboard for tracked services."""

import os
from enum import Enum
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from svcexporter.collector import MetricsCollector, PollResult
from svcexporter.errors import EnvironmentFault
from svcexporter.models import ServiceMetrics
from svcexporter.monitor import MonitorUpdate, ServiceMonitor


class SortKey(Enum):
    """Sort keys for the service table."""

    NAME = "name"
    CPU = "cpu"
    MEM = "mem"
    UPTIME = "uptime"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as [D days, ]HH:MM:SS."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class HeaderStats(Static):
    """Header widget showing host clock data and a running count."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 3;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._tick_rate: int = 0
        self._uptime_seconds: float = 0.0
        self._running: int = 0
        self._total: int = 0

    def on_mount(self) -> None:
        self.update(self._get_info())

    def update_stats(self, result: PollResult) -> None:
        """Update the statistics from a poll result."""
        self._tick_rate = result.system.tick_rate
        self._uptime_seconds = result.system.uptime_seconds
        self._running = sum(1 for metrics in result.services if metrics.running)
        self._total = len(result.services)
        self.update(self._get_info())

    def _get_info(self) -> str:
        if self._tick_rate == 0:
            return "Waiting for first poll..."
        return (
            f"Services: {self._running}/{self._total} running\n"
            f"System uptime: {format_duration(self._uptime_seconds)}  "
            f"CLK_TCK: {self._tick_rate}"
        )


class ServiceTable(Container):
    """Container for the service data table."""

    DEFAULT_CSS = """
    ServiceTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, page_size: int, **kwargs) -> None:
        """Initialize ServiceTable."""
        super().__init__(*args, **kwargs)
        self._page_size = page_size
        self._rows: list[str] = []
        self._sort_key: SortKey = SortKey.NAME
        self._sort_reverse: bool = False

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    @property
    def rows(self) -> list[str]:
        """Service names in displayed order."""
        return list(self._rows)

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        self._sort_reverse = self._sort_key is not SortKey.NAME
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the service table."""
        yield DataTable(id="service-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#service-table", DataTable)
        table.cursor_type = "row"

        table.add_column("SERVICE", key="name", width=20)
        table.add_column("S", key="state", width=3)
        table.add_column("PID", key="pid", width=8)
        table.add_column("UPTIME", key="uptime", width=18)
        table.add_column("CPU", key="cpu_self", width=10)
        table.add_column("CPU+CHLD", key="cpu_total", width=10)
        table.add_column("VIRT", key="vsize", width=8)
        table.add_column("RES", key="rss", width=8)

    def update_services(self, services: tuple[ServiceMetrics, ...], tick_rate: int) -> None:
        """
        Update the service table with new data.

        Rows are updated in place while the sort order is unchanged and
        rebuilt otherwise.
        """
        table = self.query_one("#service-table", DataTable)
        ordered = self._sort_services(services)
        names = [metrics.name for metrics in ordered]

        if names == self._rows:
            for metrics in ordered:
                for column, value in zip(self._column_keys(), self._cells(metrics, tick_rate)):
                    table.update_cell(metrics.name, column, value)
        else:
            table.clear()
            for metrics in ordered:
                table.add_row(*self._cells(metrics, tick_rate), key=metrics.name)
            self._rows = names

    @staticmethod
    def _column_keys() -> list[str]:
        return ["name", "state", "pid", "uptime", "cpu_self", "cpu_total", "vsize", "rss"]

    def _sort_services(self, services: tuple[ServiceMetrics, ...]) -> list[ServiceMetrics]:
        """Sort services based on the current sort key."""
        key_func = {
            SortKey.NAME: lambda m: m.name.lower(),
            SortKey.CPU: lambda m: m.cpu_total_time,
            SortKey.MEM: lambda m: m.resident_set_size,
            SortKey.UPTIME: lambda m: m.uptime_seconds,
        }
        return sorted(services, key=key_func[self._sort_key], reverse=self._sort_reverse)

    def _cells(self, metrics: ServiceMetrics, tick_rate: int) -> list[str]:
        if not metrics.running:
            return [metrics.name[:20], "-", "-", "-", "-", "-", "-", "-"]
        return [
            metrics.name[:20],
            "R",
            str(metrics.pid),
            format_duration(metrics.uptime_seconds),
            f"{metrics.cpu_self_time / tick_rate:9.2f}",
            f"{metrics.cpu_total_time / tick_rate:9.2f}",
            format_bytes(metrics.virtual_size),
            format_bytes(metrics.resident_set_size * self._page_size),
        ]


class ServiceTopApp(App):
    """Live view of the tracked services."""

    TITLE = "svcexporter-top"
    SUB_TITLE = "Service Process Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        collector: MetricsCollector,
        poll_rate: float = 2.0,
        page_size: int | None = None,
    ) -> None:
        """Initialize the ServiceTopApp."""
        super().__init__()
        self._update_queue: Queue[MonitorUpdate] = Queue()
        self._monitor = ServiceMonitor(collector, self._update_queue, poll_rate=poll_rate)
        self._page_size = page_size if page_size is not None else os.sysconf("SC_PAGE_SIZE")

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ServiceTable(page_size=self._page_size)
        yield Footer()

    def on_mount(self) -> None:
        """Start the service monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent poll result."""
        result = None
        while True:
            try:
                update = self._update_queue.get_nowait()
            except Empty:
                break
            if isinstance(update, EnvironmentFault):
                self._monitor.stop()
                self.exit(result=update, return_code=1)
                return
            result = update

        if result is not None:
            self._update_ui(result)

    def _update_ui(self, result: PollResult) -> None:
        """Update the UI with a new poll result."""
        self.query_one("#header-stats", HeaderStats).update_stats(result)
        self.query_one(ServiceTable).update_services(result.services, result.system.tick_rate)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        service_table = self.query_one(ServiceTable)
        new_sort_key = service_table.cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()
