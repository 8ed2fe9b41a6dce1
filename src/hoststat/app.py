"""hoststat - Textual dashboard for the published monitor state."""

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from hoststat.log import setup_logging
from hoststat.models import PublishedState, VolumeInfo
from hoststat.monitor import SystemMonitor

BAR_WIDTH = 40


def format_gb(value: float) -> str:
    """Format a GB figure with two decimals."""
    return f"{value:0.2f}GB"


def usage_bar(percent: float, width: int = BAR_WIDTH, colour: str = "yellow") -> str:
    """Render a used/free bar as Rich markup."""
    filled = int(round(max(0.0, min(100.0, percent)) / 100.0 * width))
    return f"[{colour}]{'█' * filled}[/{colour}]" + "[dim]░[/dim]" * (width - filled)


class LoadStats(Static):
    """Headline CPU (or SoC) load across all cores."""

    DEFAULT_CSS = """
    LoadStats {
        height: auto;
        padding: 1;
    }
    """

    def update_stats(self, state: PublishedState) -> None:
        self.update(self.render_state(state))

    @staticmethod
    def render_state(state: PublishedState) -> str:
        return (
            f"[b u]{state.load_label}[/b u]\n"
            f"[b]{state.cpu_load_percent:0.2f}%[/b] across {state.core_count} cores"
        )


class MemoryStats(Static):
    """Total and in-use memory with a usage bar."""

    DEFAULT_CSS = """
    MemoryStats {
        height: auto;
        padding: 1;
    }
    """

    def update_stats(self, state: PublishedState) -> None:
        self.update(self.render_state(state))

    @staticmethod
    def render_state(state: PublishedState) -> str:
        if state.memory_total_gb <= 0:
            return "[b u]Memory[/b u]\nLoading memory info..."
        return (
            "[b u]Memory[/b u]\n"
            f"[b]Total:[/b] {format_gb(state.memory_total_gb)}\n"
            f"[b]In-use:[/b] {format_gb(state.memory_used_gb)} ({state.memory_used_percent:0.2f}%)\n"
            f"{usage_bar(state.memory_used_percent)}"
        )


class VolumeTable(Container):
    """Table of connected volumes, filled once since volumes are not refreshed."""

    DEFAULT_CSS = """
    VolumeTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, volumes: tuple[VolumeInfo, ...] = (), **kwargs) -> None:
        super().__init__(**kwargs)
        self._volumes = volumes

    def compose(self) -> ComposeResult:
        yield Static("", id="volume-count")
        yield DataTable(id="volume-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#volume-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Volume path", key="path")
        table.add_column("Capacity", key="capacity", width=12)
        table.add_column("Used", key="used", width=12)
        table.add_column("Free", key="free", width=12)
        table.add_column("% free", key="free_pct", width=8)
        self.show_volumes(self._volumes)

    def show_volumes(self, volumes: tuple[VolumeInfo, ...]) -> None:
        """Replace the table contents with the given volumes."""
        self.query_one("#volume-count", Static).update(
            f"[b u]Total volumes: {len(volumes)}[/b u] [dim](excluding system)[/dim]"
        )
        table = self.query_one("#volume-table", DataTable)
        table.clear()
        for volume in volumes:
            table.add_row(
                volume.path,
                format_gb(volume.capacity_gb),
                format_gb(volume.used_space_gb),
                format_gb(volume.free_space_gb),
                f"{volume.percent_free:0.2f}%",
                key=str(volume.id),
            )


class HoststatApp(App):
    """Dashboard that reads SystemMonitor.state on a timer."""

    TITLE = "hoststat"
    SUB_TITLE = "System usage"

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    # How often the UI picks up sampling results (seconds)
    REFRESH_INTERVAL = 0.25

    def __init__(self, monitor: SystemMonitor | None = None) -> None:
        """
        Initialize the HoststatApp.

        Args:
            monitor: Monitor to display. Must be created on this thread.
        """
        super().__init__()
        self._monitor = monitor or SystemMonitor()

    @property
    def monitor(self) -> SystemMonitor:
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield LoadStats(id="load-stats")
        yield MemoryStats(id="memory-stats")
        yield VolumeTable(self._monitor.state.volumes, id="volumes")
        yield Footer()

    def on_mount(self) -> None:
        """Show the initial state and start sampling."""
        self._update_ui(self._monitor.state)
        self._monitor.start()
        self.set_interval(self.REFRESH_INTERVAL, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Apply queued sampling results and refresh the widgets."""
        if self._monitor.apply_pending():
            self._update_ui(self._monitor.state)

    def _update_ui(self, state: PublishedState) -> None:
        self.query_one("#load-stats", LoadStats).update_stats(state)
        self.query_one("#memory-stats", MemoryStats).update_stats(state)

    def action_quit(self) -> None:
        """Stop sampling and exit."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for the hoststat dashboard."""
    setup_logging(level="warning")
    app = HoststatApp()
    app.run()


if __name__ == "__main__":
    main()
