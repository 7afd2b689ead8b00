"""hostwatch - Main Textual application."""

import argparse
import logging
import time

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Footer, Sparkline, Static

from hostwatch.config import MonitorConfig, configure_logging, load_config
from hostwatch.engine import SamplingEngine
from hostwatch.errors import PersistenceError
from hostwatch.history import RollingSeries
from hostwatch.models import AuthEvent, AuthStatus

logger = logging.getLogger(__name__)


def format_age(seconds: float) -> str:
    """Format an elapsed time as a short relative string."""
    seconds = max(0, int(seconds))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"


def format_gib(size: int) -> str:
    """Format bytes as GiB with one decimal."""
    return f"{size / 1024**3:.1f}G"


def network_title(received: RollingSeries, transmitted: RollingSeries) -> str:
    """Current rates plus the peak across the retained window."""
    rx = received.latest() or 0.0
    tx = transmitted.latest() or 0.0
    title = f"Network Traffic (down {rx:.2f} MB/s, up {tx:.2f} MB/s)"
    if len(received) > 1:
        peak = max(received.max_value(), transmitted.max_value())
        span = received.last() - received.first()
        title += f" | peak {peak:.2f} MB/s over {span:.0f}s"
    return title


class MetricChart(Vertical):
    """Titled sparkline for one or more rolling series."""

    DEFAULT_CSS = """
    MetricChart {
        height: 1fr;
        border: solid $primary;
    }

    MetricChart > .chart-title {
        height: 1;
    }

    MetricChart > Sparkline {
        height: 1fr;
    }
    """

    def __init__(self, series_count: int = 1, *args, **kwargs) -> None:
        """Initialize MetricChart."""
        super().__init__(*args, **kwargs)
        self._series_count = series_count

    def compose(self) -> ComposeResult:
        """Compose the title and one sparkline per series."""
        yield Static("Waiting for data...", classes="chart-title")
        for _ in range(self._series_count):
            yield Sparkline([], summary_function=max)

    def update_chart(self, title: str, *series: list[float]) -> None:
        """Replace the title and sparkline data."""
        self.query_one(".chart-title", Static).update(title)
        for sparkline, values in zip(self.query(Sparkline), series):
            sparkline.data = values


class EventLog(Static):
    """Scrollable list of recent auth events, newest first."""

    DEFAULT_CSS = """
    EventLog {
        height: auto;
        min-height: 5;
        border: solid $secondary;
        padding: 0 1;
    }
    """

    def __init__(self, visible_rows: int = 3, *args, **kwargs) -> None:
        """Initialize EventLog."""
        super().__init__(*args, **kwargs)
        self._visible_rows = visible_rows
        self._log_offset = 0
        self._events: list[AuthEvent] = []

    def on_mount(self) -> None:
        """Show the placeholder until the first poll."""
        self.border_title = "SSH Logins (up/down to scroll)"
        self._refresh_display()

    @property
    def log_offset(self) -> int:
        """Number of newest events scrolled past."""
        return self._log_offset

    def scroll_log_up(self) -> None:
        """Move towards the newest events."""
        if self._log_offset > 0:
            self._log_offset -= 1
            self._refresh_display()

    def scroll_log_down(self) -> None:
        """Move towards older events."""
        if self._log_offset < max(0, len(self._events) - self._visible_rows):
            self._log_offset += 1
            self._refresh_display()

    def update_events(self, events: list[AuthEvent], now: float | None = None) -> None:
        """Replace the event list and redraw."""
        self._events = events
        self._log_offset = min(self._log_offset, max(0, len(events) - self._visible_rows))
        self._refresh_display(now)

    def format_events(self, now: float | None = None) -> Text:
        """Build the visible rows."""
        now = time.time() if now is None else now
        visible = list(reversed(self._events))[self._log_offset : self._log_offset + self._visible_rows]
        if not visible:
            return Text("No authentication events yet", style="dim")

        lines = Text()
        for i, event in enumerate(visible):
            if i:
                lines.append("\n")
            colour = "red" if event.status is AuthStatus.FAILED else "green"
            lines.append(f"[{format_age(now - event.timestamp)}] ", style="grey50")
            lines.append(f"{event.identifier}: {event.status.value}", style=colour)
        return lines

    def _refresh_display(self, now: float | None = None) -> None:
        self.update(self.format_events(now))


class HostwatchApp(App):
    """Main hostwatch application."""

    TITLE = "hostwatch"
    SUB_TITLE = "Host and SSH Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("up", "log_up", "Scroll up"),
        ("down", "log_down", "Scroll down"),
    ]

    def __init__(self, engine: SamplingEngine, poll_interval: float = 0.25) -> None:
        """Initialize the HostwatchApp."""
        super().__init__()
        self._engine = engine
        self._poll_interval = poll_interval

    @property
    def engine(self) -> SamplingEngine:
        return self._engine

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield MetricChart(id="cpu-chart")
        yield MetricChart(id="memory-chart")
        yield MetricChart(id="disk-chart")
        yield MetricChart(2, id="network-chart")
        yield EventLog(id="event-log")
        yield Footer()

    def on_mount(self) -> None:
        """Start the sampling timer when the app is mounted."""
        self.set_interval(self._poll_interval, self._on_timer)

    def on_unmount(self) -> None:
        """Close the store on exit."""
        self._engine.close()

    def _on_timer(self) -> None:
        """Run a sampling cycle when due, then redraw."""
        try:
            self._engine.tick()
        except PersistenceError as exc:
            self.exit(return_code=1, message=f"hostwatch: cannot write metrics: {exc}")
            return
        self._update_ui()

    def _update_ui(self) -> None:
        """Redraw every panel from the engine's rolling series."""
        engine = self._engine
        sample = engine.latest_sample

        cpu = engine.cpu.latest() or 0.0
        cpu_title = f"CPU Usage ({cpu:.1f}%) - {engine.cpu_count} Cores"
        if sample is not None:
            cpu_title += f" | target {sample.target_cpu_percent:.1f}%"
        self.query_one("#cpu-chart", MetricChart).update_chart(cpu_title, engine.cpu.values())

        mem = engine.memory.latest() or 0.0
        if sample is not None:
            mem_title = (
                f"Memory Usage ({format_gib(sample.memory_used_bytes)} of "
                f"{format_gib(sample.memory_total_bytes)}, {mem:.1f}%) | "
                f"target {format_gib(sample.target_memory_bytes)}"
            )
        else:
            mem_title = f"Memory Usage ({mem:.1f}%)"
        self.query_one("#memory-chart", MetricChart).update_chart(mem_title, engine.memory.values())

        disk = engine.disk.latest() or 0.0
        self.query_one("#disk-chart", MetricChart).update_chart(
            f"Disk Usage ({disk:.1f}%)", engine.disk.values()
        )

        self.query_one("#network-chart", MetricChart).update_chart(
            network_title(engine.received, engine.transmitted),
            engine.received.values(),
            engine.transmitted.values(),
        )

        self.query_one("#event-log", EventLog).update_events(engine.events)

    def action_log_up(self) -> None:
        """Scroll the event log towards newer entries."""
        self.query_one("#event-log", EventLog).scroll_log_up()

    def action_log_down(self) -> None:
        """Scroll the event log towards older entries."""
        self.query_one("#event-log", EventLog).scroll_log_down()

    def action_quit(self) -> None:
        """Handle quit action."""
        self.exit()


def build_config(argv: list[str] | None = None) -> MonitorConfig:
    """Load the YAML config and apply command-line overrides."""
    parser = argparse.ArgumentParser(description="Host and SSH login monitor")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--db", help="SQLite database path")
    parser.add_argument("--target", help="Name of the process to track")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.db:
        config.db_path = args.db
    if args.target:
        config.target_process = args.target
    return config


def main(argv: list[str] | None = None) -> None:
    """Entry point for hostwatch application."""
    config = build_config(argv)
    configure_logging(config)
    logger.info("Starting hostwatch with database %s", config.db_path)

    engine = SamplingEngine.from_config(config)
    app = HostwatchApp(engine, poll_interval=config.input_poll_interval)
    app.run()
    if app.return_code:
        raise SystemExit(app.return_code)


if __name__ == "__main__":
    main()
