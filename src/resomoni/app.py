"""resomoni - Textual application and plain terminal output."""

import argparse
import itertools
import logging
import sys
import time
from queue import Empty, Queue
from typing import TextIO

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.logging import TextualHandler
from textual.widgets import Footer, Static

from resomoni.errors import OutputFlushError
from resomoni.models import UsageSnapshot
from resomoni.monitor import CounterSource, UsageMonitor

logger = logging.getLogger(__name__)

PLACEHOLDER = "-"
BAR_WIDTH = 20
CPU_COLUMN_WIDTH = 5
MEM_COLUMN_WIDTH = 6
PLAIN_HEADER = "  CPU   MEM"
# Erase the entire line, then return to its start.
CLEAR_LINE = "\x1b[2K\r"


def format_percent(percent: int | None, width: int = CPU_COLUMN_WIDTH) -> str:
    """Right-align a percentage, or the placeholder when it is unavailable."""
    if percent is None:
        return f"{PLACEHOLDER:>{width}}"
    return f"{percent:>{width - 1}}%"


def render_usage_line(snapshot: UsageSnapshot) -> str:
    """Render one cycle as the fixed-width CPU and MEM columns."""
    return format_percent(snapshot.cpu_percent, CPU_COLUMN_WIDTH) + format_percent(
        snapshot.memory_percent, MEM_COLUMN_WIDTH
    )


def render_bar(percent: int | None, color: str) -> str:
    """Render a usage bar with Rich markup."""
    filled = 0 if percent is None else min(percent * BAR_WIDTH // 100, BAR_WIDTH)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (BAR_WIDTH - filled)


def format_kilobytes(size: int) -> str:
    """Format a kB amount as a human-readable string."""
    for unit in ["K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


class UsageStats(Static):
    """Widget showing CPU and memory utilization."""

    DEFAULT_CSS = """
    UsageStats {
        height: auto;
        min-height: 3;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize UsageStats."""
        super().__init__(*args, **kwargs)
        self._has_data = False
        self._cpu_percent: int | None = None
        self._memory_percent: int | None = None
        self._memory_total: int | None = None
        self._memory_available: int | None = None

    def compose(self) -> ComposeResult:
        """Compose the usage layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_stats(self, snapshot: UsageSnapshot) -> None:
        """Update the statistics from a usage snapshot."""
        self._has_data = True
        self._cpu_percent = snapshot.cpu_percent
        self._memory_percent = snapshot.memory_percent
        self._memory_total = snapshot.memory_total
        self._memory_available = snapshot.memory_available
        self._refresh_display()

    def _refresh_display(self) -> None:
        try:
            cpu_info = self.query_one("#cpu-info", Static)
            mem_info = self.query_one("#mem-info", Static)
        except NoMatches:
            return  # Not mounted yet
        cpu_info.update(self._get_cpu_info())
        mem_info.update(self._get_mem_info())

    def _get_cpu_info(self) -> str:
        if not self._has_data:
            return "Loading CPU info..."
        bar = render_bar(self._cpu_percent, "green")
        return f"CPU \\[{bar}] {format_percent(self._cpu_percent)}"

    def _get_mem_info(self) -> str:
        if not self._has_data:
            return "Loading memory info..."
        bar = render_bar(self._memory_percent, "cyan")
        line = f"Mem \\[{bar}] {format_percent(self._memory_percent)}"
        if self._memory_percent is not None and self._memory_total is not None:
            used = self._memory_total - (self._memory_available or 0)
            line += f" {format_kilobytes(used)}/{format_kilobytes(self._memory_total)}"
        return line


class ResomoniApp(App):
    """Main resomoni application."""

    TITLE = "resomoni"
    SUB_TITLE = "CPU and memory usage"

    CSS = """
    Screen {
        layout: vertical;
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
    ]

    def __init__(self, source: CounterSource | None = None) -> None:
        """Initialize the ResomoniApp."""
        super().__init__()
        self._update_queue: Queue[UsageSnapshot] = Queue()
        self._monitor = UsageMonitor(self._update_queue, source=source)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield UsageStats(id="usage-stats")
        yield Footer()

    def on_mount(self) -> None:
        """Start the usage monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        self._monitor.stop()

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self.query_one("#usage-stats", UsageStats).update_stats(snapshot)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def run_plain(
    monitor: UsageMonitor,
    stream: TextIO | None = None,
    cycles: int | None = None,
) -> None:
    """
    Redraw the usage line in place, one cycle per poll period.

    Runs until interrupted unless ``cycles`` is given.

    Raises:
        OutputFlushError: The stream could not be flushed.
    """
    stream = stream if stream is not None else sys.stdout
    stream.write(PLAIN_HEADER + "\n")

    iterations = itertools.count() if cycles is None else range(cycles)
    for _ in iterations:
        stream.write(render_usage_line(monitor.collect_snapshot()))
        try:
            stream.flush()
        except OSError as exc:
            raise OutputFlushError(str(exc)) from exc

        time.sleep(monitor.poll_rate)
        stream.write(CLEAR_LINE)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="resomoni",
        description="Report CPU and memory utilization",
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Redraw a single line instead of the full-screen view",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point for resomoni."""
    args = parse_args(argv)

    if not args.plain:
        logging.basicConfig(level=args.log_level, handlers=[TextualHandler()])
        ResomoniApp().run()
        return

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        run_plain(UsageMonitor())
    except KeyboardInterrupt:
        sys.stdout.write("\n")
    except OutputFlushError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
