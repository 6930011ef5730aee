"""clauditor - Main Textual application."""

import argparse
import dataclasses
import logging
import sys
from dataclasses import dataclass
from queue import Empty, Queue

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import DataTable, Static

from clauditor.collector import ProcessCollector
from clauditor.config import MonitorConfig
from clauditor.display import (
    cpu_style,
    extract_project_name,
    format_table,
    mem_style,
    shorten_path,
    state_indicator,
    total_style,
)
from clauditor.lifecycle import LifecycleController
from clauditor.models import ProcessRecord
from clauditor.monitor import ClaudeMonitor
from clauditor.snapshot import default_source
from clauditor.tree import summarize

logger = logging.getLogger(__name__)

MESSAGE_TIMEOUT = 3.0


@dataclass(slots=True, frozen=True)
class ActionSpec:
    """Wording and styling of a lifecycle action in the UI."""

    name: str
    title: str
    description: str
    warning: str
    color: str
    done: str


ACTIONS = {
    "kill": ActionSpec(
        name="kill",
        title="KILL PROCESS",
        description="This will terminate the process and all child processes.",
        warning="This action cannot be undone!",
        color="red",
        done="Killed",
    ),
    "pause": ActionSpec(
        name="pause",
        title="PAUSE PROCESS",
        description="This will suspend the process and all child processes.",
        warning="Use 'r' to resume later.",
        color="yellow",
        done="Paused",
    ),
    "resume": ActionSpec(
        name="resume",
        title="RESUME PROCESS",
        description="This will continue the paused process and all children.",
        warning="",
        color="green",
        done="Resumed",
    ),
}


class HeaderStats(Static):
    """Header widget showing process count and subtree totals."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        padding: 0 1;
        border: round $accent;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._process_count: int = 0
        self._total_cpu: float = 0.0
        self._total_mem: float = 0.0

    def on_mount(self) -> None:
        self.update(self._render_stats())

    def update_stats(self, records: list[ProcessRecord]) -> None:
        """Update the totals from the latest process list."""
        summary = summarize(records)
        self._process_count = summary.process_count
        self._total_cpu = summary.total_cpu_percent
        self._total_mem = summary.total_memory_percent
        self.update(self._render_stats())

    def _render_stats(self) -> str:
        count_color = "green" if self._process_count > 0 else "yellow"
        cpu_color = total_style(self._total_cpu)
        mem_color = total_style(self._total_mem)
        return (
            "[b cyan] CLAUDITOR [/b cyan]  [dim]Claude Process Monitor[/dim]\n"
            f"[dim]Processes:[/dim] [{count_color}]{self._process_count}[/{count_color}]  "
            f"[dim]Total CPU:[/dim] [{cpu_color}]{self._total_cpu:.1f}%[/{cpu_color}]  "
            f"[dim]Total Mem:[/dim] [{mem_color}]{self._total_mem:.1f}%[/{mem_color}]"
        )


class ProcessTable(Container):
    """Container for the monitored process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }

    ProcessTable #empty-message {
        width: 100%;
        content-align: center middle;
        height: auto;
        color: $text-muted;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._records: list[ProcessRecord] = []
        self._loaded: bool = False

    @property
    def records(self) -> list[ProcessRecord]:
        return self._records

    @property
    def selected_record(self) -> ProcessRecord | None:
        """The process under the cursor, if any."""
        if not self._records:
            return None
        table = self.query_one("#process-table", DataTable)
        index = min(max(table.cursor_row, 0), len(self._records) - 1)
        return self._records[index]

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield Static("Loading processes...", id="empty-message")
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("ST", key="state", width=3)
        table.add_column("PID", key="pid", width=8)
        table.add_column("CPU", key="cpu", width=8)
        table.add_column("MEM", key="mem", width=8)
        table.add_column("CHILD", key="children", width=6)
        table.add_column("PROJECT", key="project", width=20)
        table.add_column("WORKING DIR", key="cwd")

    def update_processes(self, records: list[ProcessRecord]) -> None:
        """
        Replace the table contents with a new process list.

        The cursor stays on the same pid when it is still present, otherwise
        it is clamped to the last row.
        """
        table = self.query_one("#process-table", DataTable)
        selected = self.selected_record
        previous_row = table.cursor_row

        self._records = list(records)
        self._loaded = True

        table.clear()
        for record in self._records:
            table.add_row(*self._row_cells(record), key=str(record.pid))

        pids = [r.pid for r in self._records]
        if selected is not None and selected.pid in pids:
            table.move_cursor(row=pids.index(selected.pid))
        elif self._records:
            table.move_cursor(row=min(previous_row, len(self._records) - 1))

        self._show_empty(not self._records)

    def _show_empty(self, empty: bool) -> None:
        message = self.query_one("#empty-message", Static)
        if empty:
            message.update(
                "No Claude processes running\nStart a Claude session to see it here"
                if self._loaded
                else "Loading processes..."
            )
        message.display = empty

    @staticmethod
    def _row_cells(record: ProcessRecord) -> tuple[str, ...]:
        if record.is_paused:
            cpu = f"[dim]{record.total_cpu_percent:5.1f}%[/dim]"
            mem = f"[dim]{record.total_memory_percent:5.1f}%[/dim]"
            state = "[yellow]||[/yellow]"
        else:
            cpu_color = cpu_style(record.total_cpu_percent)
            mem_color = mem_style(record.total_memory_percent)
            cpu = f"[{cpu_color}]{record.total_cpu_percent:5.1f}%[/{cpu_color}]"
            mem = f"[{mem_color}]{record.total_memory_percent:5.1f}%[/{mem_color}]"
            state = f"[green]{state_indicator(record)}[/green]"

        return (
            state,
            str(record.pid),
            cpu,
            mem,
            str(record.child_count) if record.child_count else "-",
            extract_project_name(record)[:18],
            shorten_path(record.working_dir, 35),
        )

    def cursor_down(self) -> None:
        self.query_one("#process-table", DataTable).action_cursor_down()

    def cursor_up(self) -> None:
        self.query_one("#process-table", DataTable).action_cursor_up()

    def cursor_top(self) -> None:
        self.query_one("#process-table", DataTable).move_cursor(row=0)

    def cursor_bottom(self) -> None:
        if self._records:
            self.query_one("#process-table", DataTable).move_cursor(row=len(self._records) - 1)


class StatusBar(Static):
    """Key hints plus the latest action message."""

    DEFAULT_CSS = """
    StatusBar {
        height: auto;
        padding: 0 1;
        border: solid $panel;
    }
    """

    HINTS = (
        "[b cyan]j/k[/b cyan] [dim]Nav[/dim] | [b cyan]g/G[/b cyan] [dim]Top/Bottom[/dim] | "
        "[b red]K[/b red] [dim]Kill[/dim] | [b yellow]p[/b yellow] [dim]Pause[/dim] | "
        "[b green]r[/b green] [dim]Resume[/dim] | [b magenta]R[/b magenta] [dim]Refresh[/dim] | "
        "[b]q[/b] [dim]Quit[/dim]"
    )

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._message: str = ""
        self._is_error: bool = False

    def on_mount(self) -> None:
        self.update(self._render_bar())

    def show_message(self, text: str, is_error: bool = False) -> None:
        self._message = text
        self._is_error = is_error
        self.update(self._render_bar())

    def clear_message(self) -> None:
        self.show_message("")

    def _render_bar(self) -> str:
        if not self._message:
            return self.HINTS
        color = "red" if self._is_error else "green"
        return f"{self.HINTS}\n[{color}]{self._message}[/{color}]"


class ConfirmScreen(ModalScreen[bool]):
    """Asks the operator to confirm a kill, pause or resume."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }

    ConfirmScreen > Vertical {
        width: 64;
        height: auto;
        padding: 1 2;
        border: double $accent;
        background: $surface;
    }
    """

    BINDINGS = [
        ("y", "confirm", "Yes"),
        ("enter", "confirm", "Yes"),
        ("n", "cancel", "No"),
        ("escape", "cancel", "No"),
    ]

    def __init__(self, action: ActionSpec, record: ProcessRecord) -> None:
        super().__init__()
        self.target_action = action
        self.record = record

    def compose(self) -> ComposeResult:
        spec = self.target_action
        lines = [
            f"[b {spec.color}]{spec.title}[/b {spec.color}]",
            "",
            f"[dim]Target:[/dim] [b]{extract_project_name(self.record)}[/b] "
            f"[dim](PID: {self.record.pid})[/dim]",
            f"[dim]{spec.description}[/dim]",
        ]
        if spec.warning:
            lines.append(f"[b {spec.color}]{spec.warning}[/b {spec.color}]")
        lines += ["", "[b green]\\[Y]es[/b green] [dim]/[/dim] [b red]\\[N]o[/b red]"]
        yield Vertical(Static("\n".join(lines), id="confirm-text"))

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class ClauditorApp(App):
    """Main clauditor application."""

    TITLE = "clauditor"
    SUB_TITLE = "Claude Process Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
    }

    #status-bar {
        dock: bottom;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("g", "cursor_top", "Top", show=False),
        Binding("G", "cursor_bottom", "Bottom", show=False),
        Binding("K", "kill", "Kill"),
        Binding("p", "pause", "Pause"),
        Binding("r", "resume", "Resume"),
        Binding("R", "refresh", "Refresh"),
    ]

    def __init__(
        self,
        config: MonitorConfig | None = None,
        collector: ProcessCollector | None = None,
        controller: LifecycleController | None = None,
    ) -> None:
        """Initialize the ClauditorApp."""
        super().__init__()
        self._settings = config if config is not None else MonitorConfig()
        source = default_source(self._settings.use_ps)
        self._collector = collector if collector is not None else ProcessCollector(source, self._settings)
        self._controller = controller if controller is not None else LifecycleController(self._collector.source)
        self._update_queue: Queue[list[ProcessRecord]] = Queue()
        self._monitor = ClaudeMonitor(self._update_queue, self._collector, poll_rate=self._settings.poll_rate)
        self._message_timer: Timer | None = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        """Start the monitor when the app is mounted."""
        self._monitor.start()
        # Set up a timer to poll the queue for updates
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Show the most recent process list from the queue, if any."""
        records = None
        while True:
            try:
                records = self._update_queue.get_nowait()
            except Empty:
                break

        if records is not None:
            self._update_ui(records)

    def _update_ui(self, records: list[ProcessRecord]) -> None:
        try:
            self.query_one("#header-stats", HeaderStats).update_stats(records)
            self.query_one(ProcessTable).update_processes(records)
        except Exception:
            # The app must never crash on a refresh
            logger.debug("UI update failed", exc_info=True)

    def show_message(self, text: str, is_error: bool = False) -> None:
        """Show a transient message in the status bar."""
        status = self.query_one("#status-bar", StatusBar)
        status.show_message(text, is_error)
        if self._message_timer is not None:
            self._message_timer.stop()
        self._message_timer = self.set_timer(MESSAGE_TIMEOUT, status.clear_message)

    def _selected(self) -> ProcessRecord | None:
        return self.query_one(ProcessTable).selected_record

    def action_cursor_down(self) -> None:
        self.query_one(ProcessTable).cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one(ProcessTable).cursor_up()

    def action_cursor_top(self) -> None:
        self.query_one(ProcessTable).cursor_top()

    def action_cursor_bottom(self) -> None:
        self.query_one(ProcessTable).cursor_bottom()

    def action_kill(self) -> None:
        record = self._selected()
        if record is not None:
            self._confirm(ACTIONS["kill"], record)

    def action_pause(self) -> None:
        record = self._selected()
        if record is None:
            return
        if record.is_paused:
            self.show_message("Process is already paused. Use 'r' to resume.", is_error=True)
            return
        self._confirm(ACTIONS["pause"], record)

    def action_resume(self) -> None:
        record = self._selected()
        if record is None:
            return
        if not record.is_paused:
            self.show_message("Process is already running.", is_error=True)
            return
        self._confirm(ACTIONS["resume"], record)

    def action_refresh(self) -> None:
        self._monitor.refresh_now()
        self.show_message("Refreshed")

    def _confirm(self, action: ActionSpec, record: ProcessRecord) -> None:
        def handle(confirmed: bool | None) -> None:
            if confirmed:
                self._perform(action, record)

        self.push_screen(ConfirmScreen(action, record), handle)

    @work(thread=True, exclusive=False)
    def _perform(self, action: ActionSpec, record: ProcessRecord) -> None:
        """Run a lifecycle action off the UI thread, then report and refresh."""
        operations = {
            "kill": self._controller.terminate,
            "pause": self._controller.suspend,
            "resume": self._controller.resume,
        }
        ok = operations[action.name](record.pid)

        project = extract_project_name(record)
        if ok:
            text = f"{action.done} {project} (PID {record.pid})"
        else:
            text = f"Failed to {action.name} {project}"
        self.call_from_thread(self.show_message, text, not ok)
        self._monitor.refresh_now()

    def on_unmount(self) -> None:
        self._monitor.stop()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clauditor", description="Monitor and control Claude CLI sessions.")
    parser.add_argument("--interval", type=float, help="refresh interval in seconds")
    parser.add_argument("--token", help="executable name identifying a session")
    parser.add_argument("--ps", action="store_true", help="query the process table through ps")
    parser.add_argument("--once", action="store_true", help="print the process list and exit")
    parser.add_argument("--log-file", help="write debug logs to this file")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    """Environment defaults overridden by command line flags."""
    config = MonitorConfig.from_env()
    overrides: dict = {}
    if args.interval is not None:
        overrides["poll_rate"] = args.interval
    if args.token:
        overrides["token"] = args.token
    if args.ps:
        overrides["use_ps"] = True
    return dataclasses.replace(config, **overrides)


def main(argv: list[str] | None = None) -> None:
    """Entry point for clauditor application."""
    args = build_parser().parse_args(argv)

    # The terminal belongs to the UI, so logs only go to a file
    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=args.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    config = config_from_args(args)

    if args.once:
        collector = ProcessCollector(default_source(config.use_ps), config)
        sys.stdout.write(format_table(collector.collect()) + "\n")
        return

    app = ClauditorApp(config)
    app.run()


if __name__ == "__main__":
    main()
