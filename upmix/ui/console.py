import threading
from typing import List, Optional
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TaskProgressColumn
from rich.table import Table
from upmix.domain.events import ErrorReported, JobStatusChanged, ProgressUpdated, StatusMessageChanged
from upmix.domain.models import AudioFile, FileStatus
from upmix.infrastructure.event_bus import EventBus

STATUS_STYLES = {
    FileStatus.PENDING: "dim",
    FileStatus.PROCESSING: "cyan",
    FileStatus.UPMIXED: "green",
    FileStatus.FAILED: "red",
    FileStatus.CANCELLED: "yellow",
}

class ConsoleReporter:
    """Renders run progress on the terminal from EventBus events."""

    def __init__(self, bus: EventBus, console: Optional[Console] = None):
        self.bus = bus
        self.console = console or Console()
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console,
            transient=False,
        )
        self._task: Optional[TaskID] = None
        self._lock = threading.Lock()
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(ProgressUpdated, self.on_progress)
        self.bus.subscribe(StatusMessageChanged, self.on_status_message)
        self.bus.subscribe(JobStatusChanged, self.on_job_status)
        self.bus.subscribe(ErrorReported, self.on_error)

    def start(self):
        with self._lock:
            self._progress.start()
            self._task = self._progress.add_task("Ready", total=1.0)

    def stop(self):
        with self._lock:
            self._progress.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def on_progress(self, event: ProgressUpdated):
        with self._lock:
            if self._task is not None:
                self._progress.update(self._task, completed=event.progress)

    def on_status_message(self, event: StatusMessageChanged):
        with self._lock:
            if self._task is not None:
                self._progress.update(self._task, description=event.message)

    def on_job_status(self, event: JobStatusChanged):
        if not event.job.status.is_terminal:
            return
        style = STATUS_STYLES[event.job.status]
        self.console.print(f"[{style}]{event.job.status.value:<10}[/{style}] {event.job.name}")

    def on_error(self, event: ErrorReported):
        # ffmpeg diagnostics can be long; the last line is the useful one
        lines = [line for line in event.message.strip().splitlines() if line.strip()]
        self.console.print(f"[red]Error:[/red] {lines[-1] if lines else event.message}")

    def print_summary(self, files: List[AudioFile]):
        table = Table(title="Upmix summary")
        table.add_column("#", justify="right")
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Output")
        for i, job in enumerate(files, start=1):
            style = STATUS_STYLES[job.status]
            table.add_row(
                str(i),
                job.name,
                f"[{style}]{job.status.value}[/{style}]",
                job.output_path.name if job.output_path else "",
            )
        self.console.print(table)
