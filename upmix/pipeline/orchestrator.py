"""Pipeline controller for batch stereo to 5.1 upmixing.

Owns the job queue and run state, sequences conversions one file at a time on a
background thread and implements cancellation.

Failure policy:
- A file that cannot be accessed is marked failed and the run continues.
- A conversion failure marks the file failed and stops the whole run; the
  remaining files stay pending.
- Cancellation marks the current file and every pending file cancelled.
"""

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional, Union

from upmix.config.models import AppConfig
from upmix.domain.errors import (
    EncoderNotFound,
    NotReady,
    OperationCancelled,
    PermissionDenied,
    UpmixError,
)
from upmix.domain.events import RunFinished, RunStarted
from upmix.domain.models import AudioFile, FileStatus
from upmix.infrastructure.event_bus import EventBus
from upmix.infrastructure.ffmpeg import FFmpegAdapter
from upmix.infrastructure.resources import ResourceHandle
from upmix.pipeline.job_queue import JobQueue
from upmix.pipeline.runner import ConversionRunner
from upmix.pipeline.status import StatusReporter

OUTCOME_COMPLETED = "completed"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_ABORTED = "aborted"


class Orchestrator:
    """Upmix pipeline orchestrator.

    Caller-facing operations (add_file, set_output_directory, clear_files, start,
    cancel) return immediately; start() hands the queue to a daemon thread that
    is the only writer of job statuses and run state until it finishes.

    Args:
        config: AppConfig with encoder and output settings.
        event_bus: EventBus that receives every queue, status and progress change.
        resources: ResourceHandle used to tokenise and scope user-granted paths.
        ffmpeg_adapter: FFmpegAdapter that runs and terminates the encoder.
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        resources: ResourceHandle,
        ffmpeg_adapter: FFmpegAdapter,
    ):
        self.config = config
        self.event_bus = event_bus
        self.resources = resources
        self.ffmpeg_adapter = ffmpeg_adapter
        self.logger = logging.getLogger(__name__)

        self.status = StatusReporter(event_bus)
        self.queue = JobQueue(self.status, event_bus)
        self.runner = ConversionRunner(ffmpeg_adapter, resources, config.general)

        self._cancel_event = threading.Event()
        self._start_lock = threading.RLock()
        self._worker: Optional[threading.Thread] = None
        # True from start() until the loop has settled its final status line
        self._loop_active = False

    @property
    def files(self) -> List[AudioFile]:
        return self.queue.snapshot()

    @property
    def is_running(self) -> bool:
        return self.status.is_running

    # --- Queue and settings ---

    def add_file(self, path: Union[str, Path]) -> Optional[AudioFile]:
        """Queues a file; adding an already queued path returns None."""
        try:
            token = self.resources.create_token(path)
        except PermissionDenied as e:
            self._handle_error(e)
            raise
        job = self.queue.add(token)
        if job is not None:
            self.logger.info(f"QUEUE_ADD: {token.original_path}")
        return job

    def set_output_directory(self, path: Union[str, Path]):
        try:
            token = self.resources.create_token(path, writable=True)
        except PermissionDenied as e:
            self._handle_error(e)
            raise
        self.status.set_output_directory(token)
        self.logger.info(f"OUTPUT_DIR: {token.original_path}")

    def clear_files(self):
        self.queue.clear()
        self.logger.info("QUEUE_CLEAR")

    # --- Run control ---

    def start(self):
        """Validates preconditions and launches the run thread.

        Raises NotReady (EncoderNotFound included) without starting a run.
        """
        with self._start_lock:
            if len(self.queue) == 0:
                raise NotReady("No files queued.")
            if self.status.is_running:
                raise NotReady("An upmix run is already active.")
            if self.ffmpeg_adapter.locate() is None:
                error = EncoderNotFound()
                self._handle_error(error)
                raise error
            if self.status.output_directory is None:
                error = NotReady("Please select an output directory first.")
                self._handle_error(error)
                raise error

            self._cancel_event.clear()
            self._loop_active = True
            self.status.begin_run()
            self.status.set_status("Starting upmix...")
            total = len(self.queue)
            self.logger.info(f"RUN_START: files={total} output={self.status.output_directory.original_path}")
            self.event_bus.publish(RunStarted(total=total))

            self._worker = threading.Thread(target=self._run, name="upmix-run", daemon=True)
            self._worker.start()

    def cancel(self):
        """Requests cancellation of the active run.

        No-op when idle, already cancelling, or once the loop has finished its
        last file.
        """
        with self._start_lock:
            if not self._loop_active or self._cancel_event.is_set():
                return
            self.logger.info("CANCEL_REQUESTED")
            self.status.set_status("Cancelling...")
            self._cancel_event.set()
        self.ffmpeg_adapter.terminate()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the run thread exits. Returns False on timeout."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    # --- Run loop ---

    def _run(self):
        outcome = OUTCOME_ABORTED
        try:
            outcome = self._process_files()
        finally:
            outcome = self._settle(outcome)
            self.status.end_run()
            self.logger.info(f"RUN_END: outcome={outcome} progress={self.status.progress:.2f}")
            self.event_bus.publish(RunFinished(outcome=outcome))

    def _settle(self, outcome: str) -> str:
        """Closes the cancel window and sets the final status line."""
        with self._start_lock:
            self._loop_active = False
            if outcome != OUTCOME_COMPLETED:
                return outcome
            if self._cancel_event.is_set():
                # Cancel landed after the last file finished; nothing left to sweep
                self._handle_cancellation(len(self.queue))
                return OUTCOME_CANCELLED
            self.status.set_status("Upmixing complete.")
            return OUTCOME_COMPLETED

    def _process_files(self) -> str:
        jobs = self.queue.snapshot()
        total = len(jobs)
        for index, job in enumerate(jobs):
            if self._cancel_event.is_set():
                self._handle_cancellation(index)
                return OUTCOME_CANCELLED

            try:
                self.resources.with_scope(job.token, lambda path, i=index, j=job: self._upmix_file(i, j, path))
            except PermissionDenied:
                # Input could not be scoped; skip this file only
                error = PermissionDenied(job.token.original_path, f"Could not access file at {job.name}")
                self.logger.warning(f"ACCESS_DENIED: {job.name}")
                self.queue.set_status(index, FileStatus.FAILED, error_message=str(error))
                self._handle_error(error)
            except Exception as e:
                if isinstance(e, OperationCancelled) or self._cancel_event.is_set():
                    self._handle_cancellation(index)
                    return OUTCOME_CANCELLED
                if not isinstance(e, UpmixError):
                    self.logger.exception(f"Unexpected error upmixing {job.name}")
                self.logger.info(f"UPMIX_END: {job.name} status=failed")
                self.queue.set_status(index, FileStatus.FAILED, error_message=str(e))
                self._handle_error(e)
                return OUTCOME_ABORTED

            self.status.set_progress((index + 1) / total)

        return OUTCOME_COMPLETED

    def _upmix_file(self, index: int, job: AudioFile, input_path: Path):
        self.queue.set_status(index, FileStatus.PROCESSING, message=f"Upmixing {job.name}...")
        self.logger.info(f"UPMIX_START: {job.name}")
        start_time = time.monotonic()

        output_path = self.runner.convert(job, input_path, self.status.output_directory, self._cancel_event)

        self.queue.set_status(index, FileStatus.UPMIXED, output_path=output_path)
        elapsed = time.monotonic() - start_time
        self.logger.info(f"UPMIX_END: {job.name} status=upmixed output={output_path.name} elapsed={elapsed:.2f}s")

    def _handle_cancellation(self, start_index: int):
        for index in range(start_index, len(self.queue)):
            self.queue.set_status(index, FileStatus.CANCELLED)
        self.status.set_status("Upmix operation cancelled.")
        self.status.set_progress(1.0)
        self.logger.info(f"RUN_CANCELLED: {len(self.queue) - start_index} file(s) cancelled")

    def _handle_error(self, error: Exception):
        self.logger.error(f"ERROR: {error}")
        self.status.report_error(error)
