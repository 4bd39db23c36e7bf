import logging
import threading
from typing import Any, Dict, Optional, Union
from upmix.domain.events import ErrorReported, ProgressUpdated, StatusMessageChanged
from upmix.domain.models import ResourceToken
from upmix.infrastructure.event_bus import EventBus

READY = "Ready"
ERROR_STATUS = "An error occurred."

class StatusReporter:
    """Thread-safe run state published to the EventBus.

    Holds no business logic: the orchestrator writes, presentation layers read
    (directly or through the published events).
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)
        self._lock = threading.RLock()

        self.is_running = False
        self.progress = 0.0
        self.status = READY
        self.error_message: Optional[str] = None
        self.output_directory: Optional[ResourceToken] = None

    def begin_run(self):
        with self._lock:
            self.is_running = True
        self.reset()

    def end_run(self):
        with self._lock:
            self.is_running = False

    def reset(self):
        """Back to defaults: progress 0.0, status "Ready", no error."""
        with self._lock:
            self.progress = 0.0
            self.error_message = None
        self.set_status(READY)

    def set_progress(self, value: float):
        value = min(1.0, max(0.0, value))
        with self._lock:
            if value <= self.progress:
                if value < self.progress:
                    self.logger.debug(f"PROGRESS_IGNORED: {value:.3f} < {self.progress:.3f}")
                return
            self.progress = value
        self.event_bus.publish(ProgressUpdated(progress=value))

    def set_status(self, message: str):
        with self._lock:
            self.status = message
        self.event_bus.publish(StatusMessageChanged(message=message))

    def report_error(self, error: Union[Exception, str]):
        message = str(error)
        with self._lock:
            self.error_message = message
        self.event_bus.publish(ErrorReported(message=message))
        self.set_status(ERROR_STATUS)

    def set_output_directory(self, token: Optional[ResourceToken]):
        with self._lock:
            self.output_directory = token

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "is_running": self.is_running,
                "progress": self.progress,
                "status": self.status,
                "error_message": self.error_message,
                "output_directory": self.output_directory.original_path if self.output_directory else None,
            }
