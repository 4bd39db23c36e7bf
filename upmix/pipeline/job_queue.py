import threading
from pathlib import Path
from typing import List, Optional
from upmix.domain.errors import Busy
from upmix.domain.events import JobStatusChanged, QueueUpdated
from upmix.domain.models import AudioFile, FileStatus, ResourceToken
from upmix.infrastructure.event_bus import EventBus
from upmix.pipeline.status import StatusReporter

class JobQueue:
    """Ordered, de-duplicated list of files to upmix.

    Membership is frozen while a run is active; only statuses change then.
    """

    def __init__(self, status: StatusReporter, event_bus: EventBus):
        self.status = status
        self.event_bus = event_bus
        self._files: List[AudioFile] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)

    def __getitem__(self, index: int) -> AudioFile:
        with self._lock:
            return self._files[index]

    def snapshot(self) -> List[AudioFile]:
        with self._lock:
            return list(self._files)

    def add(self, token: ResourceToken) -> Optional[AudioFile]:
        """Appends a pending job; returns None if the path is already queued."""
        with self._lock:
            if self.status.is_running:
                raise Busy()
            if any(f.token.same_resource(token) for f in self._files):
                return None
            job = AudioFile(token=token)
            self._files.append(job)
            files = list(self._files)
        self.event_bus.publish(QueueUpdated(files=files))
        return job

    def clear(self):
        with self._lock:
            if self.status.is_running:
                raise Busy()
            self._files.clear()
        self.event_bus.publish(QueueUpdated(files=[]))
        self.status.reset()

    def set_status(
        self,
        index: int,
        status: FileStatus,
        message: Optional[str] = None,
        error_message: Optional[str] = None,
        output_path: Optional[Path] = None,
    ):
        with self._lock:
            if not 0 <= index < len(self._files):
                return
            job = self._files[index]
            job.status = status
            if error_message is not None:
                job.error_message = error_message
            if output_path is not None:
                job.output_path = output_path
        self.event_bus.publish(JobStatusChanged(job=job, index=index))
        if message is not None:
            self.status.set_status(message)
