"""Domain events for the upmix pipeline.

Events describe every observable change of the run: queue membership, per-file
status, overall progress, the status line and errors. The orchestrator publishes
them on the EventBus; presentation layers subscribe instead of polling.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from typing import List
from pydantic import BaseModel
from .models import AudioFile


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class QueueUpdated(Event):
    """Emitted when files are added to or cleared from the queue."""

    files: List[AudioFile]


class JobStatusChanged(Event):
    """Emitted whenever a queued file moves to a new status."""

    job: AudioFile
    index: int


class ProgressUpdated(Event):
    """Emitted when overall run progress (0.0-1.0) changes."""

    progress: float


class StatusMessageChanged(Event):
    message: str


class ErrorReported(Event):
    """Emitted when an error is recorded on the status surface."""

    message: str


class RunStarted(Event):
    """Emitted once per run, before the worker thread is launched."""

    total: int


class RunFinished(Event):
    """Emitted when the run loop exits.

    outcome is one of "completed", "cancelled" or "aborted".
    """

    outcome: str
