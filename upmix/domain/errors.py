"""
Errors raised by the upmix pipeline.

Infrastructure raises these; the orchestrator turns them into status updates.
"""

from pathlib import Path
from typing import Optional, Union


class UpmixError(Exception):
    """Base exception for upmix failures."""

    pass


class NotReady(UpmixError):
    """Run preconditions are not met."""

    pass


class EncoderNotFound(NotReady):
    """The ffmpeg executable could not be located."""

    def __init__(self, message: str = "FFmpeg executable not found."):
        super().__init__(message)


class Busy(UpmixError):
    """The queue cannot be modified while a run is active."""

    def __init__(self, message: str = "Cannot modify the queue while upmixing."):
        super().__init__(message)


class PermissionDenied(UpmixError):
    """A file or directory could not be scoped for access."""

    def __init__(self, path: Union[str, Path], message: Optional[str] = None):
        self.path = Path(path)
        super().__init__(message or f"Could not access {self.path}")


class ProcessFailed(UpmixError):
    """The encoder could not be launched or exited with an error."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"The upmix operation failed: {detail}")


class OperationCancelled(UpmixError):
    """The encoder was stopped because the run was cancelled."""

    def __init__(self, message: str = "The upmix operation was cancelled."):
        super().__init__(message)
