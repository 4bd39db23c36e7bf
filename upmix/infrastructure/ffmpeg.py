import subprocess
import shutil
import logging
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple
from upmix.domain.errors import ProcessFailed

# Stereo -> 5.1(side): fronts pass through, centre and LFE are mixed from both
# channels, sides take half of their own front.
PAN_FILTER = "[0:a]pan=5.1(side)|FL=FL|FR=FR|FC=0.5*FL+0.5*FR|LFE=0.1*FL+0.1*FR|SL=0.5*FL|SR=0.5*FR"

class FFmpegAdapter:
    """Wrapper around ffmpeg for stereo to 5.1 upmixing."""

    def __init__(self, binary: Optional[str] = None, poll_interval_s: float = 0.1, kill_timeout_s: float = 3.0):
        self.binary = binary
        self.poll_interval_s = poll_interval_s
        self.kill_timeout_s = kill_timeout_s
        self.logger = logging.getLogger(__name__)
        self._process: Optional[subprocess.Popen] = None
        self._process_lock = threading.Lock()

    def locate(self) -> Optional[str]:
        """Returns the encoder executable path, or None if it cannot be found."""
        return shutil.which(self.binary or "ffmpeg")

    @staticmethod
    def build_filter() -> str:
        return PAN_FILTER

    def build_command(self, encoder: str, input_path: Path, output_path: Path, codec: str = "flac") -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        return [
            encoder,
            "-i", str(input_path),
            "-vn",
            "-filter_complex", self.build_filter(),
            "-c:a", codec,
            "-y",  # Overwrite output files
            str(output_path),
        ]

    @property
    def is_running(self) -> bool:
        with self._process_lock:
            return self._process is not None

    def terminate(self) -> None:
        """Asks the in-flight encoder (if any) to stop. Safe to call from any thread."""
        with self._process_lock:
            process = self._process
        if process is None:
            return
        try:
            process.terminate()
        except OSError as e:
            # Already exited between the check and the signal
            self.logger.debug(f"FFMPEG_TERMINATE: ignored ({e})")

    def execute(self, cmd: List[str], cancel_event: Optional[threading.Event] = None) -> Tuple[int, str]:
        """Runs ffmpeg to completion and returns (returncode, stderr).

        Blocks the calling thread. If cancel_event gets set the process is
        terminated, then killed once kill_timeout_s has elapsed.
        """
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",  # filenames and tags may not be UTF-8
            )
        except OSError as e:
            raise ProcessFailed(str(e)) from e

        with self._process_lock:
            self._process = process

        stop_requested_at: Optional[float] = None
        try:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    if stop_requested_at is None:
                        stop_requested_at = time.monotonic()
                        process.terminate()
                    elif time.monotonic() - stop_requested_at >= self.kill_timeout_s:
                        self.logger.info(f"FFMPEG_KILL: no exit {self.kill_timeout_s:.1f}s after terminate")
                        process.kill()
                try:
                    _, stderr = process.communicate(timeout=self.poll_interval_s)
                    break
                except subprocess.TimeoutExpired:
                    continue
        finally:
            with self._process_lock:
                self._process = None

        return process.returncode, stderr or ""
