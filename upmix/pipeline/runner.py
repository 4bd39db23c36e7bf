import logging
import threading
from pathlib import Path
from typing import Optional
from upmix.config.models import GeneralConfig
from upmix.domain.errors import EncoderNotFound, OperationCancelled, PermissionDenied, ProcessFailed
from upmix.domain.models import AudioFile, ResourceToken
from upmix.infrastructure.ffmpeg import FFmpegAdapter
from upmix.infrastructure.resources import ResourceHandle

class ConversionRunner:
    """Upmixes one file with ffmpeg and classifies the outcome."""

    def __init__(self, ffmpeg_adapter: FFmpegAdapter, resources: ResourceHandle, config: GeneralConfig):
        self.ffmpeg_adapter = ffmpeg_adapter
        self.resources = resources
        self.config = config
        self.logger = logging.getLogger(__name__)

    def output_name(self, job: AudioFile) -> str:
        return f"{job.token.original_path.stem}_5.1.{self.config.output_extension}"

    def convert(
        self,
        job: AudioFile,
        input_path: Path,
        output_dir: Optional[ResourceToken],
        cancel_event: threading.Event,
    ) -> Path:
        """Writes <stem>_5.1.<ext> into the output directory and returns its path.

        Raises OperationCancelled when ffmpeg fails after cancellation was
        requested, ProcessFailed for any other launch or exit failure.
        """
        encoder = self.ffmpeg_adapter.locate()
        if encoder is None:
            raise EncoderNotFound()
        if output_dir is None:
            raise ProcessFailed("Output directory not set.")

        def _run(resolved_dir: Path) -> Path:
            output_path = resolved_dir / self.output_name(job)
            cmd = self.ffmpeg_adapter.build_command(encoder, input_path, output_path, codec=self.config.codec)
            returncode, stderr = self.ffmpeg_adapter.execute(cmd, cancel_event=cancel_event)
            if returncode == 0:
                return output_path
            if cancel_event.is_set():
                raise OperationCancelled()
            self.logger.debug(f"FFMPEG_STDERR: {job.name}\n{stderr}")
            raise ProcessFailed(stderr.strip() or f"ffmpeg exited with code {returncode}")

        try:
            return self.resources.with_scope(output_dir, _run)
        except PermissionDenied as e:
            raise ProcessFailed("Could not access output directory.") from e
