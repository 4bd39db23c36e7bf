import logging
from pathlib import Path
from typing import Optional

LOG_FILENAME = "upmix.log"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def resolve_log_file(output_dir: Path, log_path: Optional[Path] = None) -> Path:
    """Default log file lives next to the upmixed files."""
    return Path(log_path) if log_path else output_dir / LOG_FILENAME


def setup_logging(output_dir: Path, debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Route all upmix logging into a single file.

    The output directory is never created here: it must already exist (it is
    validated when the run's output token is created). Only the parent of an
    explicit log_path is created on demand.

    Args:
        output_dir: Existing output directory that receives upmix.log
        debug: If True, enable DEBUG level logging with encoder command lines
        log_path: Optional log file location (replaces output_dir/upmix.log)
    """
    log_file = resolve_log_file(output_dir, log_path)
    if log_path:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(log_file)],
        force=True
    )

    logger = logging.getLogger(__name__)
    logger.info(f"LOG_INIT: {log_file} debug={'on' if debug else 'off'}")
    return logger
