"""Logging setup for command-line runs."""

import datetime
import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO", log_dir: Optional[Path | str] = None) -> Optional[Path]:
    """Log to the console and, when log_dir is given, to a timestamped file there.

    Returns the log file path, if any.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_filepath = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        log_filepath = log_dir / f"{timestamp}_takeout_sync.log"
        handlers.append(logging.FileHandler(log_filepath, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # Keep per-request connection chatter out of the run log
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return log_filepath
