"""Tagalyst - persistent highlights and annotations for chat transcripts.

Maps text selections inside a host-owned, regenerating transcript document
to stable character offsets, and rebuilds highlight overlays from those
offsets without touching the host's node structure.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

__version__ = "0.1.0"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def setup_logging(
    log_dir: Path | None = None, *, console_level: int = logging.INFO
) -> Path:
    """Send ``tagalyst.*`` records to a rotating file and the console.

    Host pages embedding the engine call this once at startup. Calling it
    again replaces the handlers it installed earlier rather than stacking
    new ones. The host's own root logger configuration is left alone.

    Args:
        log_dir: Directory for the log file. Defaults to ``app.log_dir``.
        console_level: Threshold for the console handler.

    Returns:
        Path of the log file being written.
    """
    if log_dir is None:
        from tagalyst.config import get_settings

        log_dir = get_settings().app.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"tagalyst.{os.getpid()}.log"

    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(logging.DEBUG)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_tagalyst", False):
            package_logger.removeHandler(handler)
            handler.close()

    # 10MB per file, five backups
    file_handler = RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    for handler in (file_handler, console_handler):
        handler._tagalyst = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)

    package_logger.debug("Logging to %s", log_file.absolute())
    return log_file
