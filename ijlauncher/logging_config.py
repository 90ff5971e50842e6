"""Logging setup for the launcher (console plus optional rotating file)."""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: int = logging.INFO,
                      log_file: Optional[Union[str, Path]] = None,
                      max_bytes: int = 2 * 1024 * 1024,
                      backup_count: int = 3) -> logging.Logger:
    """
    Configure the ``ijlauncher`` logger hierarchy.

    Existing handlers on the package logger are replaced so calling this twice
    does not duplicate output.

    Args:
        level: Logging level for the package logger
        log_file: Optional path of a rotating log file
        max_bytes: Rotation size for the log file
        backup_count: Number of rotated files to keep

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("ijlauncher")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
