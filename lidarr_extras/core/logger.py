"""Logging setup shared by every module."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from lidarr_extras.config import env

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CustomLogger(logging.Logger):
    """Logger with helpers that attach the active traceback."""

    def error_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log an error together with the current exception's stack trace."""
        kwargs.setdefault("exc_info", True)
        self.error(msg, *args, **kwargs)

    def warning_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log a warning with the stack trace only when running in debug mode."""
        if env.DEBUG:
            kwargs.setdefault("exc_info", True)
        self.warning(msg, *args, **kwargs)


logging.setLoggerClass(CustomLogger)


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str, log_file: Optional[Path] = None) -> CustomLogger:
    """Return a configured logger for ``name``.

    Handlers are attached once per logger name, so repeated calls at import
    time are harmless.
    """
    logger = logging.getLogger(name)
    if not isinstance(logger, CustomLogger):
        # Created before our logger class was installed (e.g. by a dependency)
        logger.__class__ = CustomLogger

    logger.setLevel(_resolve_level(env.LOG_LEVEL))
    logger.propagate = False

    if logger.handlers:
        return logger  # type: ignore[return-value]

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file = log_file or (env.LOG_FILE if env.ENABLE_LOGGING else None)
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")

    return logger  # type: ignore[return-value]
