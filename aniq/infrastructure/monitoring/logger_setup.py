"""Logging configuration for aniq.

Log records go to stderr so they never interleave with the quiz rendered on
stdout. An optional rotating file handler keeps a longer trace, which is
where the rate governor's DEBUG budget updates are most useful.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

# httpx logs every request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore")


def _file_handler(log_file: str) -> RotatingFileHandler:
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding='utf-8')


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = None
) -> None:
    """Replaces the root logger's handlers with aniq's.

    Args:
        log_level: Minimum level for aniq's own loggers.
        log_format: Format string shared by all handlers.
        log_file: Optional path (``~`` allowed) of a rotating log file.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = [logging.StreamHandler(sys.stderr)]
    file_error: Optional[OSError] = None
    if log_file:
        try:
            handlers.append(_file_handler(log_file))
        except OSError as e:
            file_error = e

    formatter = logging.Formatter(log_format)
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    if file_error is not None:
        logging.error(f"Could not open log file {log_file}: {file_error}")
    logging.debug(f"Logging configured. Level={logging.getLevelName(log_level)}, file={log_file or '-'}")
