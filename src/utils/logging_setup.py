"""
Logging configuration for the Map Workbench engine.

Development runs log plain text to stdout; production runs log one JSON object
per line so the output can be shipped to a log collector. Either may also write
to a rotating file per environment.
"""

import functools
import inspect
import json
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional

LOG_FILE_TEMPLATE = "workbench_{environment}.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Libraries whose INFO/DEBUG chatter drowns out engine messages
QUIET_LOGGERS = ("shapely", "tenacity", "asyncio")

# LogRecord attributes that are not user-supplied ``extra`` fields
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime", "taskName"
}


class JSONFormatter(logging.Formatter):
    """Formats records as single-line JSON, including any ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        entry.update({
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        })
        return json.dumps(entry, default=str)


def _build_formatter(environment: str) -> logging.Formatter:
    if environment == "production":
        return JSONFormatter(datefmt='%Y-%m-%d %H:%M:%S')
    return logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')


def setup_logging(environment: str = "development",
                  log_level: str = "INFO",
                  log_dir: Optional[str] = None) -> None:
    """
    Configure the root logger for an engine run.

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.

    Args:
        environment: Environment name (development/production)
        log_level: Logging level name (DEBUG/INFO/WARNING/ERROR)
        log_dir: Directory for the rotating log file; no file is written when None

    Raises:
        AttributeError: If ``log_level`` is not a logging level name
    """
    level = getattr(logging, log_level.upper())
    formatter = _build_formatter(environment)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path / LOG_FILE_TEMPLATE.format(environment=environment),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)


def log_performance(func):
    """
    Decorator that logs how long a call took, or how long it ran before failing.

    Coroutine functions are wrapped with a coroutine so the timing covers the
    awaited work rather than coroutine creation.
    """
    logger = get_logger(func.__module__)

    def _completed(start: float) -> None:
        logger.info(f"Completed {func.__name__} in {time.perf_counter() - start:.3f}s")

    def _failed(start: float, error: Exception) -> None:
        logger.error(f"Failed {func.__name__} after {time.perf_counter() - start:.3f}s: {error}")

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            logger.debug(f"Starting {func.__name__}")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _failed(start, e)
                raise
            _completed(start)
            return result

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        logger.debug(f"Starting {func.__name__}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _failed(start, e)
            raise
        _completed(start)
        return result

    return wrapper
