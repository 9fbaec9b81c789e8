"""
Logging setup for heat load runs.

Interactive runs log to stderr, colored while developing. Batch runs can
also keep a rotating file, one JSON object per record, carrying the
resolution or unit being processed.
"""

import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from heatload.core.config import get_settings

# Attributes every LogRecord has; anything else came in through ``extra``
# or a LogContext
_STANDARD_FIELDS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("rasterio", "fiona", "pyogrio")


class JSONFormatter(logging.Formatter):
    """Render a record and its run fields as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        entry.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_FIELDS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def get_log_level(level_name: str) -> int:
    """Map a level name (any case) to its number, defaulting to INFO."""
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    json_logs: bool = False,
    enable_console: bool = True,
) -> None:
    """
    Configure the root logger for a run.

    Stdout is left to the run summary, so the console handler writes to
    stderr.

    Args:
        log_level: Level name; defaults to the settings, then DEBUG in
            development and INFO elsewhere
        log_file: Rotating log file to add
        json_logs: Write the log file as JSON lines
        enable_console: Attach the stderr handler
    """
    settings = get_settings()
    if log_level is None:
        log_level = settings.log_level or (
            "DEBUG" if settings.environment == "development" else "INFO"
        )
    level = get_log_level(log_level)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        if settings.environment == "development":
            console.setFormatter(
                ColoredFormatter("%(levelname)s | %(asctime)s | %(name)s | %(message)s", _DATE_FORMAT)
            )
        else:
            console.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", _DATE_FORMAT)
            )
        root.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        if json_logs:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s %(levelname)s %(name)s:%(lineno)d: %(message)s", _DATE_FORMAT
                )
            )
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        f"Logging at {logging.getLevelName(level)} "
        f"({settings.environment}, file={log_file or 'none'}, json={json_logs})"
    )


class LogContext:
    """
    Tag every record created inside the block with extra fields.

    Usage:
        with LogContext(resolution="25m"):
            logger.info("Classifying")
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._previous: Optional[Any] = None

    def __enter__(self) -> "LogContext":
        previous = self._previous = logging.getLogRecordFactory()
        fields = self.fields

        def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            record.__dict__.update(fields)
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._previous is not None:
            logging.setLogRecordFactory(self._previous)
