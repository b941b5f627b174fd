"""Structured logging setup for cdpwire hosts.

Provides JSON and text logging formats with support for --quiet and --verbose
flags. The library modules only create loggers; handlers are installed here.

Note: Named logging_setup.py to avoid conflicts with Python's built-in logging module.
"""

import sys
import json
import logging
from typing import Optional, Dict, Any, Union
from datetime import datetime


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON for machine-parseable output.

    Example output:
        {"timestamp": "2025-10-24T23:30:00.123Z", "level": "INFO",
         "logger": "cdpwire.transport", "message": "CDP connection established",
         "extra": {"ws_url": "ws://localhost:9222/devtools/page/ABC"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra") and isinstance(record.extra, dict):
            log_data["extra"] = record.extra

        # Add function/line info for DEBUG level
        if record.levelno == logging.DEBUG:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Formats log records as human-readable text.

    Example output:
        2025-10-24 23:30:00 [INFO] cdpwire.transport: CDP connection established
    """

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def resolve_level(
    level: Optional[str] = None, quiet: bool = False, verbose: bool = False
) -> int:
    """Map CLI-style options to a logging level.

    Precedence: quiet (ERROR) > verbose (DEBUG) > level > INFO.
    """
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    if level:
        return getattr(logging, level.upper(), logging.INFO)
    return logging.INFO


def setup_logging(
    format_type: str = "text",
    level: Optional[str] = None,
    quiet: bool = False,
    verbose: bool = False,
) -> None:
    """Configure root logging with the given format and level.

    Args:
        format_type: Output format - "json" or "text" (default: "text")
        level: Logging level name; if None, determined by quiet/verbose flags
        quiet: Suppress all output except errors (sets level to ERROR)
        verbose: Enable debug output (sets level to DEBUG)

    Note:
        If both quiet and verbose are True, quiet takes precedence.
    """
    log_level = resolve_level(level, quiet=quiet, verbose=verbose)

    formatter: Union[JSONFormatter, TextFormatter]
    if format_type == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("cdpwire").setLevel(log_level)
    # websockets logs every frame at DEBUG; keep it quieter than our own output
    logging.getLogger("websockets").setLevel(max(log_level, logging.INFO))


def log_with_context(
    logger: logging.Logger, level: int, message: str, **extra_fields
) -> None:
    """Log message with extra context fields (rendered under "extra" in JSON).

    Example:
        log_with_context(
            logger, logging.INFO, "Resolved target",
            index=0, ws_url="ws://localhost:9222/..."
        )
    """
    if not logger.isEnabledFor(level):
        return
    if extra_fields:
        record = logger.makeRecord(
            logger.name, level, "(log_with_context)", 0, message, (), None
        )
        record.extra = extra_fields
        logger.handle(record)
    else:
        logger.log(level, message)
