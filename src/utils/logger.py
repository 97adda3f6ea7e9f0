"""
Logging Module for the CLOB Auth Manager

Provides structured logging with:
- Rotating file handler
- JSON formatting for log aggregation
- Plain text console output for operators

Secrets never go into a log record unmasked; use utils.helpers.mask().

Usage:
    logger = get_logger(__name__)
    logger.info("Derived creds ready", extra={'context_key': '2:0xabc...'})
"""

import logging
import logging.handlers
import os
import sys
import json
from datetime import datetime, timezone
from typing import Optional

from config.constants import (
    LOG_LEVEL,
    LOG_FILE_PATH,
    MAX_LOG_FILE_SIZE,
    LOG_BACKUP_COUNT,
    STRUCTURED_LOGGING,
)


_RESERVED_RECORD_KEYS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'getMessage', 'taskName'  # Python 3.12+
])


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs"""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.
        Fields passed via extra={...} are copied when JSON-friendly.
        """
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line_number': record.lineno,
            'process_id': record.process,
        }

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            if isinstance(value, (str, int, float, bool, type(None), dict, list)):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class PlainTextFormatter(logging.Formatter):
    """Simple text formatter for readable console output"""

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.datefmt)
        line = (
            f"{record.asctime} | {record.levelname:8} | "
            f"{record.name}:{record.funcName}:{record.lineno} | "
            f"{record.getMessage()}"
        )
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    structured: Optional[bool] = None
) -> None:
    """
    Configure logging for the process.

    Sets up:
    - Console handler: Plain text for operator visibility
    - File handler: Rotating files, JSON when structured

    Args:
        log_level: Logging level override. If None, uses LOG_LEVEL
        log_file: Log file path override. If None, uses LOG_FILE_PATH.
                  Pass an empty string to disable the file handler.
        structured: Use JSON formatting for the file handler

    Raises:
        ValueError: If invalid log level specified
    """
    level = (log_level or LOG_LEVEL).upper()
    filepath = LOG_FILE_PATH if log_file is None else log_file
    use_json = structured if structured is not None else STRUCTURED_LOGGING

    valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
    if level not in valid_levels:
        raise ValueError(f"Invalid log level: {level}. Must be one of {valid_levels}")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level))
    console_handler.setFormatter(PlainTextFormatter(datefmt='%Y-%m-%d %H:%M:%S'))
    root_logger.addHandler(console_handler)

    if filepath:
        log_dir = os.path.dirname(filepath)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filepath,
            maxBytes=MAX_LOG_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT
        )
        file_handler.setLevel(getattr(logging, level))
        if use_json:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(PlainTextFormatter(datefmt='%Y-%m-%d %H:%M:%S'))
        root_logger.addHandler(file_handler)

    get_logger(__name__).debug(
        "Logging initialized",
        extra={
            'log_level': level,
            'log_file': filepath,
            'structured_logging': use_json,
        }
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ from calling module)
    """
    return logging.getLogger(name)


def log_auth_event(
    logger: logging.Logger,
    event_type: str,
    **details
) -> None:
    """
    Log an authentication lifecycle event with structured information.

    Example:
        log_auth_event(logger, 'CREDS_DERIVED', context_key='2:0xabc', reason='401')
    """
    details['event_type'] = event_type
    logger.info(f"Auth event: {event_type}", extra=details)


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    error: Exception,
    **context
) -> None:
    """
    Log an error with full context and exception details.

    Example:
        except PermanentDeriveRefusal as e:
            log_error_with_context(logger, "Derive refused", e, context_key=ctx)
    """
    context['error_type'] = type(error).__name__
    context['error_message'] = str(error)
    logger.error(message, exc_info=error, extra=context)
