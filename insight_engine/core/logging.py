"""
Structured logging configuration.

Provides JSON logging for production and readable text format for development.
The engine never configures logging on import; host applications call
configure_logging() once at startup.
"""
import os
import sys
import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict

_RESERVED_ATTRS = (
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'pathname', 'process',
    'processName', 'relativeCreated', 'stack_info', 'thread', 'threadName',
    'exc_info', 'exc_text', 'message', 'taskName',
)


class JSONFormatter(logging.Formatter):
    """
    Structured JSON log formatter for production.

    Outputs logs in JSON format with:
    - timestamp
    - level
    - message
    - module
    - extra fields (stage, event, duration, ...)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Readable text formatter for development. Telemetry fields are appended as key=value."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, 'fields', None)
        if fields:
            line += ' ' + ' '.join(f"{key}={value}" for key, value in fields.items())
        return line


def configure_logging(level: str = None) -> None:
    """
    Configure engine logging based on environment.

    Uses INSIGHT_LOG_FORMAT env var:
    - 'json': Structured JSON logging (recommended for production)
    - 'text': Human-readable format (default for development)
    """
    log_format = os.getenv('INSIGHT_LOG_FORMAT', 'text').lower()
    log_level = (level or os.getenv('INSIGHT_LOG_LEVEL', 'INFO')).upper()

    engine_logger = logging.getLogger('insight_engine')
    engine_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for handler in engine_logger.handlers[:]:
        engine_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    engine_logger.addHandler(handler)
    engine_logger.propagate = False

    if log_format == 'json':
        engine_logger.info("Structured JSON logging enabled")
