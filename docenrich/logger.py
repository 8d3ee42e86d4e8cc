"""
Structured Logging for docenrich.
Outputs JSON-formatted logs for machine readability and observability.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Configure package logger
logger = logging.getLogger("docenrich")
logger.setLevel(os.getenv("DOCENRICH_LOG_LEVEL", "INFO").upper())
handler = logging.StreamHandler(sys.stdout)
logger.addHandler(handler)


class JsonFormatter(logging.Formatter):
    """JSON formatter that dynamically extracts all extra fields."""

    # Standard LogRecord attributes to exclude (these are Python logging internals)
    STANDARD_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
        'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
        'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
        'exc_text', 'stack_info', 'asctime', 'taskName'
    }

    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }

        for key, value in record.__dict__.items():
            if key not in self.STANDARD_ATTRS and not key.startswith('_'):
                try:
                    json.dumps(value)
                    log_record[key] = value
                except (TypeError, ValueError):
                    # Non-serializable (datetimes, exceptions) - convert to string
                    log_record[key] = str(value)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


handler.setFormatter(JsonFormatter())


def get_logger(component: str = "docenrich"):
    return ComponentLogger(component)


class ComponentLogger:
    """Thin wrapper that turns keyword arguments into structured log fields."""

    def __init__(self, component):
        self.component = component
        self.logger = logging.getLogger("docenrich")

    def _extra(self, kwargs):
        extra = {"component": self.component}
        extra.update(kwargs)
        return extra

    def debug(self, msg, **kwargs):
        self.logger.debug(msg, extra=self._extra(kwargs))

    def info(self, msg, **kwargs):
        self.logger.info(msg, extra=self._extra(kwargs))

    def warning(self, msg, **kwargs):
        self.logger.warning(msg, extra=self._extra(kwargs))

    def error(self, msg, exc_info=False, **kwargs):
        self.logger.error(msg, exc_info=exc_info, extra=self._extra(kwargs))
