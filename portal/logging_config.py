"""
Structured JSON logging configuration.

Request context (request_id, user, endpoint...) is attached by the app
factory's request hooks via `extra=`; the formatter copies it when present.
Raw tokens never reach the logs, only user ids and reason codes.
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from config.settings import AppSettings

LOGGER_NAME = "namhatta"

# Loggers of our own packages that should share the portal handlers
_PACKAGE_LOGGERS = ("portal", "core", "config")


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        for attr in ('request_id', 'user', 'endpoint', 'method', 'status_code',
                     'duration_ms', 'remote_addr', 'error_id'):
            if hasattr(record, attr):
                log_entry[attr] = getattr(record, attr)

        return json.dumps(log_entry)


def configure_logging(settings: AppSettings, app=None):
    """Configure console (and optional rotating file) logging.

    Args:
        settings: LOG_LEVEL, LOG_FORMAT and LOG_FILE come from here
        app: Optional Flask app whose logger will be updated.

    Returns:
        Configured logger instance.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    if settings.log_format == 'json':
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    handlers.append(console_handler)

    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    logger = logging.getLogger(LOGGER_NAME)
    for name in (LOGGER_NAME,) + _PACKAGE_LOGGERS:
        pkg_logger = logging.getLogger(name)
        pkg_logger.setLevel(level)
        pkg_logger.handlers = list(handlers)

    # Sync Flask's logger
    if app is not None:
        app.logger.handlers = list(handlers)
        app.logger.setLevel(level)

    return logger
