"""
Logging configuration.

Text format for development, one JSON object per line when LOG_FORMAT=json.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone

from isodoc.core.config import get_settings

NOISY_LOGGERS = ("googleapiclient.discovery_cache", "googleapiclient.discovery", "sqlalchemy.engine", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in ("tenant_id", "user_id", "document_id", "method", "path", "status"):
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging():
    settings = get_settings()
    level = settings.LOG_LEVEL.upper()
    formatter = "json" if settings.LOG_FORMAT.lower() == "json" else "text"

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    })

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
