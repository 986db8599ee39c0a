"""
Log setup for the API process.

A single stdout handler on the root logger: JSON lines in production or when
LOG_FORMAT=json, plain text otherwise. Structured context is passed as
extra={"extra_fields": {...}} and merged into the JSON object.
"""
import json
import logging
import sys
from datetime import datetime, timezone

from core.config import settings

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# log every query / request at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "openai")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, "extra_fields", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def wants_json() -> bool:
    return settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production"


def setup_logging() -> logging.Logger:
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if wants_json() else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root
