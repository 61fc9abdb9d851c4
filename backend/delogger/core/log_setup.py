import json
import logging
import sys
from datetime import datetime, timezone
from functools import lru_cache

from . import config

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Одна строка лога = один JSON-объект."""

    def format(self, record: logging.LogRecord) -> str:
        rec = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            rec["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(rec, ensure_ascii=False)


def build_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))
    return handler


@lru_cache(maxsize=1)
def configure_logging() -> None:
    """Настраивает root-логгер по LOG_LEVEL / LOG_FORMAT (один раз на процесс)."""
    level = getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(level=level, handlers=[build_handler(config.LOG_FORMAT)], force=True)

    logging.getLogger("delogger").setLevel(level)
    # шумные сторонние логгеры
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
