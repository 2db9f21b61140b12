from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

# Everything a bare LogRecord carries; anything else on a record came in through `extra=`.
STANDARD_ATTRS = set(logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}

LOGGER_NAME = "pump_token_tracker"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key in STANDARD_ATTRS:
                continue
            data[key] = value
        return json.dumps(data, ensure_ascii=True, default=str)


def setup_logging(level: str, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the service logger: JSON lines on stderr, optionally mirrored to a file."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    formatter = JsonFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handlers = [handler]
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    logger.handlers = handlers
    logger.propagate = False

    logging.getLogger("telegram").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    return logger
