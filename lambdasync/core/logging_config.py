"""
Logging Configuration

Provides:
- JsonFormatter: one JSON object per record, extra fields included
- setup_logging: configure the lambdasync logger tree via dictConfig
"""

import json
import logging
import logging.config
from datetime import datetime, timezone

_STANDARD_ATTRS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """
    JSON Formatter for machine-read CI logs.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level: Log level
      - logger: Logger name (e.g. lambdasync.apply)
      - message: Log message
      - any extra= fields such as function_name and phase
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "_time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def build_logging_config(level: str = "INFO", fmt: str = "text") -> dict:
    if fmt not in ("text", "json"):
        raise ValueError(f"unknown log format: {fmt!r} (expected text or json)")

    formatter = (
        {"()": f"{__name__}.JsonFormatter"} if fmt == "json" else {"format": TEXT_FORMAT}
    )
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {
            "lambdasync": {"level": level.upper(), "handlers": ["stderr"], "propagate": False},
            "botocore": {"level": "WARNING"},
            "boto3": {"level": "WARNING"},
        },
    }


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Initialize logging for a CLI run."""
    logging.config.dictConfig(build_logging_config(level, fmt))
