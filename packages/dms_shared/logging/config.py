"""Root logger setup for DMS processes.

Every process writes to stdout through one handler. Records pick up the
fields bound with ``bind_context``/``log_context`` and render either as one
JSON object per line or as ``key=value`` pairs after a plain message.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from . import fields
from .context import bind_context, get_context

# Client libraries that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")


class ContextFilter(logging.Filter):
    """Attach the bound fields to each record as ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = get_context()
        return True


def _bound_fields(record: logging.LogRecord) -> dict[str, str]:
    bound = getattr(record, "context", None)
    return bound if isinstance(bound, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; bound fields sit beside the core keys."""

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, object] = {
            fields.TIMESTAMP: datetime.fromtimestamp(record.created, UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
            **_bound_fields(record),
        }
        if record.exc_info:
            document[fields.EXCEPTION] = self.formatException(record.exc_info)
        return json.dumps(document, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Timestamped text line followed by sorted ``key=value`` fields."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-7s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = _bound_fields(record)
        if extra:
            line += " " + " ".join(f"{k}={extra[k]}" for k in sorted(extra))
        return line


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
    environment: str | None = None,
) -> None:
    """Install the stdout handler on the root logger.

    Calling this again replaces the previous handler.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    bind_context(**{fields.SERVICE: service, fields.ENVIRONMENT: environment})


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)
