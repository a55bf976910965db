"""
Logging for the tracker service.

Every record carries two pieces of request context, both held in
contextvars so services never pass them around:

- ``request_id``: set by ``RequestIdMiddleware`` for the whole request
- ``principal``: ``user:<id>`` or ``agent:<key id>``, bound once the
  credential has been resolved, ``-`` before that

Production emits one JSON object per line; development a compact text line.

Usage:
    from tracker.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Status changed", extra={"item_id": str(item.id)})
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Optional

from tracker.kernel.principal import AgentPrincipal, Principal

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
principal_var: ContextVar[Optional[str]] = ContextVar("principal", default=None)

UNSET = "-"

# LogRecord attributes that are not caller-supplied extras
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "request_id",
    "principal",
}


def principal_label(principal: Optional[Principal]) -> Optional[str]:
    """Short log label for a principal; agents by key id, people by user id."""
    if principal is None:
        return None
    if isinstance(principal, AgentPrincipal):
        return f"agent:{principal.key_id.hex}"
    return f"user:{principal.user_id.hex}"


def bind_principal(principal: Optional[Principal]) -> Token:
    """Attach the resolved principal to every record logged from here on."""
    return principal_var.set(principal_label(principal))


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and principal."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or UNSET  # type: ignore[attr-defined]
        record.principal = principal_var.get() or UNSET  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, context first, then any ``extra=`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "principal"):
            value = getattr(record, key, UNSET)
            if value != UNSET:
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or value is None:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            entry[key] = value

        return json.dumps(entry)


DEV_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s by=%(principal)s %(message)s"


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        log_level: Level name; unknown names fall back to INFO
        environment: ``production`` selects JSON output
        debug: Forces DEBUG regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    if environment == "production":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
