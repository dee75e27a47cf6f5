"""
Logging setup for the Tea Trade backend

Records from the standard ``logging`` module and from structlog loggers go
through the same structlog processor chain and come out as one JSON line
with the business-timezone timestamp and the correlation id of the request
that produced it. Structured payloads go in ``extra={"meta": {...}}`` (or
``meta=`` on a structlog logger) and have sensitive keys redacted before
they are written.
"""
import logging
import time
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

import structlog

SENSITIVE_FIELDS = frozenset({"userCognitoId", "email", "phoneNumber", "password", "token"})
REDACTED = "[REDACTED]"
NO_REQUEST_ID = "-"


def redact_sensitive_data(data: Any) -> Any:
    """Return a copy of ``data`` with sensitive keys replaced, at any depth"""
    if isinstance(data, list):
        return [redact_sensitive_data(item) for item in data]
    if not isinstance(data, dict):
        return data

    redacted = {}
    for key, value in data.items():
        if key in SENSITIVE_FIELDS:
            redacted[key] = REDACTED
        else:
            redacted[key] = redact_sensitive_data(value)
    return redacted


def redact_meta(logger, method_name: str, event_dict: dict) -> dict:
    if "meta" in event_dict:
        event_dict["meta"] = redact_sensitive_data(event_dict["meta"])
    return event_dict


def default_request_id(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("request_id", NO_REQUEST_ID)
    return event_dict


def rename_exception(logger, method_name: str, event_dict: dict) -> dict:
    """Expose the formatted traceback as ``stack``"""
    if "exception" in event_dict:
        event_dict["stack"] = event_dict.pop("exception")
    return event_dict


class BusinessTimeStamper:
    """
    Stamp events with an ISO timestamp in a fixed IANA timezone

    Uses the creation time of the stdlib record when there is one, so the
    timestamp reflects when the event happened rather than when it was
    rendered.
    """

    def __init__(self, timezone: str = "Africa/Nairobi"):
        self.tz = ZoneInfo(timezone)

    def __call__(self, logger, method_name: str, event_dict: dict) -> dict:
        record = event_dict.get("_record")
        created = record.created if record is not None else time.time()
        event_dict["timestamp"] = datetime.fromtimestamp(created, tz=self.tz).isoformat()
        return event_dict


def shared_processors(timezone: str) -> list:
    """Processors applied to every event before rendering"""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        BusinessTimeStamper(timezone),
        default_request_id,
        redact_meta,
    ]


def build_formatter(timezone: str = "Africa/Nairobi") -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[structlog.stdlib.ExtraAdder(allow=("meta",))] + shared_processors(timezone),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            rename_exception,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(default=str),
        ],
    )


def configure_logging(level: str = "INFO", timezone: str = "Africa/Nairobi",
                      handler: Optional[logging.Handler] = None) -> logging.Handler:
    """
    Install the JSON handler on the ``teatrade`` logger tree and route
    structlog loggers through it.

    Safe to call more than once: a previously installed handler is replaced.

    Returns:
        The handler that was installed (useful for tests)
    """
    structlog.configure(
        processors=shared_processors(timezone) + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger("teatrade")
    for existing in list(root.handlers):
        if getattr(existing, "_teatrade_handler", False):
            root.removeHandler(existing)

    handler = handler or logging.StreamHandler()
    handler._teatrade_handler = True
    handler.setFormatter(build_formatter(timezone))

    root.addHandler(handler)
    root.setLevel(level.upper())
    return handler
