"""
Structured logging for dataspine.

Data-access code only emits ``debug`` events: executed SQL, in-memory scans,
eager loads, cascade steps and transaction boundaries. Errors are raised to
the caller and never logged-and-swallowed here. Applications decide where
the events go by calling :func:`configure_logging` once at startup:

    >>> from dataspine.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", service="reports-api")
    >>> logger = get_logger(__name__)
    >>> logger.debug("sql.execute", sql="SELECT 1", params={})

Event fields:
    ``sql``     whitespace-collapsed statement text
    ``params``  bound values, long strings shortened
    ``table`` / ``collection`` / ``relation`` / ``keys`` / ``matched``

Output is JSON (``@timestamp``, ``log.level``, ``service.name``) when stdout
is not a TTY, coloured console output otherwise.

Tags:
    logging, structlog, observability, dataspine
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from dataspine.settings import DataSpineSettings

_SERVICE_NAME = "dataspine"

# Bound string values longer than this are shortened in log output
MAX_PARAM_LENGTH = 200

_WHITESPACE = re.compile(r"\s+")


def _service_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _compact_statement(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Collapse SQL whitespace and shorten oversized parameter values."""
    sql = event_dict.get("sql")
    if isinstance(sql, str):
        event_dict["sql"] = _WHITESPACE.sub(" ", sql).strip()

    params = event_dict.get("params")
    if isinstance(params, dict):
        event_dict["params"] = {key: _shorten(value) for key, value in params.items()}
    return event_dict


def _shorten(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_PARAM_LENGTH:
        return f"{value[:MAX_PARAM_LENGTH]}... ({len(value)} chars)"
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    return value


def _ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "dataspine",
    add_timestamp: bool = True,
) -> None:
    """Route dataspine events through structlog and the stdlib root logger.

    Args:
        level: Minimum level name; dataspine itself only logs at DEBUG
        json_format: True for JSON, False for console, None picks JSON when
                     stdout is not a TTY
        service: Value of the ``service.name`` field
        add_timestamp: Add an ISO ``@timestamp``/``timestamp`` field
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service
    numeric_level = getattr(logging, level.upper())

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _service_name,
        _compact_statement,
        structlog.dev.set_exc_info,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors += [_ecs_field_names, structlog.processors.JSONRenderer(default=str)]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def configure_from_settings(settings: DataSpineSettings) -> None:
    """Apply ``log_level`` and ``json_logs`` from settings."""
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


def get_logger(name: str | None = None) -> Any:
    """Module logger, ``logger = get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach fields to every event logged from this context.

    Example:
        bind_context(request_id="abc123")
        mapper.delete(row)  # cascade events carry request_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` block.

    Example:
        with LogContext(table="articles"):
            mapper.delete(row)
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context)


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    "MAX_PARAM_LENGTH",
]
