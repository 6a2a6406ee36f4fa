"""
Structured logging for the hub.

Modules take a logger with ``get_logger(__name__)`` and log snake_case
event names plus key/value fields::

    logger = get_logger(__name__)
    logger.info("execution_started", correlation_id="cmd_1", agent="web-01")

Rendered as JSON when stdout is not a terminal (or when asked to)::

    {"@timestamp": "2026-10-18T10:00:00Z", "log.level": "info",
     "service.name": "relayhub", "logger": "relayhub.execution.tracker",
     "event": "execution_started", "correlation_id": "cmd_1", "agent": "web-01"}

and as coloured key/value lines on a terminal.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_service_name = "relayhub"

# structlog key → ECS field name, applied to JSON output only
_ECS_FIELDS = {"timestamp": "@timestamp", "level": "log.level"}


def _stamp_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service_name)
    return event_dict


def _rename_ecs_fields(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, ecs_key in _ECS_FIELDS.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "relayhub",
    add_timestamp: bool = True,
) -> None:
    """Configure structlog (and the stdlib root logger) for this process.

    Args:
        level: Minimum level name, e.g. ``"INFO"`` or ``"DEBUG"``.
        json_format: JSON lines when True, console rendering when False,
            chosen by whether stdout is a tty when None.
        service: Value of the ``service.name`` field.
        add_timestamp: Prefix every event with an ISO timestamp.
    """
    global _service_name
    _service_name = service
    numeric_level = logging.getLevelNamesMapping()[level.upper()]

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _stamp_service,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors += [
            _rename_ecs_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn logs through the stdlib; keep it on the same stream and level
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger; *name* is bound as the ``logger`` field."""
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger=name)


def bind_context(**fields: Any) -> None:
    """Attach *fields* to every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**fields)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` (or ``async with``) block.

    Example:
        with LogContext(correlation_id="cmd_1", agent="web-01"):
            logger.info("callback_received")
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = fields

    def __enter__(self) -> LogContext:
        bind_context(**self._fields)
        return self

    def __exit__(self, *exc_info: object) -> None:
        unbind_context(*self._fields)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: object) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
