"""Process-wide plumbing: structured logging and settings."""

from relayhub.core.logging import LogContext, bind_context, configure_logging, get_logger
from relayhub.core.settings import RelayHubSettings

__all__ = [
    "LogContext",
    "RelayHubSettings",
    "bind_context",
    "configure_logging",
    "get_logger",
]
