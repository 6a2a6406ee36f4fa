"""HTTP surface of the hub: execution callbacks, queries and the SSE feed."""

from relayhub.api.app import create_app
from relayhub.api.router import create_executions_router

__all__ = ["create_app", "create_executions_router"]
