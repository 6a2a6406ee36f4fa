"""
FastAPI dependencies shared by the hub's routers.

Settings are a cached singleton; the tracker lives on ``app.state`` so
each app instance (and each test) owns its own.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from relayhub.core.settings import RelayHubSettings
from relayhub.execution.tracker import CorrelationTracker


@lru_cache(maxsize=1)
def get_settings() -> RelayHubSettings:
    return RelayHubSettings()


def get_tracker(request: Request) -> CorrelationTracker:
    return request.app.state.tracker
