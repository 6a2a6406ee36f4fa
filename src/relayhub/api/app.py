"""
FastAPI application factory.

``create_app()`` builds the tracker, mounts the execution router and owns
the lifespan: logging setup, the periodic retention sweep, and cancelling
outstanding deadline timers on shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI

from relayhub import __version__
from relayhub.api.deps import get_settings, get_tracker
from relayhub.api.router import create_executions_router
from relayhub.core.logging import configure_logging, get_logger
from relayhub.core.settings import RelayHubSettings
from relayhub.execution.timeout import AsyncioTimeoutScheduler
from relayhub.execution.tracker import CorrelationTracker

log = get_logger("relayhub.api")


async def _cleanup_loop(tracker: CorrelationTracker, interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            tracker.cleanup()
        except Exception:
            log.exception("retention_cleanup_failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Run retention cleanup while serving; release timers on the way out."""
    settings: RelayHubSettings = app.state.settings
    tracker: CorrelationTracker = app.state.tracker

    log.info("hub_starting", version=app.version, port=settings.port)
    cleanup_task = asyncio.create_task(
        _cleanup_loop(tracker, settings.cleanup_interval_seconds)
    )

    yield

    cleanup_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup_task
    tracker.shutdown()
    log.info("hub_stopped", executions=len(tracker))


def create_app(
    *,
    settings: RelayHubSettings | None = None,
    tracker: CorrelationTracker | None = None,
) -> FastAPI:
    """Build and return the hub's FastAPI application.

    Parameters
    ----------
    settings : RelayHubSettings | None
        Explicit settings, e.g. from a test. Defaults to the process-wide
        settings loaded from the environment.
    tracker : CorrelationTracker | None
        Pre-built tracker. By default one is built from *settings* with
        deadline timers on the server's event loop.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    if tracker is None:
        tracker = CorrelationTracker.from_settings(settings, scheduler=AsyncioTimeoutScheduler())

    app = FastAPI(
        title="relayhub",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tracker = tracker
    app.dependency_overrides[get_settings] = lambda: settings

    app.include_router(
        create_executions_router(tracker, heartbeat_seconds=settings.sse_heartbeat_seconds)
    )

    @app.get("/health", tags=["health"])
    async def health(current: Annotated[CorrelationTracker, Depends(get_tracker)]):
        return {
            "status": "ok",
            "version": __version__,
            "executions": len(current),
            "pending_timers": current.scheduler.pending_count,
        }

    return app
