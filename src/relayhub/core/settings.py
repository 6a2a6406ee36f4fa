"""Settings for the relayhub hub process.

Configuration is explicit, validated and environment-driven. Every field can
be overridden with a ``RELAYHUB_`` prefixed environment variable or a
``.env`` file::

    RELAYHUB_DEFAULT_TIMEOUT_MS=60000
    RELAYHUB_RETENTION_COUNT=5000

The two timeout classes are kept as separate knobs even though they default
to the same value; manager lifecycle actions read ``manager_timeout_ms`` and
everything else reads ``default_timeout_ms``.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelayHubSettings(BaseSettings):
    """Settings for the hub and its correlation tracker.

    Order of precedence (highest → lowest):
        1. Environment variables (``RELAYHUB_PORT``, etc.)
        2. ``.env`` file
        3. Defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAYHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Network ──────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, description="Bind port")

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool | None = Field(
        default=None,
        description="Force JSON (true) or console (false) logs; auto-detect when unset",
    )

    # ── Correlation tracking ─────────────────────────────────────
    default_timeout_ms: int = Field(
        default=30_000, gt=0, description="Deadline for ordinary operations"
    )
    manager_timeout_ms: int = Field(
        default=30_000, gt=0, description="Deadline for manager lifecycle actions"
    )
    retention_count: int = Field(
        default=1000, gt=0, description="Executions kept in memory after cleanup"
    )
    cleanup_interval_seconds: float = Field(
        default=60.0, gt=0, description="How often the app runs retention cleanup"
    )
    sse_heartbeat_seconds: float = Field(
        default=30.0, gt=0, description="Idle interval between SSE heartbeats"
    )
