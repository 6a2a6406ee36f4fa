"""Tests for RelayHubSettings."""

import pytest
from pydantic import ValidationError

from relayhub.core.settings import RelayHubSettings


class TestRelayHubSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RELAYHUB_PORT", raising=False)
        settings = RelayHubSettings(_env_file=None)
        assert settings.port == 8080
        assert settings.default_timeout_ms == 30_000
        assert settings.manager_timeout_ms == 30_000
        assert settings.retention_count == 1000
        assert settings.cleanup_interval_seconds == 60.0
        assert settings.json_logs is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("RELAYHUB_DEFAULT_TIMEOUT_MS", "60000")
        monkeypatch.setenv("RELAYHUB_MANAGER_TIMEOUT_MS", "90000")
        monkeypatch.setenv("RELAYHUB_JSON_LOGS", "true")
        settings = RelayHubSettings(_env_file=None)
        assert settings.default_timeout_ms == 60_000
        assert settings.manager_timeout_ms == 90_000
        assert settings.json_logs is True

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("RELAYHUB_RETENTION_COUNT=50\nRELAYHUB_UNKNOWN=1\n")
        settings = RelayHubSettings(_env_file=env_file)
        assert settings.retention_count == 50

    @pytest.mark.parametrize(
        "field", ["default_timeout_ms", "manager_timeout_ms", "retention_count"]
    )
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValidationError):
            RelayHubSettings(_env_file=None, **{field: 0})
