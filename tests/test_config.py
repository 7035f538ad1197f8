"""Tests for processor settings."""
from __future__ import annotations

from pathlib import Path

import pytest

from dmandate_core.config import (
    DEFAULT_PROGRAM_ID,
    ProcessorSettings,
    build_settings,
    load_settings,
)
from dmandate_core.exceptions import ConfigurationError


class TestDefaults:
    def test_defaults(self):
        settings = build_settings()
        assert settings.check_interval_ms == 60_000
        assert settings.check_interval_seconds == 60.0
        assert settings.batch_size == 100
        assert settings.buffer_seconds == 60
        assert settings.pacing_delay_seconds == 0.5
        assert settings.program_id == DEFAULT_PROGRAM_ID
        assert settings.rpc_url == "http://localhost:8899"
        assert settings.commitment == "confirmed"
        assert settings.log_level == "info"
        assert settings.enable_notifications is False

    def test_keypair_path_is_expanded(self):
        settings = build_settings(keypair_path="~/keys/id.json")
        assert settings.expanded_keypair_path == Path.home() / "keys" / "id.json"


class TestEnvironment:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DMANDATE_CHECK_INTERVAL_MS", "5000")
        monkeypatch.setenv("DMANDATE_BATCH_SIZE", "25")
        monkeypatch.setenv("DMANDATE_BUFFER_SECONDS", "0")
        monkeypatch.setenv("DMANDATE_RPC_URL", "https://api.devnet.solana.com")
        monkeypatch.setenv("DMANDATE_ENABLE_NOTIFICATIONS", "true")

        settings = build_settings()

        assert settings.check_interval_seconds == 5.0
        assert settings.batch_size == 25
        assert settings.buffer_seconds == 0
        assert settings.rpc_url == "https://api.devnet.solana.com"
        assert settings.enable_notifications is True

    @pytest.mark.parametrize("raw,expected", [("DEBUG", "debug"), ("Warn", "warning"), (" error ", "error")])
    def test_log_level_normalized(self, monkeypatch, raw, expected):
        monkeypatch.setenv("DMANDATE_LOG_LEVEL", raw)
        assert build_settings().log_level == expected

    def test_empty_log_file_disables_file_logging(self, monkeypatch):
        monkeypatch.setenv("DMANDATE_LOG_FILE", "")
        assert build_settings().log_file is None

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "processor.env"
        env_file.write_text("DMANDATE_BATCH_SIZE=7\nDMANDATE_PACING_DELAY_MS=0\n")
        settings = build_settings(str(env_file))
        assert settings.batch_size == 7
        assert settings.pacing_delay_seconds == 0.0

    def test_load_settings_is_cached(self):
        assert load_settings() is load_settings()


class TestValidation:
    def test_negative_buffer(self, monkeypatch):
        monkeypatch.setenv("DMANDATE_BUFFER_SECONDS", "-1")
        with pytest.raises(ConfigurationError) as exc_info:
            build_settings()
        assert exc_info.value.details["setting"] == "buffer_seconds"

    def test_zero_batch_size(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_settings(batch_size=0)
        assert exc_info.value.details["setting"] == "batch_size"

    def test_zero_interval(self):
        with pytest.raises(ConfigurationError):
            build_settings(check_interval_ms=0)

    def test_unknown_log_level(self):
        with pytest.raises(ConfigurationError):
            build_settings(log_level="verbose")

    def test_unknown_commitment(self):
        with pytest.raises(ConfigurationError):
            build_settings(commitment="max")

    def test_settings_model_direct(self):
        assert ProcessorSettings(batch_size=3).batch_size == 3
