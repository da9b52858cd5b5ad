"""Tests for settings and production validation."""

import warnings
from datetime import timedelta

import pytest

from bvpn_console.common.config import _INSECURE_DEFAULTS, ConsoleSettings, get_settings


class TestConsoleSettings:
    def test_defaults(self):
        settings = ConsoleSettings()
        assert settings.ad_reward_points == 30
        assert settings.min_withdraw_mmk == 20000
        assert settings.min_withdraw_usd == 20
        assert settings.points_per_usd == 4500
        assert settings.payment_methods == ["KBZ Pay", "Wave Pay"]
        assert settings.presence_window == timedelta(minutes=5)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("BVPN_AD_REWARD_POINTS", "45")
        monkeypatch.setenv("BVPN_PRESENCE_WINDOW_SECONDS", "120")
        settings = ConsoleSettings()
        assert settings.ad_reward_points == 45
        assert settings.presence_window == timedelta(minutes=2)

    def test_production_rejects_insecure_defaults(self):
        settings = ConsoleSettings(environment="production", **_INSECURE_DEFAULTS)
        with pytest.raises(RuntimeError, match="BVPN_API_KEY"):
            settings.validate_for_production()

    def test_production_with_keys(self):
        settings = ConsoleSettings(
            environment="production",
            api_key="real-key",
            ledger_signing_key="real-signing-key",
        )
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            settings.validate_for_production()

    def test_development_warns(self):
        settings = ConsoleSettings(environment="development", **_INSECURE_DEFAULTS)
        with pytest.warns(UserWarning):
            settings.validate_for_production()

    def test_get_settings_cached(self, monkeypatch):
        monkeypatch.setenv("BVPN_API_KEY", "cached-key")
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
            assert get_settings().api_key == "cached-key"
        finally:
            get_settings.cache_clear()
