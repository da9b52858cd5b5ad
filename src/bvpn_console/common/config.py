"""BVPN Console configuration via pydantic-settings."""

import warnings
from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
    "ledger_signing_key": "insecure-ledger-key-change-me",
}


class ConsoleSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BVPN_")

    environment: str = "development"
    api_key: str = "insecure-admin-key-change-me"

    # HMAC key used to sign every activity log entry
    ledger_signing_key: str = "insecure-ledger-key-change-me"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/bvpn.db"

    # API
    api_title: str = "BVPN Console"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    log_level: str = "INFO"

    # Presence
    presence_window_seconds: int = 300
    presence_tick_seconds: int = 60
    presence_monitor_enabled: bool = True

    # Rewards
    ad_reward_points: int = 30

    # Withdrawals (1 point = 1 MMK)
    min_withdraw_mmk: int = 20000
    min_withdraw_usd: int = 20
    points_per_usd: int = 4500
    payment_methods: list[str] = ["KBZ Pay", "Wave Pay"]
    transaction_id_prefix: str = "TXN"

    # Pagination
    default_page_size: int = 50
    max_page_size: int = 200

    @property
    def presence_window(self) -> timedelta:
        return timedelta(seconds=self.presence_window_seconds)

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"BVPN_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}."
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys; set BVPN_API_KEY and "
                "BVPN_LEDGER_SIGNING_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> ConsoleSettings:
    settings = ConsoleSettings()
    settings.validate_for_production()
    return settings
