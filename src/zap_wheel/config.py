"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    speed_api_key: str | None = None
    speed_api_url: str = "https://api.speed.app"
    public_base_url: str | None = None
    default_payout_amount: int = 1000
    fallback_session_name: str = "Live Stream"
    spin_duration_ms: int = 3000
    spin_min_turns: float = 5
    spin_max_turns: float = 8
    spin_frame_interval_ms: int = 50
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def is_payment_simulated(settings: Settings) -> bool:
    """Payouts are simulated without an API key or in development."""
    api_key = (settings.speed_api_key or "").strip()
    return not api_key or settings.environment == "development"
