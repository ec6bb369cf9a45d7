"""Trend agent runtime configuration definitions."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Ordered (label, seconds) pairs; the first entry is the base timeframe.
TIMEFRAMES: tuple[tuple[str, int], ...] = (
    ("5m", 5 * 60),
    ("15m", 15 * 60),
    ("1h", 60 * 60),
    ("4h", 4 * 60 * 60),
    ("1d", 24 * 60 * 60),
)

_REQUIRED_CREDENTIALS = {
    "delta_api_key": "DELTA_API_KEY",
    "delta_api_secret": "DELTA_API_SECRET",
    "telegram_bot_token": "TELEGRAM_BOT_TOKEN",
    "telegram_chat_id": "TELEGRAM_CHAT_ID",
}


class ConfigurationError(RuntimeError):
    """Raised when required process configuration is missing or invalid."""


@dataclass(slots=True, frozen=True)
class ScoringWeights:
    """Hand-tuned constants of the points-based multi-timeframe score."""

    points_per_timeframe: int = 20
    volume_boost_max: int = 20
    macd_boost: int = 20
    min_agreeing_timeframes: int = 2
    min_points: int = 40

    def max_strength(self, timeframe_count: int = len(TIMEFRAMES)) -> int:
        return timeframe_count * self.points_per_timeframe + self.volume_boost_max + self.macd_boost


class Settings(BaseSettings):
    """Application settings loaded from env and .env files.

    Credentials keep the exchange/bot variable names used by deployments;
    tunables are read with the ``TREND_AGENT_`` prefix.
    """

    delta_api_key: str = Field(default="", validation_alias="DELTA_API_KEY")
    delta_api_secret: str = Field(default="", validation_alias="DELTA_API_SECRET")
    telegram_bot_token: str = Field(default="", validation_alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str = Field(default="", validation_alias="TELEGRAM_CHAT_ID")

    ws_url: str = "wss://socket.delta.exchange"
    products_url: str = "https://api.delta.exchange/v2/products"
    telegram_api_base: str = "https://api.telegram.org"
    contract_type: str = "perpetual_futures"
    ticker_channel: str = "v2/ticker"

    scoring_interval_s: float = Field(default=300.0, gt=0)
    buffer_capacity: int = Field(default=500, ge=1)
    rate_limit: int = Field(default=60, ge=1)
    rate_window_s: float = Field(default=60.0, gt=0)
    backoff_initial_s: float = Field(default=1.0, gt=0)
    backoff_max_s: float = Field(default=32.0, gt=0)
    stable_after_s: float = Field(default=60.0, ge=0)
    tick_queue_size: int = Field(default=1000, ge=1)
    http_timeout_s: float = Field(default=10.0, gt=0)

    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = Field(default=8080, ge=1, le=65535)
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TREND_AGENT_",
        populate_by_name=True,
        extra="ignore",
    )

    def require_credentials(self) -> None:
        """Fail fast when any exchange or notification credential is absent.

        Raises:
            ConfigurationError: Naming every missing environment variable.
        """
        missing = [env for field, env in _REQUIRED_CREDENTIALS.items() if not getattr(self, field).strip()]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        if self.backoff_max_s < self.backoff_initial_s:
            raise ConfigurationError("backoff_max_s must be >= backoff_initial_s")
