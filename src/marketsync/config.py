from __future__ import annotations

from dataclasses import dataclass

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Logging
    log_level: str = "INFO"

    # Marketplace server
    market_env: str = Field(default="local", validation_alias="MARKET_ENV")
    market_ws_url: str | None = Field(default=None, validation_alias="MARKET_WS_URL")
    market_api_url: str | None = Field(default=None, validation_alias="MARKET_API_URL")
    market_username: str | None = Field(default=None, validation_alias="MARKET_USERNAME")
    market_password: str | None = Field(default=None, validation_alias="MARKET_PASSWORD")

    # Connection
    reconnect_delay_seconds: float = Field(default=3.0, validation_alias="RECONNECT_DELAY_SECONDS")
    reconnect_backoff_factor: float = Field(default=1.0, validation_alias="RECONNECT_BACKOFF_FACTOR")
    max_reconnect_delay_seconds: float = Field(
        default=30.0, validation_alias="MAX_RECONNECT_DELAY_SECONDS"
    )

    # Notifications
    notification_ttl_seconds: float = Field(default=5.0, validation_alias="NOTIFICATION_TTL_SECONDS")

    # Checkout
    payment_method: str = Field(default="credit_card", validation_alias="PAYMENT_METHOD")

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

    @property
    def ws_url(self) -> str:
        return self.market_ws_url or env_defaults(self.market_env).ws_url

    @property
    def api_url(self) -> str:
        return (self.market_api_url or env_defaults(self.market_env).api_url).rstrip("/")

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv(override=False)
        return cls()


@dataclass(frozen=True)
class MarketEnvDefaults:
    ws_url: str
    api_url: str


def env_defaults(env: str) -> MarketEnvDefaults:
    env = env.lower().strip()
    if env in {"local", "dev"}:
        return MarketEnvDefaults(ws_url="ws://localhost:8080", api_url="http://localhost:8080")
    if env in {"prod", "production"}:
        return MarketEnvDefaults(
            ws_url="wss://market.example.com/ws", api_url="https://market.example.com"
        )
    raise ValueError(f"Unknown MARKET_ENV: {env}")
