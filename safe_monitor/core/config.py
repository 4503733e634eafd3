from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    Settings are loaded from environment variables with optional .env file override.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging, mock sources, and cron authorization."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging and development features."""

    # DB
    DATABASE_URL: Optional[str] = None
    """Database connection URL. If None, uses SQLite for development."""

    REDIS_URL: Optional[str] = None
    """Redis connection URL, used when STORE_BACKEND is 'redis'."""

    STORE_BACKEND: Literal["database", "redis", "memory"] = "database"
    """Where seen transactions are persisted. 'memory' is not durable."""

    # Safe Transaction Source
    SAFE_SOURCE: Literal["transaction_service", "client_gateway", "mock"] = (
        "transaction_service"
    )
    """Which Safe API backs the pending transaction source."""

    SAFE_API_KEY: Optional[str] = None
    """API key for the Safe Transaction Service (https://developer.safe.global)."""

    SAFE_CLIENT_GATEWAY_URL: str = "https://safe-client.safe.global"
    """Base URL of the Safe Client Gateway."""

    # Wallets
    WALLET_SOURCE: Literal["database", "static"] = "database"
    """Load monitored wallets from the wallets table or from MONITORED_SAFES."""

    MONITORED_SAFES: str = ""
    """Comma separated chain_id:address pairs, e.g. '8453:0xabc...,1:0xdef...'."""

    # Telegram
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    """Default bot token, used for tenants without their own settings."""

    TELEGRAM_CHAT_ID: Optional[str] = None
    """Default chat id, used for tenants without their own settings."""

    APP_BASE_URL: Optional[str] = None
    """Public base URL of the dashboard, used for preview image links."""

    CRON_SECRET: Optional[str] = None
    """Bearer secret required on scheduled trigger calls in production."""

    # Monitor tunables
    MONITOR_INTERVAL_SECONDS: int = 300
    """Seconds between automated fleet passes."""

    MONITOR_CONCURRENCY: int = 5
    """Maximum wallets reconciled at the same time."""

    SOURCE_TIMEOUT_SECONDS: float = 30.0
    STORE_TIMEOUT_SECONDS: float = 10.0
    SINK_TIMEOUT_SECONDS: float = 30.0

    NOTIFY_ON_PROGRESS: bool = False
    """Send a follow-up notification when confirmations increase."""

    SEEN_RETENTION_DAYS: int = 30
    """Seen transaction records older than this are removed by retention."""

    AUTOMATION_AUTOSTART: bool = False
    """Start the interval loop on application startup."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()
