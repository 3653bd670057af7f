from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class AccountSettings(BaseModel):
    """One provider account declared through configuration."""

    name: str
    access_token: str = "PENDING"
    is_active: bool = True
    alias: Optional[str] = None
    cvu: Optional[str] = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    Settings are loaded once per process; component configs are derived from
    this object at startup and passed explicitly to the poller and arbiter.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging renderer and mock client usage."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging and development features."""

    # DB
    DATABASE_URL: Optional[str] = None
    """Database connection URL. If None, uses SQLite for development."""

    DB_AUTO_CREATE: bool = True
    """Create missing tables on startup (migrations are preferred in production)."""

    # Payment provider
    PROVIDER_CLIENT: Literal["mercadopago", "mock"] = "mercadopago"
    """Which provider client implementation the poller uses."""

    PROVIDER_BASE_URL: str = "https://api.mercadopago.com/"
    """Base URL of the payment provider API."""

    PROVIDER_TIMEOUT_SECONDS: float = 30.0
    """HTTP timeout for a single search request."""

    PROVIDER_PAGE_SIZE: int = 50
    """Fixed page size requested on every search call."""

    PROVIDER_ACCOUNTS: list[AccountSettings] = []
    """Accounts synced into provider_accounts at startup (JSON list in env)."""

    TOKEN_PLACEHOLDERS: list[str] = ["PENDING"]
    """Access token values meaning 'not configured yet'."""

    # Poller
    POLLER_ENABLED: bool = True
    """Start the background poller with the API process."""

    POLL_INTERVAL_SECONDS: int = 10
    """Seconds between poll ticks."""

    POLL_LOOKBACK_MINUTES: int = 60
    """Size of the sliding window re-queried on every tick."""

    # Claims
    LOCAL_TIMEZONE: str = "America/Argentina/Buenos_Aires"
    """Civil timezone used for 'today' and 'by day' claim listings."""

    PENDING_PAYMENT_TYPES: list[str] = ["bank_transfer", "account_money"]
    """Payment types listed as pending for operators (empty = all)."""

    PENDING_MAX_AGE_MINUTES: int = 10
    """Only transfers newer than this are listed as pending (0 = no limit)."""

    # Seed
    SEED_ADMIN_PASSWORD: Optional[str] = None
    """Password for the seeded 'admin' user. Seeding is skipped when unset."""

    SEED_BRANCH_PASSWORD: Optional[str] = None
    """Shared initial password for the seeded branch operators."""

    SEED_BRANCHES: list[str] = [
        "Banfield",
        "Adrogue",
        "Lomas",
        "AveLocal",
        "AveStand",
        "Brown",
        "Abasto",
        "Oeste",
        "MarLocal",
        "MarStand",
    ]
    """Branch operator usernames created by the seed."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()
