"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env
file as a fallback. Every setting has a default, so the service (and its test
suite) starts without any environment at all.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from household_ledger.config import settings
    print(settings.PROJECTION_MONTHS_AHEAD)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Household Ledger service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Household Ledger API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for single-household installs; any async SQLAlchemy URL works
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/ledger.db"

    # --- Projections ---
    # Horizon used by bulk generation and by template create/update
    PROJECTION_MONTHS_AHEAD: int = 12

    # Background sweep that keeps every workspace generated ahead.
    # Off by default: reads already extend generation on access.
    PROJECTION_WORKER_ENABLED: bool = False
    PROJECTION_WORKER_INTERVAL_SECONDS: int = 3600

    # --- Credit cards ---
    # Billed deferred charges older than this many months are overdue
    OVERDUE_AFTER_MONTHS: int = 2

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
