"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "FinControl"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./fincontrol.db"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = os.getenv("LOG_JSON", "true").lower() == "true"

    # Ledger
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "COP")
    TRANSACTION_MAX_ATTEMPTS: int = int(
        os.getenv("TRANSACTION_MAX_ATTEMPTS", "5")
    )

    # Recurring scheduler
    RECURRING_MIN_INTERVAL_SECONDS: float = float(
        os.getenv("RECURRING_MIN_INTERVAL_SECONDS", "30")
    )
    RECURRING_SCHEDULER_CACHE_SIZE: int = int(
        os.getenv("RECURRING_SCHEDULER_CACHE_SIZE", "1024")
    )

    # Invite codes
    INVITE_CODE_LENGTH: int = int(os.getenv("INVITE_CODE_LENGTH", "8"))
    INVITE_GRACE_DAYS: int = int(os.getenv("INVITE_GRACE_DAYS", "7"))
    INVITE_MAX_ATTEMPTS: int = int(os.getenv("INVITE_MAX_ATTEMPTS", "5"))
    INVITE_LOCKOUT_HOURS: int = int(os.getenv("INVITE_LOCKOUT_HOURS", "24"))


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls.
    """
    return Settings()
