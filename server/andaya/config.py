"""
Application configuration using pydantic-settings.
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    """Find .env file by checking multiple locations."""
    # Try relative to this file (server/andaya/config.py)
    current_dir = Path(__file__).parent
    candidates = [
        current_dir / ".env",  # server/andaya/.env
        current_dir.parent / ".env",  # server/.env
        current_dir.parent.parent / ".env",  # project root/.env
    ]

    for candidate in candidates:
        if candidate.exists():
            return str(candidate)

    # Default to project root
    return str(current_dir.parent.parent / ".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:8080"]
    APP_PUBLIC_URL: str = "http://localhost:5173"  # Used for links in emails

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./andaya.db"
    CREATE_TABLES_ON_STARTUP: bool = True

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    FX_CACHE_TTL: int = 300  # 5 minutes

    # Supabase Auth (hosted)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # Resend (transactional email)
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com"
    EMAIL_FROM: str = "AndaYa <onboarding@resend.dev>"

    # Exchange rates
    FX_API_URL: str = "https://ve.dolarapi.com/v1/dolares"
    FX_DEFAULT_PROVIDER: str = "bcv"
    FX_DEFAULT_CODE: str = "USD"
    FX_STALE_HOURS: int = 24
    FX_REFRESH_MINUTES: int = 30
    EUR_USD_FALLBACK_RATE: float = 1.10

    # Outbound HTTP
    HTTP_TIMEOUT: float = 10.0  # seconds

    # Business Logic
    TIMEZONE: str = "America/Caracas"
    DEFAULT_GRACE_MINUTES: int = 30
    SERVICE_FEE_RATE: float = 0.10
    LATE_FEE_MULTIPLIER: float = 1.2  # Applied to the hourly rate
    CASHEA_UPFRONT_RATE: float = 0.25
    CASHEA_INSTALLMENTS: int = 3
    IMPERSONATION_DEFAULT_MINUTES: int = 15


settings = Settings()
