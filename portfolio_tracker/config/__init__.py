"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Portfolio source
    # ======================
    EXCEL_FILE_PATH: Optional[str] = None

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # ======================
    # Cache TTLs (seconds)
    # ======================
    CACHE_TTL_CMP: int = 120
    CACHE_TTL_FINANCIALS: int = 3600

    # ======================
    # Yahoo Finance (prices)
    # ======================
    YAHOO_MAX_RETRIES: int = 2
    YAHOO_INITIAL_RETRY_DELAY: float = 1.0
    YAHOO_TIMEOUT_SECONDS: float = 5.0

    # ======================
    # Google Finance (fundamentals)
    # ======================
    GOOGLE_MAX_RETRIES: int = 2
    GOOGLE_INITIAL_RETRY_DELAY: float = 0.5
    GOOGLE_TIMEOUT_SECONDS: float = 3.0
    GOOGLE_MAX_CONCURRENT: int = 5
    GOOGLE_MIN_REQUEST_INTERVAL: float = 0.05

    # ======================
    # Backoff
    # ======================
    RETRY_MAX_DELAY_SECONDS: float = 30.0

    # ======================
    # Portfolio snapshot reuse
    # ======================
    PORTFOLIO_RELOAD_SECONDS: int = 300
    ENRICHED_SNAPSHOT_TTL_SECONDS: int = 30

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
