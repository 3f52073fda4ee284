"""
config.py — VerifyENS Holder Configuration
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    APP_NAME: str = "VerifyENS"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Workflow / resolution backend
    API_BASE_URL: str = "http://localhost:8080"
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # Local secure store
    DATABASE_URL: str = "sqlite+aiosqlite:///./verifyens.db"

    # Cryptography
    ENCRYPTION_KEY: str = ""          # Fernet key for field values at rest

    # Wallet
    WALLET_PRIVATE_KEY: str = ""      # optional; enables the local key wallet

    # Disclosure
    REVEAL_WINDOW_SECONDS: int = 3600
    PENDING_REQUEST_TTL_HOURS: Optional[int] = None   # unset: expire only on the server's expiresAt
    REQUIRE_WALLET_FOR_APPROVAL: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "verifyens.log"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
