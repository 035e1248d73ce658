"""
Configuration module for pastebox.
Loads environment variables and provides config objects.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings:
    """Application settings loaded from environment variables."""

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "redis").lower()
    DEBUG: bool = _flag("DEBUG", "False")
    # Empty means "derive from the incoming request"
    APP_DOMAIN: str = os.getenv("APP_DOMAIN", "")
    TEST_MODE: bool = _flag("TEST_MODE", "0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    DEFAULT_TTL_SECONDS: int = int(os.getenv("DEFAULT_TTL_SECONDS", str(60 * 60 * 24 * 7)))
    MAX_CONTENT_BYTES: int = int(os.getenv("MAX_CONTENT_BYTES", str(2 * 1024 * 1024)))

    SLUG_LENGTH: int = int(os.getenv("SLUG_LENGTH", "6"))
    ID_LENGTH: int = int(os.getenv("ID_LENGTH", "13"))
    SLUG_ATTEMPTS: int = int(os.getenv("SLUG_ATTEMPTS", "5"))
    LABEL_MIN_LENGTH: int = int(os.getenv("LABEL_MIN_LENGTH", "2"))

    # "id": possession of the paste id authorises update/delete.
    # "secret": pastes are addressed by slug plus a shared secret.
    CAPABILITY_MODE: str = os.getenv("CAPABILITY_MODE", "id").lower()

    SWEEP_INTERVAL_SECONDS: int = int(os.getenv("SWEEP_INTERVAL_SECONDS", "3600"))


settings = Settings()
