"""Application configuration.

Environment variables override all defaults. A `.env` next to the backend
directory is loaded for local development.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pharmacy.db")

    # Telegram Bot (Must be set via .env, never in code)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Group chat that receives expiry alerts; alerts are off when unset
    PHARMACY_GROUP_CHAT_ID: Optional[int] = _env_int("PHARMACY_GROUP_CHAT_ID")

    # Expiry alerts
    EXPIRY_WARNING_DAYS: int = int(os.getenv("EXPIRY_WARNING_DAYS", "180"))
    EXPIRY_SCAN_INTERVAL_SECONDS: int = int(os.getenv("EXPIRY_SCAN_INTERVAL_SECONDS", "86400"))

    # Orders placed from chat refuse medicines past their expiry date
    REJECT_EXPIRED_ORDERS: bool = _env_bool("REJECT_EXPIRED_ORDERS", True)

    # Replies fall back to this language when Telegram sends none we know
    DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "en")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = _env_bool("LOG_JSON", False)

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
        ).split(",")
        if origin.strip()
    ]

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"


settings = Settings()
