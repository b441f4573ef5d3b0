"""
Runtime configuration.

Values are read from the environment, with a `.env` file in the project root
loaded first. Database credentials are only checked when the Supabase client
is first created (see `repositories.client`).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# Supabase
SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
SUPABASE_KEY: str | None = os.getenv("SUPABASE_KEY")

# Sessions
SESSION_TTL_HOURS: int = int(os.getenv("SESSION_TTL_HOURS", "1"))
SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "authToken")
COOKIE_SECURE: bool = os.getenv("COOKIE_SECURE", "false").lower() in {"1", "true", "yes"}

# API
CORS_ALLOW_ORIGINS: list[str] = _split_csv(os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:5173"))

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

__all__ = [
    "COOKIE_SECURE",
    "CORS_ALLOW_ORIGINS",
    "LOG_LEVEL",
    "SESSION_COOKIE_NAME",
    "SESSION_TTL_HOURS",
    "SUPABASE_KEY",
    "SUPABASE_URL",
]
