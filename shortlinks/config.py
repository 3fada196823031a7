"""Configuration management for the short link service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortlinks.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Override in the environment**::
    ALLOW_ANONYMOUS_CREATE=true REUSE_DELETED_CODES=false uvicorn shortlinks.main:app

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- Policy switches (anonymous creation, code reuse after deletion, click event
  log) are plain booleans so both configurations can be exercised in tests.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["DEFAULT_ALPHABET", "Settings", "get_settings"]

import string
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits


class Settings(BaseSettings):
    APP_NAME: str = "shortlinks"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://shortlinks:shortlinks@db:5432/shortlinks"

    # Redis (optional read-through cache of resolved targets)
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_REPLICA_URL: str = ""
    CACHE_ENABLED: bool = True
    CACHE_TTL_SECONDS: int = 3600

    # Short code allocation
    SHORT_CODE_LENGTH: int = 6
    SHORT_CODE_ALPHABET: str = DEFAULT_ALPHABET
    ALLOCATION_MAX_ATTEMPTS: int = 10

    # Policies
    ALLOW_ANONYMOUS_CREATE: bool = False
    REUSE_DELETED_CODES: bool = True
    CLICK_EVENTS_ENABLED: bool = True

    # Identity tokens
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    AUTH_COOKIE_NAME: str = "token"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
