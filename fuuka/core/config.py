#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Application configuration.

All values can be overridden via environment variables (prefix ``FUUKA_``) or
a .env file.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from fuuka._version import __version__ as _pkg_version


# -----------------------------------------------------------------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FUUKA_",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────

    app_name: str = "Fuuka"
    app_version: str = _pkg_version
    base_url: str = "http://localhost:8000"
    debug: bool = False
    environment: Literal["development", "testing", "production"] = "development"

    # ── Database ───────────────────────────────────────────────────────────

    database_url: str = "sqlite+aiosqlite:///./fuuka.db"
    db_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # ── Auth / JWT ─────────────────────────────────────────────────────────

    secret_key: str = "CHANGE-ME-IN-PRODUCTION-use-a-random-64-char-hex-string"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 8   # 8 hours

    # ── Comment rendering ──────────────────────────────────────────────────

    # Host used for >>>/board/ links to boards this archive doesn't carry
    external_host: str = "boards.4chan.org"
    greentext_class: str = "greentext"
    strip_legacy_wrappers: bool = True
    adjust_archive_timezone: bool = True
    autolink_popup: bool = True

    # Theme hook for the [moot] tag on archived primary posts; inert by default
    moot_start_tag: str = ""
    moot_end_tag: str = ""

    # ── API ────────────────────────────────────────────────────────────────

    last_limit_max: int = 500

    # ── CORS ───────────────────────────────────────────────────────────────

    cors_origins: list[str] = ["*"]


# -----------------------------------------------------------------------------

@lru_cache
def get_settings() -> Settings:
    return Settings()


# -----------------------------------------------------------------------------
