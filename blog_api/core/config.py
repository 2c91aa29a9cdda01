"""
Environment-driven settings.

Routers and services read configuration through `get_settings()` instead of
touching os.environ directly. Tests call `get_settings.cache_clear()` after
monkeypatching the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    admin_api_key: str
    cors_origins: list[str]
    trust_proxy: bool
    rate_limit_window_s: int
    rate_limit_max_requests: int
    rate_limit_admin_max_requests: int
    comment_rate_limit: int
    comment_rate_window_s: int
    db_pool_min: int
    db_pool_max: int
    db_command_timeout_s: float
    db_max_retries: int
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    def validate(self) -> None:
        """
        Fail fast on settings the server cannot start without.
        """
        if not self.database_url:
            raise RuntimeError("DATABASE_URL is not set.")
        if self.is_production and not self.admin_api_key:
            raise RuntimeError("ADMIN_API_KEY is required in production.")


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_env=_env_str("APP_ENV", "development").lower(),
        database_url=_env_str("DATABASE_URL", ""),
        admin_api_key=_env_str("ADMIN_API_KEY", ""),
        cors_origins=_env_list("CORS_ORIGINS", ["*"]),
        trust_proxy=_env_bool("TRUST_PROXY", False),
        rate_limit_window_s=_env_int("RATE_LIMIT_WINDOW_S", 60),
        rate_limit_max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 100),
        rate_limit_admin_max_requests=_env_int("RATE_LIMIT_ADMIN_MAX_REQUESTS", 50),
        comment_rate_limit=_env_int("COMMENT_RATE_LIMIT", 5),
        comment_rate_window_s=_env_int("COMMENT_RATE_WINDOW_S", 60 * 60),
        db_pool_min=_env_int("DB_POOL_MIN", 1),
        db_pool_max=_env_int("DB_POOL_MAX", 5),
        db_command_timeout_s=_env_float("DB_COMMAND_TIMEOUT_S", 30.0),
        db_max_retries=_env_int("DB_MAX_RETRIES", 3),
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
    )
