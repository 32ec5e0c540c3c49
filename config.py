from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_url: str
    reservations_api_key: str
    admin_api_key: str
    default_timezone_offset: int
    notifications_enabled: bool


def _clean(value: str) -> str:
    return value.strip().strip('"').strip("'")


def _get_required_env(name: str) -> str:
    value = _clean(os.getenv(name, ""))
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_int_env(name: str, default: int) -> int:
    raw = _clean(os.getenv(name, ""))
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from exc


def _get_bool_env(name: str, default: bool) -> bool:
    raw = _clean(os.getenv(name, "")).lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_name="Facility Reservation API",
        app_version="1.0.0",
        database_url=_get_required_env("DATABASE_URL"),
        reservations_api_key=_get_required_env("RESERVATIONS_API_KEY"),
        admin_api_key=_get_required_env("ADMIN_API_KEY"),
        default_timezone_offset=_get_int_env("DEFAULT_TIMEZONE_OFFSET", 0),
        notifications_enabled=_get_bool_env("NOTIFICATIONS_ENABLED", True),
    )
