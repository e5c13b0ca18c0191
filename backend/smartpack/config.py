# backend/smartpack/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/smartpack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///smartpack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = _env_bool("LOG_JSON", True)

    # Reference codes and booking lists are keyed by the warehouse's local date
    BUSINESS_UTC_OFFSET_HOURS = int(os.environ.get("BUSINESS_UTC_OFFSET_HOURS", "7"))

    EVENT_PAGE_SIZE = int(os.environ.get("EVENT_PAGE_SIZE", "100"))
