# backend/tillbook/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance folder by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///tillbook.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Receipt numbers are monotonic per device
    DEVICE_ID = os.environ.get("TILLBOOK_DEVICE_ID", "device-1")
    RECEIPT_PREFIX = os.environ.get("RECEIPT_PREFIX", "REC")
    RECEIPT_COUNTER_START = int(os.environ.get("RECEIPT_COUNTER_START", "1000"))

    # Dashboard day boundaries are computed in the shop's local time
    SHOP_TIMEZONE = os.environ.get("SHOP_TIMEZONE", "UTC")

    # Sales by these roles are reported upstream through the sync queue
    RESTRICTED_ROLES = _env_list("RESTRICTED_ROLES", "cashier")

    SYNC_ENDPOINT_URL = os.environ.get("SYNC_ENDPOINT_URL")
    SYNC_PING_URL = os.environ.get("SYNC_PING_URL")
    SYNC_TIMEOUT_SECONDS = float(os.environ.get("SYNC_TIMEOUT_SECONDS", "10"))
    SYNC_INTERVAL_SECONDS = float(os.environ.get("SYNC_INTERVAL_SECONDS", "120"))
    SYNC_MAX_ATTEMPTS = int(os.environ.get("SYNC_MAX_ATTEMPTS", "5"))
    SYNC_WORKER_ENABLED = _env_bool("SYNC_WORKER_ENABLED", False)
    SYNC_WORKER_STOP_TIMEOUT = float(os.environ.get("SYNC_WORKER_STOP_TIMEOUT", "10"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
