# backend/bookstore/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _list_env(name: str, default: list[str]) -> list[str]:
    value = os.environ.get(name)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bookstore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location (PostgreSQL in production)
        "sqlite:///bookstore.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # What a sale does with a line that has no explicit unit price and no
    # price configured for the sale currency: "zero-price" sells it for 0,
    # "reject" fails the sale.
    UNPRICED_ITEM_POLICY = os.environ.get("UNPRICED_ITEM_POLICY", "zero-price")

    # A discount larger than the subtotal fails the sale unless this is set,
    # in which case the sale total goes negative and the register pays out.
    ALLOW_DISCOUNT_OVER_SUBTOTAL = _bool_env("ALLOW_DISCOUNT_OVER_SUBTOTAL", False)

    DEFAULT_LOW_STOCK_THRESHOLD = _int_env("DEFAULT_LOW_STOCK_THRESHOLD", 5)

    # Attempts for a settlement that loses a row-lock or version race
    SETTLEMENT_RETRY_ATTEMPTS = _int_env("SETTLEMENT_RETRY_ATTEMPTS", 3)

    SESSION_TTL_HOURS = _int_env("SESSION_TTL_HOURS", 24)

    TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_IDS = _list_env("TELEGRAM_CHAT_IDS", [])

    CORS_ALLOWED_ORIGINS = _list_env(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        ],
    )
