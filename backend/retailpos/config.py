# retailpos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///retailpos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Session tokens
    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 8)

    # Browser origins allowed to call the JSON API (admin UI + storefront)
    CORS_ALLOWED_ORIGINS = _env_list(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    )

    # Analytics capability: "mock" (in-process heuristics) or "http" (remote inference)
    ANALYTICS_BACKEND = os.environ.get("ANALYTICS_BACKEND", "mock").lower()
    ANALYTICS_ENDPOINT = os.environ.get("ANALYTICS_ENDPOINT")
    ANALYTICS_API_KEY = os.environ.get("ANALYTICS_API_KEY")
    ANALYTICS_TIMEOUT_SECONDS = _env_int("ANALYTICS_TIMEOUT_SECONDS", 30)

    # Default lookback for market basket analysis
    MARKET_BASKET_DAYS = _env_int("MARKET_BASKET_DAYS", 90)

    # Products at or below this stock level are flagged in the inventory report
    LOW_STOCK_THRESHOLD = _env_int("LOW_STOCK_THRESHOLD", 10)

    # Sales history and horizon for sales forecasting
    FORECAST_HISTORY_DAYS = _env_int("FORECAST_HISTORY_DAYS", 30)
    FORECAST_PERIOD_DAYS = _env_int("FORECAST_PERIOD_DAYS", 14)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "WARNING"
    ANALYTICS_BACKEND = "mock"
