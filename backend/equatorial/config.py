# backend/equatorial/config.py
from __future__ import annotations
import os


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key. Also signs the storefront cart cookie.
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/equatorial.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///equatorial.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Standard rate used when no item-level tax snapshot exists (1500 bps = 15%).
    # The "tax_rate" store setting overrides this at runtime.
    DEFAULT_TAX_RATE_BPS = int(os.environ.get("DEFAULT_TAX_RATE_BPS", "1500"))
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "SCR")

    # Storefront dev servers allowed to call the API with credentials
    CORS_ORIGINS = _env_list(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    )

    # Cart cookie lifetime; the cart survives browser restarts like local storage would
    PERMANENT_SESSION_LIFETIME = int(os.environ.get("CART_LIFETIME_SECONDS", str(60 * 60 * 24 * 30)))
    SESSION_COOKIE_SAMESITE = "Lax"

    # Pagination defaults for admin list endpoints
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100
