# backend/retailcore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retailcore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retailcore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Display currency for formatted amounts (receipts, summaries)
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "Rp")

    # Branch tax rate (percent) used when a request omits one
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "11")

    # Attempts for optimistic-lock retries before surfacing a conflict
    CONCURRENCY_RETRY_ATTEMPTS = int(os.environ.get("CONCURRENCY_RETRY_ATTEMPTS", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
