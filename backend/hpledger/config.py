# backend/hpledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/hpledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///hpledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Bulk imports report at most this many row errors in detail
    IMPORT_ERROR_LIMIT = int(os.environ.get("IMPORT_ERROR_LIMIT", "10"))

    # Total attempts for a ledger write on lock/version conflicts (2 = retry once)
    CONCURRENCY_RETRY_ATTEMPTS = int(os.environ.get("CONCURRENCY_RETRY_ATTEMPTS", "2"))

    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "KES")
