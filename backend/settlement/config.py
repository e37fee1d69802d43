# backend/settlement/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/returns.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///returns.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # POS-level switch for validate/process endpoints
    RETURNS_ENABLED = _env_flag("RETURNS_ENABLED", "true")

    EXCHANGE_SLIP_EXPIRY_DAYS = int(os.environ.get("EXCHANGE_SLIP_EXPIRY_DAYS", "90"))
    RETURN_NUMBER_PREFIX = "RET"
    EXCHANGE_SLIP_PREFIX = "EXS"

    SALE_LOOKUP_DEFAULT_DAYS = int(os.environ.get("SALE_LOOKUP_DEFAULT_DAYS", "30"))
    SALE_LOOKUP_LIMIT = 50

    READ_CACHE_TTL_SECONDS = int(os.environ.get("READ_CACHE_TTL_SECONDS", "60"))
    READ_CACHE_MAXSIZE = int(os.environ.get("READ_CACHE_MAXSIZE", "1024"))

    SETTLEMENT_RETRY_ATTEMPTS = int(os.environ.get("SETTLEMENT_RETRY_ATTEMPTS", "3"))
    SETTLEMENT_RETRY_BACKOFF = float(os.environ.get("SETTLEMENT_RETRY_BACKOFF", "0.1"))


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    READ_CACHE_TTL_SECONDS = 60
    SETTLEMENT_RETRY_BACKOFF = 0.0
