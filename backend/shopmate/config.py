# backend/shopmate/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopmate.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopmate.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Signing secrets. Access and refresh tokens never share a key, so a
    # refresh token can not be replayed as an access token.
    ACCESS_TOKEN_SECRET = os.environ.get("ACCESS_TOKEN", "dev-access-secret-change-me")
    REFRESH_TOKEN_SECRET = os.environ.get("REFRESH_TOKEN", "dev-refresh-secret-change-me")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

    ACCESS_TOKEN_TTL_MINUTES = _int_env("ACCESS_TOKEN_TTL_MINUTES", 60)
    REFRESH_TOKEN_TTL_DAYS = _int_env("REFRESH_TOKEN_TTL_DAYS", 7)

    BCRYPT_ROUNDS = _int_env("BCRYPT_ROUNDS", 10)

    # Upper bound on how long a transaction waits for a row/database lock
    STORAGE_TIMEOUT_SECONDS = _int_env("STORAGE_TIMEOUT_SECONDS", 5)
    PURCHASE_RETRY_ATTEMPTS = _int_env("PURCHASE_RETRY_ATTEMPTS", 3)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
