# backend/wellpos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/wellpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///wellpos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ephemeral session cache (source of truth for "is this session live")
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    SESSION_CACHE_PREFIX = os.environ.get("SESSION_CACHE_PREFIX", "wellpos")

    # Signed credentials
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-secret-change-me")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

    # One access lifetime for both principal kinds; refresh/session lifetime per kind
    ACCESS_TOKEN_TTL_SECONDS = _env_int("ACCESS_TOKEN_TTL_SECONDS", 60 * 60)
    EMPLOYEE_SESSION_TTL_SECONDS = _env_int("EMPLOYEE_SESSION_TTL_SECONDS", 7 * 24 * 60 * 60)
    CUSTOMER_SESSION_TTL_SECONDS = _env_int("CUSTOMER_SESSION_TTL_SECONDS", 24 * 60 * 60)
    QR_CODE_TTL_SECONDS = _env_int("QR_CODE_TTL_SECONDS", 24 * 60 * 60)

    # Single-tenant deployments may pin a default company; None means "derive from context"
    DEFAULT_COMPANY_ID = _env_int("DEFAULT_COMPANY_ID", 0) or None

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
