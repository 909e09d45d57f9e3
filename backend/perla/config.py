# backend/perla/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/perla.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///perla.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser origins allowed by the CORS hook (comma separated)
    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Business calendar: "today" for closures is evaluated in this IANA zone
    BUSINESS_TZ = os.environ.get("BUSINESS_TZ", "America/Guatemala")

    # Daily auto-close
    AUTO_CLOSE_ENABLED = _env_bool("AUTO_CLOSE_ENABLED")
    AUTO_CLOSE_BACKFILL_DAYS = int(os.environ.get("AUTO_CLOSE_BACKFILL_DAYS", "3"))
    AUTO_CLOSE_HOUR = int(os.environ.get("AUTO_CLOSE_HOUR", "20"))
    AUTO_CLOSE_MINUTE = int(os.environ.get("AUTO_CLOSE_MINUTE", "0"))
    AUTO_CLOSE_ACTOR = os.environ.get("AUTO_CLOSE_ACTOR", "system@auto-close")

    # Flat daily wage accrued per contributing worker on closure (decimal string).
    # A worker's own daily_salary takes precedence when set.
    PAYROLL_DAILY_RATE = os.environ.get("PAYROLL_DAILY_RATE", "0.00")
    PAYROLL_ACCRUAL_DESCRIPTION = os.environ.get("PAYROLL_ACCRUAL_DESCRIPTION", "Sueldo diario")

    # Bcrypt cost factor (tests lower it)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
