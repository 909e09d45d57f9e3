# backend/perla/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import User, CashDailySummary
from perla.time_utils import business_today, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        latest = (
            db.session.query(CashDailySummary)
            .filter(CashDailySummary.closed_by.isnot(None))
            .order_by(CashDailySummary.summary_date.desc())
            .first()
        )

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "last_closed_day": latest.summary_date.isoformat() if latest else None,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_scheduler_health() -> dict:
    scheduler = current_app.extensions.get("auto_close")
    if scheduler is None or not scheduler.enabled:
        return {"status": "disabled"}
    return {
        "status": "healthy" if scheduler.is_running else "degraded",
        "details": {
            "timezone": scheduler.tz_name,
            "close_at": f"{scheduler.hour:02d}:{scheduler.minute:02d}",
            "running": scheduler.is_running,
        },
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy (or degraded: scheduler enabled but not running)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    scheduler_health = check_scheduler_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif scheduler_health["status"] == "degraded":
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "business_date": business_today(current_app.config["BUSINESS_TZ"]).isoformat(),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "auto_close": scheduler_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Non-sensitive deployment info. Does NOT expose secrets or paths.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
