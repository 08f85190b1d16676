# Overview: Flask API routes for system health; no authentication.

"""
System health endpoint.

Reports database reachability and session cache availability. A missing
cache means every bearer request is rejected, so it makes the service
"degraded" rather than "healthy".
"""

import time

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text

from ..extensions import db, session_cache
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_session_cache_health() -> dict:
    start_time = time.time()
    available = session_cache.is_available()
    elapsed_ms = (time.time() - start_time) * 1000
    return {
        "status": "healthy" if available else "unhealthy",
        "latency_ms": round(elapsed_ms, 2),
    }


@system_bp.get("/health")
def health():
    database = check_database_health()
    cache = check_session_cache_health()

    if database["status"] != "healthy":
        status, code = "unhealthy", 503
    elif cache["status"] != "healthy":
        status, code = "degraded", 503
    else:
        status, code = "healthy", 200

    return jsonify({
        "status": status,
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database, "session_cache": cache},
    }), code
