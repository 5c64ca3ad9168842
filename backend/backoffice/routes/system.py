# backend/backoffice/routes/system.py
"""
System health endpoint.

GET /health is public. It reports database reachability and a few row
counts; it never exposes connection details.
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import audited
from ..extensions import db
from ..logging_config import emit
from ..models import Customer, SessionToken, User, Vendor
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "active_sessions": db.session.query(SessionToken).filter_by(is_revoked=False).count(),
            "customers": Customer.live().count(),
            "vendors": Vendor.live().count(),
        }
    except SQLAlchemyError as exc:
        db.session.rollback()
        emit("database", logging.ERROR, "Database health check failed", {"error": type(exc).__name__})
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }

    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "details": details,
    }


@system_bp.get("/health")
@audited
def health_route(ctx):
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503
