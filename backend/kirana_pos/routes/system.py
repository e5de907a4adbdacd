# backend/kirana_pos/routes/system.py
"""
System health endpoint.

Reports database connectivity and the invoice counter so deploy scripts and
the billing screen can tell whether checkout will work.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services.invoice_service import peek_next_number
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial round trip.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "dialect": db.engine.dialect.name,
            "response_time_ms": round(elapsed_ms, 2),
            "next_invoice_number": peek_next_number(),
        }
    except Exception as e:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "error": str(e),
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "time": to_utc_z(utcnow()),
        "database": database,
    }
    return body, 200 if healthy else 503
