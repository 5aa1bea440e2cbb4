# backend/shopmate/routes/system.py
"""
System endpoints: landing page and health check. No authentication.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import func, select

from ..extensions import db
from ..models import User, InventoryItem, RefreshToken
from shopmate.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a few cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.scalar(select(func.count()).select_from(User))
        item_count = db.session.scalar(select(func.count()).select_from(InventoryItem))
        expired_tokens = db.session.scalar(
            select(func.count()).select_from(RefreshToken).where(RefreshToken.expires_at < utcnow())
        )

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "items": item_count,
                # Non-zero means `flask maintenance purge-refresh-tokens` is due
                "expired_refresh_tokens": expired_tokens,
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


@system_bp.get("/")
def index():
    return "ShopMate is Live"


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }, status_code
