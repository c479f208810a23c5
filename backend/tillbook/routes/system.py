# Overview: Health and activity endpoints.

# backend/tillbook/routes/system.py
"""
System health and audit trail endpoints.
"""

import time
from flask import Blueprint, current_app, request

from ..extensions import db
from ..models import Customer, Product, Sale
from ..services import activity_service, sync_service
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a few cheap counts.
    """
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "customers": db.session.query(Customer).count(),
            "sales": db.session.query(Sale).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_sync_health() -> dict:
    """Sync backlog; failed entries degrade but never break health."""
    try:
        status = sync_service.sync_status(online=False)
    except Exception:
        current_app.logger.exception("Sync health check failed")
        return {"status": "unhealthy", "error": "Sync queue error"}
    return {
        "status": "degraded" if status["failed_items"] else "healthy",
        "details": {
            "pending_items": status["pending_items"],
            "failed_items": status["failed_items"],
            "last_sync": status["last_sync"],
        },
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    sync_health = check_sync_health()

    all_checks = [database_health, sync_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "device_id": current_app.config["DEVICE_ID"],
        "checks": {"database": database_health, "sync_queue": sync_health},
    }
    return response, http_status


@system_bp.get("/api/activity")
def list_activity_route():
    module = request.args.get("module")
    actor_id = request.args.get("actor_id")
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    rows = activity_service.list_activity(module=module, actor_id=actor_id, limit=limit)
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}
