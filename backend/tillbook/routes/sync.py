# Overview: Flask API routes for the sync queue; parses input and returns JSON responses.

# backend/tillbook/routes/sync.py
from flask import Blueprint, jsonify, request

from ..models import SYNC_FAILED, SYNC_PENDING, SYNC_SYNCED
from ..services import sync_service

sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.get("/status")
def status():
    return jsonify(sync_service.sync_status())


@sync_bp.post("/flush")
def flush():
    """Flush now. Per-entry failures are reported in the summary, never as errors."""
    return jsonify(sync_service.flush_queue())


@sync_bp.post("/retry-failed")
def retry_failed():
    return jsonify({"requeued": sync_service.retry_failed()})


@sync_bp.post("/clear-failed")
def clear_failed():
    return jsonify({"deleted": sync_service.clear_failed()})


@sync_bp.get("/entries")
def entries():
    status = request.args.get("status")
    if status and status not in (SYNC_PENDING, SYNC_SYNCED, SYNC_FAILED):
        return jsonify({"error": f"Invalid status: {status}"}), 400
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    rows = sync_service.list_entries(status=status, limit=limit)
    return jsonify({"items": [e.to_dict() for e in rows], "count": len(rows)})
