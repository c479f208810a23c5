# Overview: Flask API routes for the dashboard; parses input and returns JSON responses.

# backend/tillbook/routes/reports.py
from flask import Blueprint, current_app, jsonify, request

from ..services.ledger_service import LedgerIntegrityError
from ..services.reporting_service import ReportError, compute_stats

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
def dashboard():
    """
    Query params:
    - as_of: ISO-8601 datetime (default now)
    - audit: "1" to replay every customer ledger (409 on mismatch)
    """
    audit = request.args.get("audit") in ("1", "true")
    try:
        stats = compute_stats(request.args.get("as_of"), audit=audit)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except LedgerIntegrityError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to compute dashboard")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(stats)
