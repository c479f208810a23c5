# Overview: Flask API routes for customers and their ledger; parses input and returns JSON responses.

# backend/tillbook/routes/customers.py
"""
Customer routes.

Balances are never patched directly: payments, credits and adjustments go
through ledger_service so every movement lands on the transaction log.
"""
from flask import Blueprint, current_app, jsonify, request

from ..services import customers_service, ledger_service
from ..services.customers_service import CustomerNotFoundError
from ..services.ledger_service import LedgerError
from ..validation import ValidationError

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _json_error(exc: Exception):
    if isinstance(exc, CustomerNotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, LedgerError):
        return jsonify({"error": str(exc), "details": exc.details}), 400
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    current_app.logger.exception("Customer request failed")
    return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("")
def list_customers():
    active_only = request.args.get("active") in ("1", "true")
    rows = customers_service.list_customers(active_only=active_only, search=request.args.get("q"))
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}


@customers_bp.post("")
def create_customer_route():
    try:
        customer = customers_service.create_customer(request.get_json(silent=True) or {})
    except Exception as e:
        return _json_error(e)
    return {"customer": customer.to_dict()}, 201


@customers_bp.get("/<int:customer_id>")
def get_customer(customer_id: int):
    try:
        return {"customer": customers_service.get_customer(customer_id).to_dict()}
    except Exception as e:
        return _json_error(e)


@customers_bp.patch("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        customer = customers_service.update_customer(customer_id, request.get_json(silent=True) or {})
    except Exception as e:
        return _json_error(e)
    return {"customer": customer.to_dict()}


@customers_bp.get("/<int:customer_id>/transactions")
def list_transactions(customer_id: int):
    try:
        rows = customers_service.list_transactions(customer_id)
    except Exception as e:
        return _json_error(e)
    return {"items": [t.to_dict() for t in rows], "count": len(rows)}


@customers_bp.post("/<int:customer_id>/payments")
def record_payment(customer_id: int):
    """Customer pays a debt or deposits an advance. Body: amount, payment_method, description."""
    data = request.get_json(silent=True) or {}
    try:
        tx = ledger_service.record_customer_payment(
            customer_id,
            data.get("amount"),
            payment_method=data.get("payment_method", "cash"),
            description=data.get("description"),
            actor_id=data.get("actor_id"),
        )
    except Exception as e:
        return _json_error(e)
    return {"transaction": tx.to_dict()}, 201


@customers_bp.post("/<int:customer_id>/credits")
def record_credit(customer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        tx = ledger_service.record_customer_credit(
            customer_id,
            data.get("amount"),
            description=data.get("description"),
            actor_id=data.get("actor_id"),
        )
    except Exception as e:
        return _json_error(e)
    return {"transaction": tx.to_dict()}, 201


@customers_bp.post("/<int:customer_id>/adjustments")
def adjust_balance(customer_id: int):
    """Body: new_balance, reason."""
    data = request.get_json(silent=True) or {}
    if "new_balance" not in data:
        return {"error": "new_balance is required"}, 400
    try:
        tx = ledger_service.adjust_balance(
            customer_id,
            data["new_balance"],
            reason=data.get("reason"),
            actor_id=data.get("actor_id"),
        )
    except Exception as e:
        return _json_error(e)
    return {"transaction": tx.to_dict()}, 201


@customers_bp.get("/<int:customer_id>/audit")
def audit_customer(customer_id: int):
    try:
        customer = customers_service.get_customer(customer_id)
    except Exception as e:
        return _json_error(e)
    return ledger_service.audit_customer(customer).to_dict()


@customers_bp.get("/audit")
def audit_all():
    results = ledger_service.audit_all_customers()
    mismatches = [r.to_dict() for r in results if not r.ok]
    return {"checked": len(results), "mismatches": mismatches, "ok": not mismatches}
