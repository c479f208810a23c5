# Overview: Flask API routes for checkout; parses input and returns JSON responses.

# backend/tillbook/routes/sales.py
"""
Checkout routes.

Request cart shape:
    {"lines": [{"product_id": 1, "quantity": "1.5", "discount": "0"}],
     "discount": {"type": "fixed" | "percentage", "value": "10"}}
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..services.cart_service import CartError, build_cart
from ..services.products_service import products_by_id
from ..services.sales_service import CommitError, SaleNotFoundError, SaleValidationError
from ..services.settings_service import get_tax_rate
from ..time_utils import parse_iso_datetime

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _cart_from_request(data: dict):
    lines = data.get("lines")
    if not isinstance(lines, list):
        raise CartError("lines must be a list")
    products = products_by_id(
        line.get("product_id") for line in lines if isinstance(line, dict)
    )
    return build_cart(lines, products, tax_rate=get_tax_rate(), discount=data.get("discount"))


@sales_bp.post("/quote")
def quote_route():
    """Price a cart without writing anything."""
    data = request.get_json(silent=True) or {}
    try:
        cart, missing = _cart_from_request(data)
    except CartError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"cart": cart.to_dict(), "dropped_product_ids": missing})


@sales_bp.post("")
def finalize_route():
    """
    Finalize a sale.

    Body: cart fields plus payment_method, customer_id, advance_amount_used,
    amount_tendered, allow_partial, cashier_id, note.
    """
    data = request.get_json(silent=True) or {}
    try:
        cart, missing = _cart_from_request(data)
        sale = sales_service.finalize_sale(
            cart,
            data.get("payment_method"),
            customer_id=data.get("customer_id"),
            advance_amount_used=data.get("advance_amount_used") or 0,
            note=data.get("note"),
            amount_tendered=data.get("amount_tendered"),
            cashier_id=data.get("cashier_id"),
            allow_partial=bool(data.get("allow_partial", False)),
        )
    except CartError as e:
        return jsonify({"error": str(e), "code": "invalid_cart"}), 400
    except SaleValidationError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400
    except CommitError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to finalize sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict(), "dropped_product_ids": missing}), 201


@sales_bp.get("")
def list_sales_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400
    rows = sales_service.list_sales(
        start=start,
        end=end,
        customer_id=request.args.get("customer_id", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [s.to_dict(include_items=False) for s in rows], "count": len(rows)})


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"sale": sale.to_dict()})
