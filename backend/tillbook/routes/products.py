# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/tillbook/routes/products.py
from flask import Blueprint, current_app, request

from ..models import UNITS_OF_MEASURE
from ..services import products_service
from ..services.pricing_service import resolve_price
from ..services.products_service import ProductNotFoundError
from ..validation import ConflictError, ValidationError
from ..money import to_decimal

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - active: "1" to hide inactive products
    - q: name substring or exact barcode
    """
    active_only = request.args.get("active") in ("1", "true")
    rows = products_service.list_products(active_only=active_only, search=request.args.get("q"))
    return {"items": [p.to_dict() for p in rows], "count": len(rows)}


@products_bp.get("/units")
def list_units():
    return {
        "items": [
            {"code": code, "symbol": symbol, "allows_fractions": fractions}
            for code, (symbol, fractions) in UNITS_OF_MEASURE.items()
        ]
    }


@products_bp.get("/low-stock")
def low_stock():
    rows = products_service.low_stock_products()
    return {"items": [p.to_dict() for p in rows], "count": len(rows)}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return {"product": products_service.get_product(product_id).to_dict()}
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/<int:product_id>/price")
def quote_price(product_id: int):
    """Resolve the unit price tier for ?quantity= (default 1)."""
    try:
        product = products_service.get_product(product_id)
        quantity = to_decimal(request.args.get("quantity", "1"))
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ValueError:
        return {"error": "quantity must be a number"}, 400
    return {"product_id": product.id, "quantity": str(quantity), **resolve_price(product, quantity).to_dict()}


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(payload)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500
    return {"product": product.to_dict()}, 201


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, payload)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500
    return {"product": product.to_dict()}
