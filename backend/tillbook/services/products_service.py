# backend/tillbook/services/products_service.py
"""
Products Service

Catalog CRUD plus the stock primitives used by the sale engine. Stock is
only decremented by sales_service; everything else here is inventory
management glue.
"""
from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Product, UNITS_OF_MEASURE
from ..money import ZERO, quantity as to_quantity
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, enforce_rules_product, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "barcode",
        "unit",
        "allows_fractions",
        "retail_price",
        "wholesale_price",
        "wholesale_min_quantity",
        "promotional_price",
        "promotional_valid_until",
        "cost",
        "stock",
        "min_stock",
        "is_active",
    },
    required_on_create={"name", "retail_price"},
)


class ProductNotFoundError(LookupError):
    """Raised when a product id does not resolve."""


def list_products(active_only: bool = False, search: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter((Product.name.ilike(like)) | (Product.barcode == search.strip()))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def products_by_id(product_ids) -> dict[int, Product]:
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in rows}


def _check_barcode(barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    q = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Barcode already in use: {barcode}")


def create_product(data: dict) -> Product:
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch, UNITS_OF_MEASURE)
    _check_barcode(patch.get("barcode"))

    unit = patch.setdefault("unit", "piece")
    if "allows_fractions" not in patch:
        patch["allows_fractions"] = UNITS_OF_MEASURE[unit][1]
    if (patch.get("wholesale_price") is None) != (patch.get("wholesale_min_quantity") is None):
        raise ValidationError("wholesale_price and wholesale_min_quantity must be set together")

    product = Product(**patch)
    if product.stock is None:
        product.stock = ZERO
    if product.min_stock is None:
        product.min_stock = ZERO
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, data: dict) -> Product:
    product = get_product(product_id)
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch, UNITS_OF_MEASURE)
    if "barcode" in patch:
        _check_barcode(patch["barcode"], exclude_id=product.id)

    for key, value in patch.items():
        setattr(product, key, value)
    if (product.wholesale_price is None) != (product.wholesale_min_quantity is None):
        db.session.rollback()
        raise ValidationError("wholesale_price and wholesale_min_quantity must be set together")
    db.session.commit()
    return product


def decrement_stock(product: Product, qty) -> Decimal:
    """
    Subtract a sold quantity from stored stock, without committing.

    The stored value is NOT clamped: an oversell leaves negative stock so the
    discrepancy stays auditable. Use display_stock for what screens show.
    """
    product.stock = to_quantity(product.stock) - to_quantity(qty)
    return product.stock


def display_stock(product: Product) -> Decimal:
    return max(ZERO, to_quantity(product.stock))


def low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock <= Product.min_stock)
        .order_by(Product.name.asc())
        .all()
    )
