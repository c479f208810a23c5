# Overview: In-memory cart value object; nothing here touches the database.

"""
Cart Aggregator

WHY: The cart belongs to the calling screen/session, not to module state.
It is built up line by line, priced through pricing_service, and handed to
sales_service.finalize_sale as a plain value.

RULES:
- Adding a product already in the cart re-prices the whole line for the new
  total quantity (crossing a wholesale threshold re-prices every unit).
- Line subtotal = unit_price * quantity - line_discount, clamped at 0.
- Cart-wide discount is fixed or percentage; percentage is capped at 100%
  and the discount amount is capped at the subtotal.
- Tax = subtotal * tax_rate; a negative tax rate is treated as 0.
- Total = subtotal - discount + tax, never negative.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..money import ZERO, is_whole, money, quantity as to_quantity, to_decimal
from ..validation import ValidationError
from .pricing_service import resolve_price


DISCOUNT_FIXED = "fixed"
DISCOUNT_PERCENTAGE = "percentage"

HUNDRED = Decimal("100")


class CartError(ValidationError):
    """Raised for invalid cart mutations."""
    pass


@dataclass
class CartLine:
    product: object
    quantity: Decimal
    unit_price: Decimal
    price_kind: str
    discount: Decimal = ZERO

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def gross(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    @property
    def subtotal(self) -> Decimal:
        return max(ZERO, money(self.gross - self.discount))

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product.name,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "price_kind": self.price_kind,
            "discount": str(self.discount),
            "subtotal": str(self.subtotal),
        }


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    line_discount: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "line_discount": str(self.line_discount),
            "discount": str(self.discount),
            "tax": str(self.tax),
            "total": str(self.total),
        }


@dataclass
class Cart:
    tax_rate: Decimal = ZERO
    discount_kind: str = DISCOUNT_FIXED
    discount_value: Decimal = ZERO
    lines: list[CartLine] = field(default_factory=list)
    now: datetime | None = None

    def __post_init__(self):
        self.tax_rate = to_decimal(self.tax_rate)
        self.discount_value = to_decimal(self.discount_value)

    # ------------------------------------------------------------------
    # Line mutations
    # ------------------------------------------------------------------

    def find(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def add_item(self, product, quantity=1) -> CartLine:
        qty = self._check_quantity(product, quantity)
        if qty <= 0:
            raise CartError("Quantity must be positive")

        line = self.find(product.id)
        if line is None:
            quote = resolve_price(product, qty, now=self.now)
            line = CartLine(product=product, quantity=qty, unit_price=quote.price, price_kind=quote.kind)
            self.lines.append(line)
            return line

        self._reprice(line, self._check_quantity(product, line.quantity + qty))
        return line

    def set_quantity(self, product_id: int, quantity) -> CartLine | None:
        line = self.find(product_id)
        if line is None:
            raise CartError(f"Product {product_id} is not in the cart")

        try:
            qty = to_quantity(quantity)
        except ValueError:
            raise CartError("Quantity must be a number")
        if qty <= 0:
            self.remove_item(product_id)
            return None

        self._reprice(line, self._check_quantity(line.product, qty))
        return line

    def set_line_discount(self, product_id: int, discount) -> CartLine:
        line = self.find(product_id)
        if line is None:
            raise CartError(f"Product {product_id} is not in the cart")
        try:
            amount = money(discount)
        except ValueError:
            raise CartError("Line discount must be a number")
        if amount < 0:
            raise CartError("Line discount cannot be negative")
        line.discount = amount
        return line

    def remove_item(self, product_id: int) -> None:
        self.lines = [line for line in self.lines if line.product_id != product_id]

    def clear(self) -> None:
        self.lines = []
        self.discount_kind = DISCOUNT_FIXED
        self.discount_value = ZERO

    def set_discount(self, value, kind: str = DISCOUNT_FIXED) -> None:
        if kind not in (DISCOUNT_FIXED, DISCOUNT_PERCENTAGE):
            raise CartError(f"Invalid discount type: {kind}")
        try:
            amount = to_decimal(value)
        except ValueError:
            raise CartError("Discount must be a number")
        if amount < 0:
            raise CartError("Discount cannot be negative")
        self.discount_kind = kind
        self.discount_value = amount

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def totals(self) -> CartTotals:
        subtotal = money(sum((line.subtotal for line in self.lines), ZERO))
        line_discount = money(sum((line.discount for line in self.lines), ZERO))

        if self.discount_kind == DISCOUNT_PERCENTAGE:
            pct = min(self.discount_value, HUNDRED)
            discount = money(subtotal * pct / HUNDRED)
        else:
            discount = money(self.discount_value)
        discount = min(max(discount, ZERO), subtotal)

        rate = self.tax_rate if self.tax_rate > 0 else ZERO
        tax = money(subtotal * rate)

        total = max(ZERO, money(subtotal - discount + tax))
        return CartTotals(
            subtotal=subtotal,
            line_discount=line_discount,
            discount=discount,
            tax=tax,
            total=total,
        )

    def without(self, product_ids) -> "Cart":
        """Copy of this cart minus the given products (same discount and tax)."""
        drop = set(product_ids)
        return Cart(
            tax_rate=self.tax_rate,
            discount_kind=self.discount_kind,
            discount_value=self.discount_value,
            lines=[line for line in self.lines if line.product_id not in drop],
            now=self.now,
        )

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "discount_type": self.discount_kind,
            "discount_value": str(self.discount_value),
            "tax_rate": str(self.tax_rate),
            "totals": self.totals().to_dict(),
        }

    # ------------------------------------------------------------------

    def _reprice(self, line: CartLine, qty: Decimal) -> None:
        quote = resolve_price(line.product, qty, now=self.now)
        line.quantity = qty
        line.unit_price = quote.price
        line.price_kind = quote.kind

    @staticmethod
    def _check_quantity(product, quantity) -> Decimal:
        try:
            qty = to_quantity(quantity)
        except ValueError:
            raise CartError("Quantity must be a number")
        if not getattr(product, "allows_fractions", True) and not is_whole(qty):
            raise CartError(f"Fractional quantities are not allowed for unit '{product.unit}'")
        return qty


def build_cart(lines: list[dict], products_by_id: dict, *, tax_rate=ZERO, discount=None, now=None) -> tuple[Cart, list[int]]:
    """
    Build a cart from request lines: [{"product_id", "quantity", "discount"}].

    Lines whose product is unknown are skipped and their ids returned, so the
    caller can warn instead of aborting the whole sale.
    """
    cart = Cart(tax_rate=tax_rate, now=now)
    missing: list[int] = []
    for raw in lines or []:
        if not isinstance(raw, dict):
            raise CartError("Each cart line must be an object")
        product_id = raw.get("product_id")
        product = products_by_id.get(product_id)
        if product is None:
            missing.append(product_id)
            continue
        cart.add_item(product, raw.get("quantity", 1))
        if raw.get("discount") not in (None, "", 0):
            cart.set_line_discount(product_id, raw["discount"])

    if discount:
        cart.set_discount(discount.get("value", 0), discount.get("type", DISCOUNT_FIXED))
    return cart, missing
