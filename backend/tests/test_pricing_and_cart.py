"""
Pricing tiers and cart arithmetic. Pure in-memory: no database needed.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from tillbook.services.cart_service import (
    Cart,
    CartError,
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    build_cart,
)
from tillbook.services.pricing_service import (
    PRICE_PROMOTIONAL,
    PRICE_RETAIL,
    PRICE_WHOLESALE,
    resolve_price,
)

NOW = datetime(2026, 3, 15, 12, 0, 0)


def product(pid=1, retail="100", unit="piece", allows_fractions=True, **extra):
    fields = {
        "id": pid,
        "name": f"P{pid}",
        "unit": unit,
        "allows_fractions": allows_fractions,
        "retail_price": Decimal(retail),
        "wholesale_price": None,
        "wholesale_min_quantity": None,
        "promotional_price": None,
        "promotional_valid_until": None,
    }
    fields.update(extra)
    return SimpleNamespace(**fields)


class TestResolvePrice:
    def test_retail_when_no_other_tier(self):
        quote = resolve_price(product(retail="250"), 1, now=NOW)
        assert quote.price == Decimal("250.00")
        assert quote.kind == PRICE_RETAIL

    def test_wholesale_at_threshold(self):
        p = product(retail="100", wholesale_price=Decimal("80"), wholesale_min_quantity=Decimal("10"))
        assert resolve_price(p, 9, now=NOW).kind == PRICE_RETAIL
        quote = resolve_price(p, 10, now=NOW)
        assert quote.kind == PRICE_WHOLESALE
        assert quote.price == Decimal("80.00")

    def test_wholesale_needs_both_fields(self):
        p = product(retail="100", wholesale_price=Decimal("80"))
        assert resolve_price(p, 1000, now=NOW).kind == PRICE_RETAIL

    def test_active_promotion_beats_wholesale(self):
        p = product(
            retail="100",
            wholesale_price=Decimal("80"),
            wholesale_min_quantity=Decimal("2"),
            promotional_price=Decimal("70"),
            promotional_valid_until=NOW + timedelta(days=1),
        )
        quote = resolve_price(p, 50, now=NOW)
        assert quote.kind == PRICE_PROMOTIONAL
        assert quote.price == Decimal("70.00")

    def test_expired_promotion_is_ignored(self):
        p = product(
            retail="100",
            promotional_price=Decimal("70"),
            promotional_valid_until=NOW - timedelta(seconds=1),
        )
        assert resolve_price(p, 1, now=NOW).kind == PRICE_RETAIL

    def test_promotion_without_expiry_applies(self):
        p = product(retail="100", promotional_price=Decimal("90"))
        assert resolve_price(p, 1, now=NOW).kind == PRICE_PROMOTIONAL


class TestCartLines:
    def test_adding_again_reprices_whole_line(self):
        p = product(retail="100", wholesale_price=Decimal("80"), wholesale_min_quantity=Decimal("5"))
        cart = Cart(now=NOW)
        cart.add_item(p, 3)
        line = cart.add_item(p, 2)

        assert len(cart.lines) == 1
        assert line.quantity == Decimal("5.000")
        assert line.unit_price == Decimal("80.00")
        assert line.price_kind == PRICE_WHOLESALE
        assert line.subtotal == Decimal("400.00")

    def test_set_quantity_zero_removes_line(self):
        p = product()
        cart = Cart(now=NOW)
        cart.add_item(p, 2)
        assert cart.set_quantity(p.id, 0) is None
        assert cart.is_empty

    def test_set_quantity_reprices_back_to_retail(self):
        p = product(retail="100", wholesale_price=Decimal("80"), wholesale_min_quantity=Decimal("5"))
        cart = Cart(now=NOW)
        cart.add_item(p, 6)
        line = cart.set_quantity(p.id, 2)
        assert line.price_kind == PRICE_RETAIL
        assert line.subtotal == Decimal("200.00")

    def test_line_discount_clamps_subtotal_at_zero(self):
        p = product(retail="100")
        cart = Cart(now=NOW)
        cart.add_item(p, 1)
        line = cart.set_line_discount(p.id, "150")
        assert line.subtotal == Decimal("0")

    def test_negative_line_discount_rejected(self):
        p = product()
        cart = Cart(now=NOW)
        cart.add_item(p, 1)
        with pytest.raises(CartError):
            cart.set_line_discount(p.id, "-1")

    def test_fractional_quantity_for_weighed_product(self):
        p = product(retail="700", unit="kg", allows_fractions=True)
        cart = Cart(now=NOW)
        line = cart.add_item(p, "2.255")
        assert line.quantity == Decimal("2.255")
        assert line.subtotal == Decimal("1578.50")

    def test_fractional_quantity_rejected_for_whole_units(self):
        p = product(unit="box", allows_fractions=False)
        cart = Cart(now=NOW)
        with pytest.raises(CartError):
            cart.add_item(p, "1.5")

    def test_unknown_line_rejected(self):
        cart = Cart(now=NOW)
        with pytest.raises(CartError):
            cart.set_quantity(42, 1)

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_quantity_rejected(self, value):
        p = product()
        cart = Cart(now=NOW)
        with pytest.raises(CartError):
            cart.add_item(p, value)
        cart.add_item(p, 1)
        with pytest.raises(CartError):
            cart.set_quantity(p.id, value)

    def test_non_finite_discounts_rejected(self):
        p = product()
        cart = Cart(now=NOW)
        cart.add_item(p, 1)
        with pytest.raises(CartError):
            cart.set_line_discount(p.id, "NaN")
        with pytest.raises(CartError):
            cart.set_discount("Infinity", DISCOUNT_PERCENTAGE)
        assert cart.totals().total == Decimal("100.00")


class TestCartTotals:
    def _cart(self, tax_rate="0"):
        cart = Cart(tax_rate=Decimal(tax_rate), now=NOW)
        cart.add_item(product(1, retail="600"), 1)
        cart.add_item(product(2, retail="400"), 1)
        return cart

    def test_plain_totals(self):
        totals = self._cart(tax_rate="0.18").totals()
        assert totals.subtotal == Decimal("1000.00")
        assert totals.tax == Decimal("180.00")
        assert totals.total == Decimal("1180.00")

    def test_fixed_discount(self):
        cart = self._cart()
        cart.set_discount("150", DISCOUNT_FIXED)
        totals = cart.totals()
        assert totals.discount == Decimal("150.00")
        assert totals.total == Decimal("850.00")

    def test_percentage_discount_capped_at_100(self):
        cart = self._cart()
        cart.set_discount("150", DISCOUNT_PERCENTAGE)
        totals = cart.totals()
        assert totals.discount == Decimal("1000.00")
        assert totals.total == Decimal("0.00")

    def test_fixed_discount_capped_at_subtotal(self):
        cart = self._cart()
        cart.set_discount("5000", DISCOUNT_FIXED)
        totals = cart.totals()
        assert totals.discount == totals.subtotal
        assert totals.total >= 0

    def test_negative_tax_rate_treated_as_zero(self):
        totals = self._cart(tax_rate="-0.5").totals()
        assert totals.tax == Decimal("0.00")
        assert totals.total == Decimal("1000.00")

    @pytest.mark.parametrize("kind,value,tax_rate", [
        (DISCOUNT_PERCENTAGE, "150", "0"),
        (DISCOUNT_PERCENTAGE, "100", "-1"),
        (DISCOUNT_FIXED, "99999", "0.2"),
        (DISCOUNT_FIXED, "0", "-0.3"),
    ])
    def test_total_never_negative(self, kind, value, tax_rate):
        cart = self._cart(tax_rate=tax_rate)
        cart.set_discount(value, kind)
        assert cart.totals().total >= 0

    def test_negative_cart_discount_rejected(self):
        with pytest.raises(CartError):
            self._cart().set_discount("-10")

    def test_without_drops_lines_and_keeps_discount(self):
        cart = self._cart()
        cart.set_discount("10", DISCOUNT_PERCENTAGE)
        smaller = cart.without([2])
        assert [line.product_id for line in smaller.lines] == [1]
        assert smaller.totals().discount == Decimal("60.00")
        assert len(cart.lines) == 2


class TestBuildCart:
    def test_skips_unknown_products(self):
        p = product(1, retail="100")
        cart, missing = build_cart(
            [{"product_id": 1, "quantity": 2}, {"product_id": 99, "quantity": 1}],
            {1: p},
            tax_rate=Decimal("0"),
            now=NOW,
        )
        assert missing == [99]
        assert cart.totals().total == Decimal("200.00")

    def test_applies_line_and_cart_discounts(self):
        p = product(1, retail="100")
        cart, _ = build_cart(
            [{"product_id": 1, "quantity": 3, "discount": "50"}],
            {1: p},
            discount={"type": "fixed", "value": "25"},
            now=NOW,
        )
        totals = cart.totals()
        assert totals.subtotal == Decimal("250.00")
        assert totals.total == Decimal("225.00")
