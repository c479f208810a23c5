"""
Product catalog rules and shop settings validation.
"""

from decimal import Decimal

import pytest

from tillbook.services import products_service, settings_service
from tillbook.services.cart_service import build_cart
from tillbook.validation import ConflictError, ValidationError


class TestProducts:
    def test_defaults_from_unit(self, db_session):
        box = products_service.create_product({"name": "Allumettes", "retail_price": "100", "unit": "box"})
        rice = products_service.create_product({"name": "Riz", "retail_price": "800", "unit": "kg"})
        assert box.allows_fractions is False
        assert rice.allows_fractions is True
        assert box.stock == Decimal("0")

    def test_unknown_unit(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "X", "retail_price": "1", "unit": "bushel"})

    def test_negative_price(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "X", "retail_price": "-1"})

    def test_wholesale_fields_go_together(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "X", "retail_price": "10", "wholesale_price": "8"})

    def test_duplicate_barcode(self, db_session):
        products_service.create_product({"name": "A", "retail_price": "1", "barcode": "6001234"})
        with pytest.raises(ConflictError):
            products_service.create_product({"name": "B", "retail_price": "1", "barcode": "6001234"})

    def test_update_cannot_half_clear_wholesale(self, db_session):
        p = products_service.create_product({
            "name": "Eau", "retail_price": "500", "wholesale_price": "400", "wholesale_min_quantity": "12",
        })
        with pytest.raises(ValidationError):
            products_service.update_product(p.id, {"wholesale_price": None})
        db_session.refresh(p)
        assert p.wholesale_price == Decimal("400")

    def test_low_stock_list(self, db_session, make_product):
        make_product(name="Savon", stock="1", min_stock="3")
        make_product(name="Sucre", stock="-2", min_stock="0")
        make_product(name="Huile", stock="50", min_stock="3")
        assert [p.name for p in products_service.low_stock_products()] == ["Savon", "Sucre"]

    def test_display_stock_clamps(self, db_session, make_product):
        p = make_product(stock="-4")
        assert products_service.display_stock(p) == Decimal("0")

    def test_search(self, db_session, make_product):
        make_product(name="Lait concentré")
        make_product(name="Pain")
        assert [p.name for p in products_service.list_products(search="lait")] == ["Lait concentré"]


class TestSettings:
    def test_defaults_created_on_first_read(self, db_session):
        settings = settings_service.get_settings()
        assert settings.currency == "XOF"
        assert settings_service.get_tax_rate() == Decimal("0")

    @pytest.mark.parametrize("payload", [
        {"tax_rate": "-0.05"},
        {"tax_rate": "1.5"},
        {"currency": "ZZZ"},
        {"language": "de"},
        {"unknown": 1},
    ])
    def test_rejected_updates(self, db_session, payload):
        with pytest.raises(ValidationError):
            settings_service.update_settings(payload)

    def test_tax_rate_flows_into_totals(self, db_session, make_product):
        settings_service.update_settings({"tax_rate": "0.18"})
        p = make_product(retail_price="1000")
        cart, _ = build_cart([{"product_id": p.id, "quantity": 1}], {p.id: p}, tax_rate=settings_service.get_tax_rate())
        assert cart.totals().total == Decimal("1180.00")
