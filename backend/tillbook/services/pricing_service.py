# Overview: Resolves the unit price a product sells at for a given quantity.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from ..money import money, to_decimal
from ..time_utils import utcnow


PRICE_RETAIL = "retail"
PRICE_WHOLESALE = "wholesale"
PRICE_PROMOTIONAL = "promotional"


@dataclass(frozen=True)
class PriceQuote:
    price: Decimal
    kind: str

    def to_dict(self) -> dict:
        return {"price": str(self.price), "kind": self.kind}


def resolve_price(product, quantity, now: datetime | None = None) -> PriceQuote:
    """
    Pick the applicable unit price tier.

    1. promotional_price while promotional_valid_until has not passed
       (no expiry means the promotion is open-ended)
    2. wholesale_price once quantity >= wholesale_min_quantity
    3. retail_price

    Pure: missing optional fields just skip their tier.
    """
    now = now or utcnow()
    qty = to_decimal(quantity)

    promo = getattr(product, "promotional_price", None)
    if promo is not None:
        valid_until = getattr(product, "promotional_valid_until", None)
        if valid_until is None or now <= _naive(valid_until):
            return PriceQuote(money(promo), PRICE_PROMOTIONAL)

    wholesale = getattr(product, "wholesale_price", None)
    threshold = getattr(product, "wholesale_min_quantity", None)
    if wholesale is not None and threshold is not None and qty >= to_decimal(threshold):
        return PriceQuote(money(wholesale), PRICE_WHOLESALE)

    return PriceQuote(money(product.retail_price), PRICE_RETAIL)


def _naive(dt: datetime) -> datetime:
    # SQLite hands back naive values; aware inputs are compared in UTC
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
