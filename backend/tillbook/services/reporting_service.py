# Overview: Read-only dashboard aggregation over sales, customers and products.

from __future__ import annotations

from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Customer, Product, Sale
from ..money import ZERO, money, quantity as to_quantity
from ..time_utils import local_day_start, parse_iso_datetime, to_utc_z, utcnow
from .ledger_service import LedgerIntegrityError, audit_customer

"""
Dashboard rules

- Windows use local calendar days (SHOP_TIMEZONE) and include today:
  today = since local midnight, week = last 7 days, month = last 30 days.
- Only sales with at least one item are revenue; zero-item sales are
  manual ledger movements.
- Balances are reported per side (debt, credit) as well as netted.
"""

# window name -> days before today's local midnight
WINDOWS = (("today", 0), ("week", 6), ("month", 29))
TOP_PRODUCTS_LIMIT = 5
RECENT_SALES_LIMIT = 10


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _resolve_as_of(as_of) -> datetime:
    if as_of is None:
        return utcnow()
    if isinstance(as_of, str):
        try:
            parsed = parse_iso_datetime(as_of)
        except ValueError:
            raise ReportError(f"Invalid as_of: {as_of}")
        if parsed is None:
            raise ReportError("as_of cannot be blank")
        return parsed
    if as_of.tzinfo is not None:
        return as_of.astimezone(timezone.utc).replace(tzinfo=None)
    return as_of


def _revenue_sales(as_of: datetime) -> list[Sale]:
    """Revenue-eligible sales up to as_of, oldest first."""
    sales = (
        db.session.query(Sale)
        .options(selectinload(Sale.items))
        .filter(Sale.created_at <= as_of)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )
    return [s for s in sales if s.is_revenue]


def window_totals(sales: list[Sale], as_of: datetime, tz_name: str) -> dict:
    out = {}
    for name, days_back in WINDOWS:
        start = local_day_start(as_of, tz_name, days_back=days_back)
        in_window = [s for s in sales if start <= s.created_at <= as_of]
        out[name] = {
            "start": to_utc_z(start),
            "revenue": str(money(sum((money(s.total) for s in in_window), ZERO))),
            "sales_count": len(in_window),
        }
    return out


def top_products(sales: list[Sale], limit: int = TOP_PRODUCTS_LIMIT) -> list[dict]:
    """
    Group line items by product and rank by revenue.

    Ties keep first-encountered order (sorted() is stable).
    """
    grouped: dict[int, dict] = {}
    for sale in sales:
        for item in sale.items:
            row = grouped.get(item.product_id)
            if row is None:
                row = grouped[item.product_id] = {
                    "product_id": item.product_id,
                    "name": item.product_name,
                    "quantity": ZERO,
                    "revenue": ZERO,
                }
            row["quantity"] += to_quantity(item.quantity)
            row["revenue"] += money(item.subtotal)

    ranked = sorted(grouped.values(), key=lambda r: r["revenue"], reverse=True)[:limit]
    return [
        {**r, "quantity": str(r["quantity"]), "revenue": str(money(r["revenue"]))}
        for r in ranked
    ]


def balance_summary(customers: list[Customer], *, audit: bool = False) -> dict:
    """
    Split customer balances into what customers owe (debt) and what the shop
    holds for them (credit).

    net = debt - credit (positive: customers owe the shop overall);
    general_balance = credit - debt, the same figure from the ledger sign
    convention.
    """
    debt = ZERO
    credit = ZERO
    in_debt = 0
    with_credit = 0
    mismatches = []

    for customer in customers:
        if audit:
            result = audit_customer(customer)
            if not result.ok:
                mismatches.append(result)
            balance = result.replayed_balance
        else:
            balance = money(customer.balance)

        if balance < 0:
            debt += -balance
            in_debt += 1
        elif balance > 0:
            credit += balance
            with_credit += 1

    if mismatches:
        raise LedgerIntegrityError(mismatches)

    return {
        "debt": str(money(debt)),
        "credit": str(money(credit)),
        "net": str(money(debt - credit)),
        "general_balance": str(money(credit - debt)),
        "customers_in_debt": in_debt,
        "customers_with_credit": with_credit,
    }


def low_stock_count() -> int:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock <= Product.min_stock)
        .count()
    )


def compute_stats(as_of=None, *, audit: bool = False) -> dict:
    """
    Dashboard snapshot as of a point in time.

    audit=True replays every customer ledger and raises
    LedgerIntegrityError if any stored balance disagrees.
    """
    as_of = _resolve_as_of(as_of)
    tz_name = current_app.config["SHOP_TIMEZONE"]

    sales = _revenue_sales(as_of)
    customers = db.session.query(Customer).order_by(Customer.id.asc()).all()

    recent = (
        db.session.query(Sale)
        .filter(Sale.created_at <= as_of)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(RECENT_SALES_LIMIT)
        .all()
    )

    windows = window_totals(sales, as_of, tz_name)
    return {
        "as_of": to_utc_z(as_of),
        "timezone": tz_name,
        "windows": windows,
        "today_revenue": windows["today"]["revenue"],
        "week_revenue": windows["week"]["revenue"],
        "month_revenue": windows["month"]["revenue"],
        "balances": balance_summary(customers, audit=audit),
        "top_products": top_products(sales),
        "low_stock_count": low_stock_count(),
        "total_customers": len(customers),
        "recent_sales": [s.to_dict(include_items=False) for s in recent],
    }
