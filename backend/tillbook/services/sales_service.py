"""
Sales Service - finalizes a cart into a committed sale

WHY: Every checkout screen funnels through finalize_sale, so the payment
rules, stock movement and customer ledger math live in exactly one place.

ORDER OF WORK:
1. Validate everything (no writes on any validation failure).
2. Allocate the receipt number (committed on its own, never reused).
3. Write Sale + SaleItems, decrement Product stock, append customer ledger
   movements, all in ONE database transaction.
4. Publish sale_finalized / customer_ledger_changed for subscribers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import events
from ..extensions import db
from ..models import (
    Customer,
    Employee,
    Product,
    Sale,
    SaleItem,
    PAYMENT_CREDIT,
    PAYMENT_METHODS,
    STATUS_CREDIT,
    STATUS_PAID,
    STATUS_PARTIAL,
)
from ..money import ZERO, money, to_decimal
from ..time_utils import utcnow
from .cart_service import Cart
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import PAYMENT_METHOD_ADVANCE, TX_GAVE, TX_TOOK, append_transaction
from .products_service import decrement_stock, products_by_id
from .receipt_service import next_receipt_number

logger = logging.getLogger(__name__)


class SaleError(Exception):
    """Raised for sale operation errors."""
    code = "sale_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleValidationError(SaleError):
    """Input problem detected before anything was written."""
    code = "invalid_sale"


class EmptyCartError(SaleValidationError):
    code = "empty_cart"


class CustomerRequiredError(SaleValidationError):
    code = "customer_required"


class InvalidAdvanceError(SaleValidationError):
    code = "invalid_advance"


class InsufficientPaymentError(SaleValidationError):
    code = "insufficient_payment"


class InvalidPaymentMethodError(SaleValidationError):
    code = "invalid_payment_method"


class CustomerNotFoundError(SaleValidationError):
    code = "customer_not_found"


class CommitError(SaleError):
    """
    The sale transaction failed to commit.

    The commit is all-or-nothing, so `written` is always empty and `pending`
    names every aggregate the sale would have touched.
    """
    code = "commit_failed"

    def __init__(self, message: str, written: list[str], pending: list[str], details: dict | None = None):
        super().__init__(message, details={**(details or {}), "written": written, "pending": pending})
        self.written = written
        self.pending = pending


class SaleNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class PaymentPlan:
    status: str
    amount_paid: Decimal
    change: Decimal
    shortfall: Decimal


def plan_payment(
    payment_method: str,
    total: Decimal,
    advance: Decimal,
    amount_tendered=None,
    *,
    allow_partial: bool = False,
) -> PaymentPlan:
    """
    Decide status, amount paid and change for a validated sale.

    Credit: the advance is all that is paid now, the rest becomes debt.
    Otherwise the tender defaults to the amount still due after the advance;
    under-tendering is rejected unless the caller accepts a partial sale.
    """
    remaining = money(total - advance)

    if payment_method == PAYMENT_CREDIT:
        return PaymentPlan(STATUS_CREDIT, advance, ZERO, ZERO)

    if amount_tendered is None:
        tendered = remaining
    else:
        try:
            tendered = money(amount_tendered)
        except ValueError:
            raise SaleValidationError("amount_tendered must be a number")
        if tendered < 0:
            raise SaleValidationError("amount_tendered cannot be negative")

    if tendered >= remaining:
        return PaymentPlan(STATUS_PAID, money(advance + remaining), money(tendered - remaining), ZERO)

    if not allow_partial:
        raise InsufficientPaymentError(
            "Amount tendered does not cover the sale total",
            details={"total": str(total), "advance_used": str(advance), "due": str(remaining), "tendered": str(tendered)},
        )
    return PaymentPlan(STATUS_PARTIAL, money(advance + tendered), ZERO, money(remaining - tendered))


def _check_advance(advance: Decimal, customer: Customer | None, total: Decimal) -> None:
    if advance < 0:
        raise InvalidAdvanceError("Advance amount cannot be negative", {"advance_used": str(advance)})
    if advance == 0:
        return
    if customer is None:
        raise InvalidAdvanceError("Using an advance requires a customer")
    available = max(ZERO, money(customer.balance))
    if advance > available:
        raise InvalidAdvanceError(
            "Advance exceeds the customer's available balance",
            {"advance_used": str(advance), "available": str(available)},
        )
    if advance > total:
        raise InvalidAdvanceError(
            "Advance exceeds the sale total",
            {"advance_used": str(advance), "total": str(total)},
        )


def finalize_sale(
    cart: Cart,
    payment_method: str,
    customer_id: int | None = None,
    advance_amount_used=0,
    note: str | None = None,
    *,
    amount_tendered=None,
    cashier_id: int | None = None,
    allow_partial: bool = False,
    device_id: str | None = None,
    now: datetime | None = None,
) -> Sale:
    """
    Turn a cart into a committed Sale.

    Raises a SaleValidationError subclass before any write, or CommitError
    if the sale transaction itself could not be persisted.
    """
    # Stale product references are dropped, not fatal
    live = products_by_id(line.product_id for line in cart.lines)
    missing = [line.product_id for line in cart.lines if line.product_id not in live]
    if missing:
        logger.warning("Dropping cart lines for unknown products: %s", missing)
        cart = cart.without(missing)

    if cart.is_empty:
        raise EmptyCartError("Cart is empty")
    if payment_method not in PAYMENT_METHODS:
        raise InvalidPaymentMethodError(
            f"Invalid payment method: {payment_method}",
            {"allowed": list(PAYMENT_METHODS)},
        )
    if payment_method == PAYMENT_CREDIT and customer_id is None:
        raise CustomerRequiredError("Credit sales require a customer")

    customer = None
    if customer_id is not None:
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFoundError(f"Customer {customer_id} not found", {"customer_id": customer_id})

    cashier = None
    if cashier_id is not None:
        cashier = db.session.get(Employee, cashier_id)
        if cashier is None:
            raise SaleValidationError(f"Cashier {cashier_id} not found", {"cashier_id": cashier_id})

    try:
        advance = money(to_decimal(advance_amount_used or 0))
    except ValueError:
        raise InvalidAdvanceError("Advance amount must be a number")

    totals = cart.totals()
    _check_advance(advance, customer, totals.total)
    plan = plan_payment(payment_method, totals.total, advance, amount_tendered, allow_partial=allow_partial)

    device_id = device_id or current_app.config["DEVICE_ID"]
    receipt_number = next_receipt_number(device_id)
    created_at = now or utcnow()
    lines = list(cart.lines)

    def _op():
        fresh_customer = None
        if customer_id is not None:
            fresh_customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
            # Another writer may have spent the advance since validation
            _check_advance(advance, fresh_customer, totals.total)

        product_rows = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(Product.id.in_([line.product_id for line in lines]))
            ).all()
        }

        sale = Sale(
            receipt_number=receipt_number,
            device_id=device_id,
            created_at=created_at,
            customer_id=customer_id,
            cashier_id=cashier_id,
            subtotal=totals.subtotal,
            discount=totals.discount,
            tax=totals.tax,
            total=totals.total,
            payment_method=payment_method,
            payment_status=plan.status,
            amount_paid=plan.amount_paid,
            advance_used=advance,
            change_due=plan.change,
            notes=note,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            product = product_rows[line.product_id]
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                price_kind=line.price_kind,
                discount=line.discount,
                subtotal=line.subtotal,
            ))
            decrement_stock(product, line.quantity)

        txns = []
        if fresh_customer is not None:
            remaining = money(totals.total - advance)
            if advance > 0:
                txns.append(append_transaction(
                    fresh_customer, TX_TOOK, advance, PAYMENT_METHOD_ADVANCE,
                    description=f"Advance used on {receipt_number}",
                    sale_id=sale.id, occurred_at=created_at,
                ))
            if payment_method == PAYMENT_CREDIT and remaining > 0:
                txns.append(append_transaction(
                    fresh_customer, TX_GAVE, remaining, PAYMENT_CREDIT,
                    description=f"Credit sale {receipt_number}",
                    sale_id=sale.id, occurred_at=created_at,
                ))
            elif plan.shortfall > 0:
                txns.append(append_transaction(
                    fresh_customer, TX_GAVE, plan.shortfall, payment_method,
                    description=f"Unpaid balance on {receipt_number}",
                    sale_id=sale.id, occurred_at=created_at,
                ))
            fresh_customer.total_purchases = money(fresh_customer.total_purchases) + totals.total

        db.session.commit()
        return sale, fresh_customer, txns

    pending = ["sale", "products"] + (["customer"] if customer_id is not None else [])
    try:
        sale, fresh_customer, txns = run_with_retry(_op)
    except SaleValidationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to commit sale %s", receipt_number)
        raise CommitError(
            "Sale could not be saved",
            written=[],
            pending=pending,
            details={"receipt_number": receipt_number},
        ) from exc

    events.publish(events.sale_finalized, sale=sale, cashier=cashier)
    for tx in txns:
        events.publish(events.customer_ledger_changed, customer=fresh_customer, transaction=tx, actor_id=cashier_id)
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: int | None = None,
    limit: int | None = None,
) -> list[Sale]:
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    q = q.order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()
