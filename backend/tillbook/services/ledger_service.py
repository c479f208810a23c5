# Overview: Customer ledger: append-only balance movements plus the scalar balance they imply.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from .. import events
from ..extensions import db
from ..models import (
    Customer,
    CustomerTransaction,
    Sale,
    PAYMENT_CASH,
    PAYMENT_CREDIT,
    PAYMENT_MOBILE_MONEY,
    STATUS_CREDIT,
    STATUS_PAID,
)
from ..money import ZERO, money
from ..time_utils import utcnow
from ..validation import parse_amount
from .concurrency import lock_for_update, run_with_retry
from .customers_service import CustomerNotFoundError
from .receipt_service import next_receipt_number

"""
Ledger invariants (authoritative)

- Sign convention: balance > 0 is an advance on file (shop owes customer),
  balance < 0 is customer debt.
- Transactions are appended, never updated or deleted.
- Every append moves Customer.balance in the same DB transaction and stores
  the resulting balance on the transaction row.
- Replay rule: gave -> -amount, took -> +amount, except took paid from the
  customer's advance -> -amount (the advance is consumed).
- Replaying a customer's transactions from 0 reproduces every stored
  snapshot and the final scalar balance.
"""

logger = logging.getLogger(__name__)

TX_GAVE = "gave"
TX_TOOK = "took"
TX_TYPES = (TX_GAVE, TX_TOOK)

PAYMENT_METHOD_ADVANCE = "advance"
PAYMENT_METHOD_ADJUSTMENT = "adjustment"

DEPOSIT_METHODS = (PAYMENT_CASH, PAYMENT_MOBILE_MONEY)


class LedgerError(Exception):
    """Raised for ledger operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class LedgerIntegrityError(LedgerError):
    """Raised when a replayed ledger disagrees with stored balances."""
    def __init__(self, mismatches: list["LedgerAudit"]):
        super().__init__(
            f"Ledger mismatch for {len(mismatches)} customer(s)",
            details={"customers": [m.to_dict() for m in mismatches]},
        )
        self.mismatches = mismatches


def transaction_delta(tx_type: str, amount, payment_method: str | None = None) -> Decimal:
    """Signed effect of one ledger movement on the customer balance."""
    amount = money(amount)
    if tx_type == TX_GAVE:
        return -amount
    if tx_type == TX_TOOK:
        if payment_method == PAYMENT_METHOD_ADVANCE:
            return -amount
        return amount
    raise LedgerError(f"Unknown transaction type: {tx_type}")


def append_transaction(
    customer: Customer,
    tx_type: str,
    amount,
    payment_method: str,
    *,
    description: str | None = None,
    sale_id: int | None = None,
    occurred_at=None,
) -> CustomerTransaction:
    """
    Append one movement and move the scalar balance with it.

    Does not commit: the caller owns the transaction so the append lands
    atomically with whatever produced it.
    """
    amount = money(amount)
    if amount <= 0:
        raise LedgerError("Ledger amounts must be positive", {"amount": str(amount)})

    last_seq = (
        db.session.query(func.max(CustomerTransaction.sequence))
        .filter(CustomerTransaction.customer_id == customer.id)
        .scalar()
    )
    customer.balance = money(customer.balance) + transaction_delta(tx_type, amount, payment_method)

    tx = CustomerTransaction(
        customer_id=customer.id,
        sequence=(last_seq or 0) + 1,
        tx_type=tx_type,
        amount=amount,
        payment_method=payment_method,
        description=description,
        balance=customer.balance,
        sale_id=sale_id,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


# =============================================================================
# REPLAY / AUDIT
# =============================================================================

@dataclass(frozen=True)
class LedgerAudit:
    customer_id: int
    stored_balance: Decimal
    replayed_balance: Decimal
    bad_sequences: list[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.stored_balance == self.replayed_balance and not self.bad_sequences

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "stored_balance": str(self.stored_balance),
            "replayed_balance": str(self.replayed_balance),
            "bad_sequences": list(self.bad_sequences),
            "ok": self.ok,
        }


def replay_ledger(transactions) -> tuple[Decimal, list[int]]:
    """
    Fold transactions from a zero balance.

    Returns the replayed balance and the sequences whose stored snapshot
    disagrees with the running total at that point.
    """
    balance = ZERO
    bad: list[int] = []
    for tx in transactions:
        balance = money(balance + transaction_delta(tx.tx_type, tx.amount, tx.payment_method))
        if money(tx.balance) != balance:
            bad.append(tx.sequence)
    return balance, bad


def audit_customer(customer: Customer) -> LedgerAudit:
    txns = (
        db.session.query(CustomerTransaction)
        .filter_by(customer_id=customer.id)
        .order_by(CustomerTransaction.sequence.asc())
        .all()
    )
    replayed, bad = replay_ledger(txns)
    result = LedgerAudit(
        customer_id=customer.id,
        stored_balance=money(customer.balance),
        replayed_balance=replayed,
        bad_sequences=bad,
    )
    if not result.ok:
        logger.warning(
            "Ledger mismatch for customer %s: stored=%s replayed=%s bad_sequences=%s",
            customer.id, result.stored_balance, result.replayed_balance, bad,
        )
    return result


def audit_all_customers() -> list[LedgerAudit]:
    customers = db.session.query(Customer).order_by(Customer.id.asc()).all()
    return [audit_customer(c) for c in customers]


def assert_ledgers_consistent() -> list[LedgerAudit]:
    results = audit_all_customers()
    mismatches = [r for r in results if not r.ok]
    if mismatches:
        raise LedgerIntegrityError(mismatches)
    return results


# =============================================================================
# MANUAL MOVEMENTS
# =============================================================================

def _record_movement(customer_id: int, plan, *, payment_method: str, description: str | None, actor_id=None, device_id=None):
    """
    Record a ledger movement outside of a sale.

    The movement is journaled as a zero-item Sale (its own receipt number,
    never counted as revenue). plan(customer) returns (tx_type, amount) from
    the freshly locked customer row.
    """
    existing = db.session.get(Customer, customer_id)
    if existing is None:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    plan(existing)  # validate before a receipt number is spent

    receipt_number = next_receipt_number(device_id)

    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        tx_type, amount = plan(customer)

        sale = Sale(
            receipt_number=receipt_number,
            device_id=device_id or current_app.config["DEVICE_ID"],
            created_at=utcnow(),
            customer_id=customer.id,
            subtotal=amount,
            discount=ZERO,
            tax=ZERO,
            total=amount,
            payment_method=payment_method,
            payment_status=STATUS_CREDIT if payment_method == PAYMENT_CREDIT else STATUS_PAID,
            amount_paid=amount if tx_type == TX_TOOK else ZERO,
            advance_used=ZERO,
            change_due=ZERO,
            notes=description,
        )
        db.session.add(sale)
        db.session.flush()

        tx = append_transaction(
            customer,
            tx_type,
            amount,
            payment_method,
            description=description,
            sale_id=sale.id,
            occurred_at=sale.created_at,
        )
        db.session.commit()
        return customer, tx

    customer, tx = run_with_retry(_op)
    events.publish(events.customer_ledger_changed, customer=customer, transaction=tx, actor_id=actor_id)
    return tx


def record_customer_payment(customer_id: int, amount, payment_method: str = PAYMENT_CASH, description: str | None = None, actor_id=None) -> CustomerTransaction:
    """Customer pays down a debt or deposits an advance (took)."""
    amount = money(parse_amount(amount, "amount"))
    if payment_method not in DEPOSIT_METHODS:
        raise LedgerError(f"Invalid payment method: {payment_method}", {"allowed": list(DEPOSIT_METHODS)})
    return _record_movement(
        customer_id,
        lambda _customer: (TX_TOOK, amount),
        payment_method=payment_method,
        description=description or "Customer payment",
        actor_id=actor_id,
    )


def record_customer_credit(customer_id: int, amount, description: str | None = None, actor_id=None) -> CustomerTransaction:
    """Shop extends credit outside of a sale (gave)."""
    amount = money(parse_amount(amount, "amount"))
    return _record_movement(
        customer_id,
        lambda _customer: (TX_GAVE, amount),
        payment_method=PAYMENT_CREDIT,
        description=description or "Credit granted",
        actor_id=actor_id,
    )


def adjust_balance(customer_id: int, new_balance, reason: str | None = None, actor_id=None) -> CustomerTransaction:
    """Set a customer's balance, recording the difference as an adjustment."""
    try:
        target = money(new_balance)
    except ValueError:
        raise LedgerError("new_balance must be a number")

    def _plan(customer):
        diff = target - money(customer.balance)
        if diff == 0:
            raise LedgerError("Balance is already at the requested value", {"balance": str(target)})
        return (TX_TOOK if diff > 0 else TX_GAVE), abs(diff)

    return _record_movement(
        customer_id,
        _plan,
        payment_method=PAYMENT_METHOD_ADJUSTMENT,
        description=reason or "Balance adjustment",
        actor_id=actor_id,
    )
