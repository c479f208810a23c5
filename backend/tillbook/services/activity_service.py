# Overview: Fire-and-forget audit trail of till activity.

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog
from ..time_utils import utcnow

logger = logging.getLogger(__name__)


def log_activity(actor_id, module: str, message: str, metadata: dict | None = None) -> ActivityLog | None:
    """
    Append an activity row and commit it.

    Never raises: a failed audit write is rolled back and logged so it can
    not block the ledger path that triggered it.
    """
    try:
        entry = ActivityLog(
            actor_id=str(actor_id) if actor_id is not None else "system",
            module=module,
            message=message,
            details=metadata or {},
            occurred_at=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Failed to write activity log: %s / %s", module, message, exc_info=True)
        return None


def list_activity(module: str | None = None, actor_id=None, limit: int = 100) -> list[ActivityLog]:
    q = db.session.query(ActivityLog)
    if module:
        q = q.filter_by(module=module)
    if actor_id is not None:
        q = q.filter_by(actor_id=str(actor_id))
    return q.order_by(ActivityLog.id.desc()).limit(limit).all()


# =============================================================================
# EVENT SUBSCRIBERS
# =============================================================================

def on_sale_finalized(sender, sale, cashier=None, **_):
    log_activity(
        cashier.id if cashier else None,
        "pos",
        "Sale processed",
        {
            "sale_id": sale.id,
            "receipt_number": sale.receipt_number,
            "total": str(sale.total),
            "customer_id": sale.customer_id,
            "payment_method": sale.payment_method,
            "payment_status": sale.payment_status,
        },
    )


def on_customer_ledger_changed(sender, customer, transaction, actor_id=None, **_):
    log_activity(
        actor_id,
        "customers",
        f"Ledger {transaction.tx_type} {transaction.amount}",
        {
            "customer_id": customer.id,
            "transaction_id": transaction.id,
            "payment_method": transaction.payment_method,
            "balance": str(transaction.balance),
            "sale_id": transaction.sale_id,
        },
    )


def on_employee_changed(sender, employee, action: str, actor_id=None, **_):
    log_activity(
        actor_id,
        "employees",
        f"Employee {action}",
        {"employee_id": employee.id, "role": employee.role},
    )
