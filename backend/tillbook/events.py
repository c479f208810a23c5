# Overview: Domain signals emitted by the services after a successful commit.

"""
Domain events.

The sale engine and the customer ledger publish what happened; audit logging
and the sync queue subscribe. A failing subscriber is logged and skipped, so
it can never undo or block the commit that produced the event.
"""

from __future__ import annotations

import logging

from blinker import Namespace

from .extensions import db

logger = logging.getLogger(__name__)

_signals = Namespace()

sale_finalized = _signals.signal("sale-finalized")
customer_ledger_changed = _signals.signal("customer-ledger-changed")
employee_changed = _signals.signal("employee-changed")


def publish(signal, sender=None, **data) -> int:
    """
    Deliver an event to every receiver. Returns how many receivers failed.
    """
    failures = 0
    for receiver in list(signal.receivers_for(sender)):
        try:
            receiver(sender, **data)
        except Exception:
            failures += 1
            # the triggering commit already happened; drop whatever the
            # receiver left half-written so the caller can keep using the session
            db.session.rollback()
            logger.exception("Subscriber %r failed for event %s", receiver, signal.name)
    return failures


def connect_default_subscribers() -> None:
    """Wire audit logging and the sync outbox. Safe to call repeatedly."""
    from .services import activity_service, sync_service

    sale_finalized.connect(activity_service.on_sale_finalized, weak=False)
    customer_ledger_changed.connect(activity_service.on_customer_ledger_changed, weak=False)
    employee_changed.connect(activity_service.on_employee_changed, weak=False)

    sale_finalized.connect(sync_service.on_sale_finalized, weak=False)
    employee_changed.connect(sync_service.on_employee_changed, weak=False)
