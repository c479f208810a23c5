"""
Domain events: subscribers never undo the commit that produced the event.
"""

from tillbook import events
from tillbook.models import ActivityLog, Sale, SyncQueueEntry
from tillbook.services.activity_service import list_activity
from tillbook.services.sales_service import finalize_sale


def test_failing_subscriber_is_isolated(db_session, make_product, cart_of, caplog):
    def broken(sender, **_):
        raise RuntimeError("subscriber down")

    events.sale_finalized.connect(broken, weak=False)
    try:
        p = make_product()
        finalize_sale(cart_of((p, 1)), "cash")
        assert events.publish(events.sale_finalized, sale=db_session.query(Sale).one()) == 1
    finally:
        events.sale_finalized.disconnect(broken)

    assert db_session.query(Sale).count() == 1
    assert "subscriber down" in caplog.text


def test_session_is_usable_after_a_subscriber_commit_fails(db_session, make_product, cart_of):
    def bad_commit(sender, **_):
        db_session.add(SyncQueueEntry(entry_type=None, payload={}, priority="low", status="pending", attempts=0))
        db_session.commit()

    p = make_product(retail_price="700")
    sale = finalize_sale(cart_of((p, 1)), "cash")

    events.sale_finalized.connect(bad_commit, weak=False)
    try:
        assert events.publish(events.sale_finalized, sale=sale) == 1
    finally:
        events.sale_finalized.disconnect(bad_commit)

    assert sale.to_dict()["total"] == "700.00"
    assert db_session.query(SyncQueueEntry).count() == 0

def test_sale_writes_activity_log(db_session, make_product, cashier, cart_of):
    p = make_product(retail_price="450")
    sale = finalize_sale(cart_of((p, 1)), "cash", cashier_id=cashier.id)

    rows = list_activity(module="pos")
    assert len(rows) == 1
    assert rows[0].actor_id == str(cashier.id)
    assert rows[0].details["receipt_number"] == sale.receipt_number


def test_ledger_movement_writes_activity_log(db_session, make_product, make_customer, cart_of):
    customer = make_customer()
    p = make_product(retail_price="900")
    finalize_sale(cart_of((p, 1)), "credit", customer_id=customer.id)

    row = db_session.query(ActivityLog).filter_by(module="customers").one()
    assert row.actor_id == "system"
    assert row.details["balance"] == "-900.00"
