"""
JSON snapshots: export, restore into an empty database, receipt continuation.
"""

import json
from decimal import Decimal

import pytest

from tillbook.extensions import db
from tillbook.models import Customer, CustomerTransaction, Product, Sale, SyncQueueEntry
from tillbook.services import ledger_service
from tillbook.services.export_service import (
    ExportFormatError,
    export_collections,
    import_collections,
)
from tillbook.services.sales_service import finalize_sale
from tillbook.services.sync_service import enqueue


def _wipe(session):
    for table in reversed(db.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    # rows come back under the same primary keys
    session.expunge_all()


@pytest.fixture
def populated(db_session, make_product, make_customer, cart_of):
    rice = make_product(name="Riz", retail_price="800", stock="25.5", unit="kg")
    customer = make_customer("Awa")
    ledger_service.record_customer_payment(customer.id, "1000")
    finalize_sale(cart_of((rice, "1.5")), "credit", customer_id=customer.id, advance_amount_used="1000")
    enqueue("employee_create", {"id": 1})
    return rice, customer


class TestExport:
    def test_snapshot_layout(self, populated):
        snapshot = export_collections()

        for key in ("tillbook_products", "tillbook_customers", "tillbook_sales", "tillbook_sync_queue"):
            assert snapshot[key]["version"] == 1
        customer = snapshot["tillbook_customers"]["items"][0]
        assert customer["balance"] == "-200.00"
        assert [t["type"] for t in customer["transactions"]] == ["took", "took", "gave"]
        sales = snapshot["tillbook_sales"]["items"]
        assert [len(s["items"]) for s in sales] == [0, 1]


class TestImport:
    def test_round_trip_restores_ledger_and_stock(self, db_session, populated, cart_of):
        rice, customer = populated
        rice_id, customer_id = rice.id, customer.id
        snapshot = json.loads(json.dumps(export_collections()))
        _wipe(db_session)

        counts = import_collections(snapshot)

        assert counts == {"products": 1, "customers": 1, "transactions": 3, "sales": 2, "sync_queue": 1}
        restored = db_session.get(Customer, customer_id)
        assert restored.balance == Decimal("-200")
        assert ledger_service.audit_customer(restored).ok
        assert db_session.get(Product, rice_id).stock == Decimal("24")
        assert db_session.query(SyncQueueEntry).one().entry_type == "employee_create"

        # New receipts continue after the imported ones
        sale = finalize_sale(cart_of((db_session.get(Product, rice_id), 1)), "cash")
        assert sale.receipt_number == "REC-001003"
        assert db_session.query(CustomerTransaction).count() == 3

    def test_refuses_non_empty_database(self, populated):
        snapshot = export_collections()
        with pytest.raises(ExportFormatError):
            import_collections(snapshot)

    def test_rejects_unknown_version(self, db_session):
        with pytest.raises(ExportFormatError):
            import_collections({"tillbook_products": {"version": 99, "items": []}})

    def test_rejects_bad_dates(self, db_session):
        snapshot = {
            "tillbook_products": {
                "version": 1,
                "items": [{"id": 1, "name": "X", "retail_price": "1", "created_at": "not a date"}],
            },
        }
        with pytest.raises(ExportFormatError):
            import_collections(snapshot)
        assert db_session.query(Sale).count() == 0
