"""
HTTP surface: status codes and error payloads of the JSON API.
"""

from decimal import Decimal

from sqlalchemy import text

from tillbook import events
from tillbook.extensions import db
from tillbook.models import Customer, Sale, SyncQueueEntry


def test_health(client, db_session):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["device_id"] == "test-device"


def test_create_and_price_product(client, db_session):
    response = client.post("/api/products", json={
        "name": "Eau 1.5L",
        "retail_price": "500",
        "wholesale_price": "400",
        "wholesale_min_quantity": "12",
        "stock": "48",
    })
    assert response.status_code == 201
    product = response.get_json()["product"]
    assert product["unit"] == "piece"

    price = client.get(f"/api/products/{product['id']}/price?quantity=12").get_json()
    assert price["kind"] == "wholesale"
    assert price["price"] == "400.00"


def test_create_product_requires_price(client, db_session):
    response = client.post("/api/products", json={"name": "Sans prix"})
    assert response.status_code == 400


def test_credit_sale_without_customer_is_rejected(client, db_session, make_product):
    p = make_product(stock="5")
    response = client.post("/api/sales", json={
        "lines": [{"product_id": p.id, "quantity": 1}],
        "payment_method": "credit",
    })
    assert response.status_code == 400
    assert response.get_json()["code"] == "customer_required"
    db_session.refresh(p)
    assert p.stock == Decimal("5")


def test_sale_roundtrip(client, db_session, make_product, make_customer):
    p = make_product(retail_price="1200")
    customer = make_customer()

    response = client.post("/api/sales", json={
        "lines": [{"product_id": p.id, "quantity": 2}, {"product_id": 424242, "quantity": 1}],
        "payment_method": "credit",
        "customer_id": customer.id,
    })
    assert response.status_code == 201
    body = response.get_json()
    assert body["dropped_product_ids"] == [424242]
    assert body["sale"]["total"] == "2400.00"
    assert body["sale"]["payment_status"] == "credit"

    fetched = client.get(f"/api/sales/{body['sale']['id']}").get_json()["sale"]
    assert len(fetched["items"]) == 1

    txns = client.get(f"/api/customers/{customer.id}/transactions").get_json()
    assert [t["type"] for t in txns["items"]] == ["gave"]


def test_sale_response_survives_a_subscriber_commit_failure(client, db_session, make_product):
    def bad_outbox_write(sender, **_):
        db.session.add(SyncQueueEntry(entry_type=None, payload={}, priority="high", status="pending", attempts=0))
        db.session.commit()

    events.sale_finalized.connect(bad_outbox_write, weak=False)
    try:
        p = make_product(retail_price="300")
        response = client.post("/api/sales", json={
            "lines": [{"product_id": p.id, "quantity": 1}],
            "payment_method": "cash",
        })
    finally:
        events.sale_finalized.disconnect(bad_outbox_write)

    assert response.status_code == 201
    assert response.get_json()["sale"]["total"] == "300.00"
    assert db_session.query(Sale).count() == 1
    assert db_session.query(SyncQueueEntry).count() == 0

def test_non_finite_numbers_are_rejected_with_400(client, db_session, make_product):
    p = make_product(retail_price="300")

    quote = client.post("/api/sales/quote", json={"lines": [{"product_id": p.id, "quantity": "Infinity"}]})
    assert quote.status_code == 400

    sale = client.post("/api/sales", json={
        "lines": [{"product_id": p.id, "quantity": 1}],
        "payment_method": "cash",
        "amount_tendered": "Infinity",
    })
    assert sale.status_code == 400
    assert sale.get_json()["code"] == "invalid_sale"

    price = client.get(f"/api/products/{p.id}/price?quantity=NaN")
    assert price.status_code == 400
    assert db_session.query(Sale).count() == 0

def test_empty_cart_is_rejected(client, db_session):
    response = client.post("/api/sales", json={"lines": [], "payment_method": "cash"})
    assert response.status_code == 400
    assert response.get_json()["code"] == "empty_cart"


def test_customer_payment_endpoint(client, db_session, make_customer):
    customer = make_customer()
    response = client.post(f"/api/customers/{customer.id}/payments", json={"amount": "750", "payment_method": "mobile_money"})
    assert response.status_code == 201
    assert response.get_json()["transaction"]["balance"] == "750.00"

    audit = client.get(f"/api/customers/{customer.id}/audit").get_json()
    assert audit["ok"] is True


def test_customer_balance_is_not_writable(client, db_session, make_customer):
    customer = make_customer()
    response = client.patch(f"/api/customers/{customer.id}", json={"balance": "100000"})
    assert response.status_code == 400
    assert db_session.get(Customer, customer.id).balance == Decimal("0")


def test_dashboard(client, db_session, make_product, make_customer):
    customer = make_customer()
    client.post(f"/api/customers/{customer.id}/credits", json={"amount": "300"})

    stats = client.get("/api/reports/dashboard").get_json()
    assert stats["balances"]["debt"] == "300.00"
    assert stats["today_revenue"] == "0.00"
    assert stats["total_customers"] == 1


def test_dashboard_audit_conflict(client, db_session, make_customer):
    customer = make_customer()
    client.post(f"/api/customers/{customer.id}/credits", json={"amount": "300"})
    db_session.execute(text("UPDATE customers SET balance = 0 WHERE id = :id"), {"id": customer.id})
    db_session.commit()

    response = client.get("/api/reports/dashboard?audit=1")
    assert response.status_code == 409


def test_settings_reject_negative_tax(client, db_session):
    response = client.patch("/api/settings", json={"tax_rate": "-0.1"})
    assert response.status_code == 400

    response = client.patch("/api/settings", json={"tax_rate": "0.18"})
    assert response.status_code == 200
    assert response.get_json()["settings"]["tax_rate"] == "0.1800"


def test_sync_status(client, db_session):
    body = client.get("/api/sync/status").get_json()
    assert body["pending_items"] == 0
    assert body["is_online"] is False
