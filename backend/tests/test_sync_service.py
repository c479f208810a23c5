"""
Offline sync queue: FIFO flush, per-entry retries, transports and subscribers.
"""

import json

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from tillbook.models import SyncQueueEntry
from tillbook.services import employee_service, sync_service
from tillbook.services.sales_service import finalize_sale
from tillbook.services.sync_service import (
    HttpSyncTransport,
    SyncError,
    clear_failed,
    enqueue,
    flush_queue,
    is_online,
    retry_failed,
    sync_status,
)


class RecordingTransport:
    """Fake transport: remembers what it sent, fails for chosen entry types."""

    def __init__(self, fail_types=()):
        self.fail_types = set(fail_types)
        self.sent = []

    def send(self, entry):
        if entry.entry_type in self.fail_types:
            raise SyncError(f"remote refused {entry.entry_type}")
        self.sent.append(entry.entry_type)


class TestFlush:
    def test_offline_flush_touches_nothing(self, db_session):
        enqueue("a", {"n": 1})
        transport = RecordingTransport()

        summary = flush_queue(transport, online=False)

        assert summary["skipped"] == "offline"
        assert transport.sent == []
        entry = db_session.query(SyncQueueEntry).one()
        assert entry.status == "pending"
        assert entry.attempts == 0

    def test_flush_is_fifo(self, db_session):
        enqueue("first", {}, priority="low")
        enqueue("second", {}, priority="high")
        enqueue("third", {})
        transport = RecordingTransport()

        summary = flush_queue(transport, online=True)

        assert transport.sent == ["first", "second", "third"]
        assert summary["synced"] == 3
        assert all(e.synced for e in db_session.query(SyncQueueEntry).all())

    def test_one_failure_does_not_block_the_rest(self, db_session):
        enqueue("ok-1", {})
        enqueue("broken", {})
        enqueue("ok-2", {})
        transport = RecordingTransport(fail_types={"broken"})

        summary = flush_queue(transport, online=True)

        assert transport.sent == ["ok-1", "ok-2"]
        assert summary == {"attempted": 3, "synced": 2, "retrying": 1, "failed": 0, "skipped": None}
        broken = db_session.query(SyncQueueEntry).filter_by(entry_type="broken").one()
        assert broken.status == "pending"
        assert broken.attempts == 1
        assert "remote refused" in broken.last_error

    def test_entry_fails_after_max_attempts(self, db_session):
        enqueue("broken", {})
        transport = RecordingTransport(fail_types={"broken"})

        for _ in range(5):
            flush_queue(transport, online=True)
        entry = db_session.query(SyncQueueEntry).one()
        assert entry.status == "failed"
        assert entry.attempts == 5

        # failed entries are no longer attempted
        assert flush_queue(transport, online=True)["attempted"] == 0

    def test_retry_failed_requeues(self, db_session):
        enqueue("broken", {})
        failing = RecordingTransport(fail_types={"broken"})
        for _ in range(5):
            flush_queue(failing, online=True)

        assert retry_failed() == 1
        summary = flush_queue(RecordingTransport(), online=True)
        assert summary["synced"] == 1

    def test_clear_failed(self, db_session):
        enqueue("broken", {})
        enqueue("fine", {})
        failing = RecordingTransport(fail_types={"broken"})
        for _ in range(5):
            flush_queue(failing, online=True)

        assert clear_failed() == 1
        assert [e.entry_type for e in db_session.query(SyncQueueEntry).all()] == ["fine"]

    def test_overlapping_flush_is_skipped(self, db_session):
        enqueue("a", {})
        with sync_service._flush_lock:
            summary = flush_queue(RecordingTransport(), online=True)
            assert sync_status(online=True)["is_running"] is True
        assert summary["skipped"] == "already_running"

    def test_no_endpoint_configured(self, db_session):
        enqueue("a", {})
        assert flush_queue(online=True)["skipped"] == "no_endpoint"

    def test_status_counts(self, db_session):
        enqueue("ok", {})
        enqueue("broken", {})
        flush_queue(RecordingTransport(fail_types={"broken"}), online=True)

        status = sync_status(online=False)
        assert status["pending_items"] == 1
        assert status["synced_items"] == 1
        assert status["failed_items"] == 0
        assert status["is_online"] is False
        assert status["last_sync"] is not None

    def test_invalid_priority(self, db_session):
        with pytest.raises(ValueError):
            enqueue("a", {}, priority="urgent")


class TestHttpTransport:
    def test_posts_entry_as_json(self, db_session):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        entry = enqueue("employee_create", {"id": 7}, priority="high")

        HttpSyncTransport("https://sync.test/entries", client=client).send(entry)

        assert seen[0]["type"] == "employee_create"
        assert seen[0]["payload"] == {"id": 7}
        assert seen[0]["priority"] == "high"

    def test_rejection_raises(self, db_session):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        entry = enqueue("a", {})
        with pytest.raises(SyncError):
            HttpSyncTransport("https://sync.test/entries", client=client).send(entry)

    def test_connection_error_raises(self, db_session):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        entry = enqueue("a", {})
        with pytest.raises(SyncError):
            HttpSyncTransport("https://sync.test/entries", client=client).send(entry)


class TestConnectivity:
    def test_offline_without_urls(self, app):
        with app.app_context():
            assert is_online() is False

    def test_ping_reachable(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "SYNC_PING_URL", "https://sync.test/ping")
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
        with app.app_context():
            assert is_online(client) is True

    def test_ping_unreachable(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "SYNC_PING_URL", "https://sync.test/ping")

        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        with app.app_context():
            assert is_online(client) is False


class TestSubscribers:
    def test_cashier_sale_is_reported(self, db_session, make_product, cashier, cart_of):
        p = make_product(retail_price="500")
        sale = finalize_sale(cart_of((p, 2)), "cash", cashier_id=cashier.id)

        entry = db_session.query(SyncQueueEntry).one()
        assert entry.entry_type == "cashier_sale_report"
        assert entry.priority == "high"
        assert entry.payload["receipt_number"] == sale.receipt_number
        assert entry.payload["total"] == "1000.00"
        assert entry.payload["items_count"] == 1

    def test_manager_sale_is_not_reported(self, db_session, make_product, manager, cart_of):
        p = make_product()
        finalize_sale(cart_of((p, 1)), "cash", cashier_id=manager.id)
        assert db_session.query(SyncQueueEntry).count() == 0

    def test_employee_changes_are_queued(self, db_session):
        employee = employee_service.create_employee({"name": "Fatou", "email": "Fatou@Shop.test", "role": "cashier"})
        employee_service.update_employee(employee.id, {"phone": "+221 77 000 00 00"})
        employee_service.deactivate_employee(employee.id)

        entries = db_session.query(SyncQueueEntry).order_by(SyncQueueEntry.id).all()
        assert [e.entry_type for e in entries] == ["employee_create", "employee_update", "employee_delete"]
        assert entries[0].payload["email"] == "fatou@shop.test"
        assert entries[2].payload["is_active"] is False

    def test_outbox_write_failure_does_not_reach_the_sale(self, db_session, make_product, cashier, cart_of, monkeypatch, caplog):
        def locked(*args, **kwargs):
            raise OperationalError("INSERT INTO sync_queue", {}, Exception("database is locked"))

        monkeypatch.setattr(sync_service, "enqueue", locked)
        p = make_product(retail_price="500")

        sale = finalize_sale(cart_of((p, 1)), "cash", cashier_id=cashier.id)

        assert sale.to_dict()["total"] == "500.00"
        assert db_session.query(SyncQueueEntry).count() == 0
        assert "Failed to queue cashier_sale_report entry" in caplog.text
