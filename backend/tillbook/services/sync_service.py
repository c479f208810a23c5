# Overview: Durable outbox of domain events and its flush loop.

from __future__ import annotations

import logging
import threading
from datetime import timedelta

import httpx
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import SyncQueueEntry, SYNC_FAILED, SYNC_PENDING, SYNC_SYNCED
from ..time_utils import to_utc_z, utcnow

"""
Sync queue rules

- Entries are flushed oldest first (FIFO by id), only while online.
- Each entry is attempted independently: a failure increments its attempt
  counter, records the error and moves on to the next entry.
- Once attempts reaches SYNC_MAX_ATTEMPTS the entry becomes failed and is
  kept for inspection; retry_failed puts it back in the queue.
- Nothing raised while sending ever leaves flush_queue.
"""

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high")

ENTRY_CASHIER_SALE_REPORT = "cashier_sale_report"
ENTRY_EMPLOYEE_CREATE = "employee_create"
ENTRY_EMPLOYEE_UPDATE = "employee_update"
ENTRY_EMPLOYEE_DELETE = "employee_delete"

_flush_lock = threading.Lock()


class SyncError(Exception):
    """Raised when an entry could not be delivered."""
    pass


# =============================================================================
# TRANSPORT
# =============================================================================

class HttpSyncTransport:
    """POST each entry as JSON to the configured endpoint."""

    def __init__(self, endpoint_url: str, *, timeout: float = 10.0, client: httpx.Client | None = None):
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._client = client

    def send(self, entry: SyncQueueEntry) -> None:
        body = {
            "id": entry.id,
            "type": entry.entry_type,
            "priority": entry.priority,
            "payload": entry.payload,
            "created_at": to_utc_z(entry.created_at),
        }
        try:
            if self._client is not None:
                response = self._client.post(self.endpoint_url, json=body, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.endpoint_url, json=body)
        except httpx.HTTPError as exc:
            raise SyncError(f"Transport error: {exc}") from exc

        if response.status_code >= 300:
            raise SyncError(f"Remote rejected entry: HTTP {response.status_code}")


def default_transport() -> HttpSyncTransport | None:
    url = current_app.config.get("SYNC_ENDPOINT_URL")
    if not url:
        return None
    return HttpSyncTransport(url, timeout=current_app.config["SYNC_TIMEOUT_SECONDS"])


def is_online(client: httpx.Client | None = None) -> bool:
    """
    Connectivity check.

    Hits SYNC_PING_URL (falling back to the sync endpoint); with neither
    configured there is nowhere to sync to, which counts as offline.
    """
    url = current_app.config.get("SYNC_PING_URL") or current_app.config.get("SYNC_ENDPOINT_URL")
    if not url:
        return False
    timeout = current_app.config["SYNC_TIMEOUT_SECONDS"]
    try:
        if client is not None:
            response = client.get(url, timeout=timeout)
        else:
            response = httpx.get(url, timeout=timeout)
    except httpx.HTTPError:
        return False
    return response.status_code < 500


# =============================================================================
# QUEUE
# =============================================================================

def enqueue(entry_type: str, payload: dict, priority: str = "medium") -> SyncQueueEntry:
    if priority not in PRIORITIES:
        raise ValueError(f"Invalid priority: {priority}")
    entry = SyncQueueEntry(
        entry_type=entry_type,
        payload=payload,
        priority=priority,
        status=SYNC_PENDING,
        attempts=0,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.commit()
    logger.info("Queued %s entry %s", entry_type, entry.id)
    return entry


def flush_queue(transport=None, *, online: bool | None = None) -> dict:
    """
    Attempt every pending entry once.

    transport needs a send(entry) method that raises on failure; the
    HTTP transport is used when none is given.
    """
    summary = {"attempted": 0, "synced": 0, "retrying": 0, "failed": 0, "skipped": None}

    if not _flush_lock.acquire(blocking=False):
        summary["skipped"] = "already_running"
        return summary
    try:
        if online is None:
            online = is_online()
        if not online:
            summary["skipped"] = "offline"
            return summary

        transport = transport or default_transport()
        if transport is None:
            summary["skipped"] = "no_endpoint"
            return summary

        max_attempts = current_app.config["SYNC_MAX_ATTEMPTS"]
        entries = (
            db.session.query(SyncQueueEntry)
            .filter(SyncQueueEntry.status == SYNC_PENDING, SyncQueueEntry.attempts < max_attempts)
            .order_by(SyncQueueEntry.id.asc())
            .all()
        )

        for entry in entries:
            summary["attempted"] += 1
            entry.last_attempt_at = utcnow()
            try:
                transport.send(entry)
            except Exception as exc:
                entry.attempts += 1
                entry.last_error = str(exc)[:500]
                if entry.attempts >= max_attempts:
                    entry.status = SYNC_FAILED
                    summary["failed"] += 1
                    logger.warning("Sync entry %s (%s) failed permanently: %s", entry.id, entry.entry_type, exc)
                else:
                    summary["retrying"] += 1
                    logger.warning(
                        "Sync entry %s (%s) failed, attempt %s/%s: %s",
                        entry.id, entry.entry_type, entry.attempts, max_attempts, exc,
                    )
            else:
                entry.status = SYNC_SYNCED
                entry.synced_at = utcnow()
                entry.last_error = None
                summary["synced"] += 1
            db.session.commit()

        if summary["attempted"]:
            logger.info(
                "Sync flush: %s synced, %s retrying, %s failed",
                summary["synced"], summary["retrying"], summary["failed"],
            )
        return summary
    finally:
        _flush_lock.release()


def list_entries(status: str | None = None, limit: int = 100) -> list[SyncQueueEntry]:
    q = db.session.query(SyncQueueEntry)
    if status:
        q = q.filter(SyncQueueEntry.status == status)
    return q.order_by(SyncQueueEntry.id.asc()).limit(limit).all()


def sync_status(*, online: bool | None = None) -> dict:
    counts = dict(
        db.session.query(SyncQueueEntry.status, func.count(SyncQueueEntry.id))
        .group_by(SyncQueueEntry.status)
        .all()
    )
    last_sync = db.session.query(func.max(SyncQueueEntry.synced_at)).scalar()
    return {
        "is_online": is_online() if online is None else online,
        "is_running": _flush_lock.locked(),
        "last_sync": to_utc_z(last_sync),
        "pending_items": counts.get(SYNC_PENDING, 0),
        "failed_items": counts.get(SYNC_FAILED, 0),
        "synced_items": counts.get(SYNC_SYNCED, 0),
    }


def retry_failed() -> int:
    """Put failed entries back in the queue with a fresh attempt budget."""
    entries = db.session.query(SyncQueueEntry).filter_by(status=SYNC_FAILED).all()
    for entry in entries:
        entry.status = SYNC_PENDING
        entry.attempts = 0
        entry.last_error = None
    db.session.commit()
    return len(entries)


def clear_failed() -> int:
    count = db.session.query(SyncQueueEntry).filter_by(status=SYNC_FAILED).delete(synchronize_session=False)
    db.session.commit()
    return count


def purge_synced(older_than_days: int = 7) -> int:
    cutoff = utcnow() - timedelta(days=older_than_days)
    count = (
        db.session.query(SyncQueueEntry)
        .filter(SyncQueueEntry.status == SYNC_SYNCED, SyncQueueEntry.synced_at <= cutoff)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return count


# =============================================================================
# EVENT SUBSCRIBERS
# =============================================================================

def _enqueue_from_event(entry_type: str, payload: dict, priority: str = "medium") -> SyncQueueEntry | None:
    try:
        return enqueue(entry_type, payload, priority=priority)
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Failed to queue %s entry", entry_type, exc_info=True)
        return None


def on_sale_finalized(sender, sale, cashier=None, **_):
    """Report sales made by restricted roles so a manager can reconcile them."""
    if cashier is None or cashier.role not in current_app.config["RESTRICTED_ROLES"]:
        return
    _enqueue_from_event(
        ENTRY_CASHIER_SALE_REPORT,
        {
            "sale_id": sale.id,
            "receipt_number": sale.receipt_number,
            "device_id": sale.device_id,
            "total": str(sale.total),
            "payment_method": sale.payment_method,
            "payment_status": sale.payment_status,
            "customer_id": sale.customer_id,
            "items_count": len(sale.items),
            "cashier_id": cashier.id,
            "cashier_name": cashier.name,
            "created_at": to_utc_z(sale.created_at),
        },
        priority="high",
    )


def on_employee_changed(sender, employee, action: str, **_):
    entry_type = {
        "create": ENTRY_EMPLOYEE_CREATE,
        "update": ENTRY_EMPLOYEE_UPDATE,
        "delete": ENTRY_EMPLOYEE_DELETE,
    }.get(action)
    if entry_type is None:
        logger.warning("No sync entry type for employee action %r", action)
        return
    _enqueue_from_event(entry_type, employee.to_dict())
