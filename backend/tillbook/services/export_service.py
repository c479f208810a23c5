# Overview: Versioned JSON snapshots of the four core collections.

from __future__ import annotations

import re
from typing import Any

from sqlalchemy import DateTime, Numeric

from ..extensions import db
from ..models import (
    Customer,
    CustomerTransaction,
    Product,
    ReceiptSequence,
    Sale,
    SaleItem,
    SyncQueueEntry,
)
from ..money import to_decimal
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow

"""
Snapshot layout

Each collection is stored under a fixed key as {"version": N, "items": [...]}
with dates as ISO-8601 strings. Customers carry their transactions and
sales carry their items, so a snapshot restores whole aggregates.
"""

SNAPSHOT_VERSION = 1

KEY_PRODUCTS = "tillbook_products"
KEY_CUSTOMERS = "tillbook_customers"
KEY_SALES = "tillbook_sales"
KEY_SYNC_QUEUE = "tillbook_sync_queue"
COLLECTION_KEYS = (KEY_PRODUCTS, KEY_CUSTOMERS, KEY_SALES, KEY_SYNC_QUEUE)

# JSON key -> column key where to_dict() renames a column
SALE_RENAMES = {"change": "change_due"}
TRANSACTION_RENAMES = {"type": "tx_type"}
SYNC_RENAMES = {"type": "entry_type"}

_RECEIPT_TAIL = re.compile(r"(\d+)$")


class ExportFormatError(ValueError):
    """Raised when a snapshot cannot be loaded."""


def _collection(items: list[dict]) -> dict:
    return {"version": SNAPSHOT_VERSION, "items": items}


def export_collections() -> dict:
    products = db.session.query(Product).order_by(Product.id.asc()).all()
    customers = db.session.query(Customer).order_by(Customer.id.asc()).all()
    sales = db.session.query(Sale).order_by(Sale.id.asc()).all()
    entries = db.session.query(SyncQueueEntry).order_by(SyncQueueEntry.id.asc()).all()

    return {
        KEY_PRODUCTS: _collection([p.to_dict() for p in products]),
        KEY_CUSTOMERS: _collection([
            {**c.to_dict(), "transactions": [t.to_dict() for t in c.transactions]}
            for c in customers
        ]),
        KEY_SALES: _collection([s.to_dict(include_items=True) for s in sales]),
        KEY_SYNC_QUEUE: _collection([e.to_dict() for e in entries]),
        "exported_at": to_utc_z(utcnow()),
    }


def _items(snapshot: dict, key: str) -> list[dict]:
    block = snapshot.get(key)
    if block is None:
        return []
    if not isinstance(block, dict) or "items" not in block:
        raise ExportFormatError(f"{key}: expected an object with 'version' and 'items'")
    if block.get("version") != SNAPSHOT_VERSION:
        raise ExportFormatError(f"{key}: unsupported version {block.get('version')!r}")
    items = block["items"]
    if not isinstance(items, list):
        raise ExportFormatError(f"{key}: items must be a list")
    return items


def _row(model, data: dict, renames: dict | None = None):
    """Build a model instance from its exported dict, parsing dates and decimals."""
    if not isinstance(data, dict):
        raise ExportFormatError(f"{model.__tablename__}: every item must be an object")
    renames = renames or {}
    cols = {c.key: c for c in model.__mapper__.columns}
    values: dict[str, Any] = {}
    for key, raw in data.items():
        col_key = renames.get(key, key)
        col = cols.get(col_key)
        if col is None:
            continue
        if raw is not None and isinstance(col.type, DateTime):
            try:
                raw = parse_iso_datetime(raw)
            except (TypeError, ValueError):
                raise ExportFormatError(f"{model.__tablename__}.{col_key}: invalid date {raw!r}")
        elif raw is not None and isinstance(col.type, Numeric):
            try:
                raw = to_decimal(raw)
            except ValueError:
                raise ExportFormatError(f"{model.__tablename__}.{col_key}: invalid number {raw!r}")
        values[col_key] = raw
    return model(**values)


def import_collections(snapshot: dict) -> dict:
    """
    Restore a snapshot into an empty database, preserving ids.

    Receipt counters are advanced past every imported receipt number so new
    sales never reuse one.
    """
    if not isinstance(snapshot, dict):
        raise ExportFormatError("Snapshot must be a JSON object")

    products = _items(snapshot, KEY_PRODUCTS)
    customers = _items(snapshot, KEY_CUSTOMERS)
    sales = _items(snapshot, KEY_SALES)
    entries = _items(snapshot, KEY_SYNC_QUEUE)

    for model in (Product, Customer, Sale, SyncQueueEntry):
        if db.session.query(model.id).first() is not None:
            raise ExportFormatError(f"Cannot import into a non-empty {model.__tablename__} table")

    counts = {"products": 0, "customers": 0, "transactions": 0, "sales": 0, "sync_queue": 0}
    try:
        for data in products:
            db.session.add(_row(Product, data))
            counts["products"] += 1
        for data in customers:
            db.session.add(_row(Customer, data))
            counts["customers"] += 1
        db.session.flush()

        receipt_tails: dict[str, int] = {}
        for data in sales:
            db.session.add(_row(Sale, data, SALE_RENAMES))
            for item in data.get("items") or []:
                db.session.add(_row(SaleItem, item))
            counts["sales"] += 1
            match = _RECEIPT_TAIL.search(str(data.get("receipt_number") or ""))
            if match and data.get("device_id"):
                device = data["device_id"]
                receipt_tails[device] = max(receipt_tails.get(device, 0), int(match.group(1)))
        db.session.flush()

        for data in customers:
            for tx in data.get("transactions") or []:
                db.session.add(_row(CustomerTransaction, tx, TRANSACTION_RENAMES))
                counts["transactions"] += 1
        for data in entries:
            db.session.add(_row(SyncQueueEntry, data, SYNC_RENAMES))
            counts["sync_queue"] += 1

        for device_id, last in receipt_tails.items():
            seq = db.session.query(ReceiptSequence).filter_by(device_id=device_id).first()
            if seq is None:
                db.session.add(ReceiptSequence(device_id=device_id, last_number=last))
            elif seq.last_number < last:
                seq.last_number = last

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return counts
