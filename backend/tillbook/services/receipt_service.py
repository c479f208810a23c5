# Overview: Per-device receipt number allocation.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ReceiptSequence
from .concurrency import run_with_retry


class ReceiptSequenceError(Exception):
    """Raised when receipt sequence operations fail."""
    pass


def format_receipt_number(number: int, prefix: str | None = None, pad: int = 6) -> str:
    prefix = prefix if prefix is not None else current_app.config["RECEIPT_PREFIX"]
    return f"{prefix}-{number:0{pad}d}"


def next_receipt_number(device_id: str | None = None) -> str:
    """
    Atomically allocate and COMMIT the next receipt number for a device.

    The allocation is committed on its own so a number is never handed out
    twice, even if the sale that requested it fails to persist afterwards.
    Callers must not have uncommitted work in the session.
    """
    device_id = device_id or current_app.config["DEVICE_ID"]
    start = current_app.config["RECEIPT_COUNTER_START"]

    def _op() -> str:
        if not device_id:
            raise ReceiptSequenceError("device_id is required")

        stmt = (
            update(ReceiptSequence)
            .where(ReceiptSequence.device_id == device_id)
            .values(last_number=ReceiptSequence.last_number + 1)
        )

        result = db.session.execute(stmt)
        if not result.rowcount:
            seq = ReceiptSequence(device_id=device_id, last_number=start + 1)
            db.session.add(seq)
            try:
                db.session.flush()
            except IntegrityError:
                db.session.rollback()
                result = db.session.execute(stmt)
                if not result.rowcount:
                    raise

        number = (
            db.session.query(ReceiptSequence.last_number)
            .filter_by(device_id=device_id)
            .scalar()
        )
        db.session.commit()
        return format_receipt_number(number)

    return run_with_retry(_op)


def peek_last_receipt_number(device_id: str | None = None) -> int | None:
    device_id = device_id or current_app.config["DEVICE_ID"]
    return (
        db.session.query(ReceiptSequence.last_number)
        .filter_by(device_id=device_id)
        .scalar()
    )
