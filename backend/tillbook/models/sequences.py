from __future__ import annotations

from ..extensions import db
from tillbook.time_utils import to_utc_z


class ReceiptSequence(db.Model):
    """
    Atomic per-device receipt counters.

    WHY: Receipt numbers must be strictly increasing on a device and must
    never be handed out twice, even when the sale that took one fails.
    """
    __tablename__ = "receipt_sequences"
    __table_args__ = (
        db.UniqueConstraint("device_id", name="uq_receipt_sequences_device"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    device_id = db.Column(db.String(64), nullable=False, index=True)
    last_number = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "last_number": self.last_number,
            "updated_at": to_utc_z(self.updated_at),
        }
