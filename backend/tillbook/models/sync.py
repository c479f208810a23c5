from __future__ import annotations

from ..extensions import db
from tillbook.time_utils import to_utc_z


SYNC_PENDING = "pending"
SYNC_SYNCED = "synced"
SYNC_FAILED = "failed"


class SyncQueueEntry(db.Model):
    """
    Durable outbox of domain events waiting to reach the remote system.

    LIFECYCLE:
    - pending -> synced (terminal, success)
    - pending -> pending (retry, attempts incremented)
    - pending -> failed once attempts reaches the configured maximum
      (terminal, kept for inspection)
    """
    __tablename__ = "sync_queue"
    __table_args__ = (
        db.Index("ix_sync_queue_status_id", "status", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_type = db.Column(db.String(64), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False)
    priority = db.Column(db.String(8), nullable=False, default="medium")  # low, medium, high

    status = db.Column(db.String(16), nullable=False, default=SYNC_PENDING)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_attempt_at = db.Column(db.DateTime(timezone=True), nullable=True)
    synced_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def synced(self) -> bool:
        return self.status == SYNC_SYNCED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.entry_type,
            "payload": self.payload,
            "priority": self.priority,
            "status": self.status,
            "synced": self.synced,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": to_utc_z(self.created_at),
            "last_attempt_at": to_utc_z(self.last_attempt_at),
            "synced_at": to_utc_z(self.synced_at),
        }
