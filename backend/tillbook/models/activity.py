from __future__ import annotations

from ..extensions import db
from tillbook.time_utils import to_utc_z


class ActivityLog(db.Model):
    """
    Append-only audit trail of who did what, from which module.

    actor_id is free text ("system" or an employee id) so audit rows survive
    employee deletion.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_module_occurred", "module", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.String(64), nullable=False, index=True)
    module = db.Column(db.String(32), nullable=False)
    message = db.Column(db.String(255), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "module": self.module,
            "message": self.message,
            "metadata": self.details,
            "occurred_at": to_utc_z(self.occurred_at),
        }
