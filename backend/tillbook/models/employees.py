from __future__ import annotations

from ..extensions import db
from tillbook.time_utils import to_utc_z


EMPLOYEE_ROLES = ("admin", "manager", "cashier", "inventory")


class Employee(db.Model):
    """
    Staff member acting at the till.

    Authentication lives outside this service; the role is what the sale
    engine needs to decide whether a sale is reported upstream.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_employees_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    role = db.Column(db.String(16), nullable=False, default="cashier", index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
