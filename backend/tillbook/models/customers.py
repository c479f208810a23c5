from __future__ import annotations

from ..extensions import db
from ..money import dec_str
from tillbook.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data plus the scalar side of the customer ledger.

    SIGN CONVENTION (single, global):
    - balance > 0: the shop owes the customer (advance on file)
    - balance < 0: the customer owes the shop (debt)

    balance is only ever changed together with an appended
    CustomerTransaction (see services/ledger_service.py).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Denormalized ledger aggregates
    balance = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_purchases = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    transactions = db.relationship(
        "CustomerTransaction",
        back_populates="customer",
        order_by="CustomerTransaction.sequence",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "is_active": self.is_active,
            "balance": dec_str(self.balance),
            "total_purchases": dec_str(self.total_purchases),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class CustomerTransaction(db.Model):
    """
    Append-only ledger of customer balance movements.

    TRANSACTION TYPES:
    - gave: the shop extended credit (balance goes down)
    - took: the shop received money (balance goes up), or, with
      payment_method "advance", the customer's advance was consumed
      (balance goes down)

    amount is always positive; balance is the snapshot right after this
    movement. sequence is 1-based and gapless per customer.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "customer_transactions"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "sequence", name="uq_customer_txns_sequence"),
        db.Index("ix_customer_txns_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    tx_type = db.Column(db.String(8), nullable=False, index=True)  # gave, took
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    balance = db.Column(db.Numeric(14, 2), nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("Customer", back_populates="transactions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sequence": self.sequence,
            "type": self.tx_type,
            "amount": dec_str(self.amount),
            "payment_method": self.payment_method,
            "description": self.description,
            "balance": dec_str(self.balance),
            "sale_id": self.sale_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
