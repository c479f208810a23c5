from __future__ import annotations

from ..extensions import db
from ..money import dec_str
from tillbook.time_utils import to_utc_z


PAYMENT_CASH = "cash"
PAYMENT_MOBILE_MONEY = "mobile_money"
PAYMENT_CREDIT = "credit"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_MOBILE_MONEY, PAYMENT_CREDIT)

STATUS_PAID = "paid"
STATUS_CREDIT = "credit"
STATUS_PARTIAL = "partial"


class Sale(db.Model):
    """
    Committed sale document.

    Sales are immutable once created: there is no update or delete path.
    A sale without items is a manual ledger movement (customer payment,
    credit or adjustment) and is never counted as revenue.

    PAYMENT STATUS:
    - paid: fully settled at the till
    - credit: unpaid remainder booked as customer debt
    - partial: under-tendered sale explicitly accepted by the caller
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("device_id", "receipt_number", name="uq_sales_device_receipt"),
        db.Index("ix_sales_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "REC-001001")
    receipt_number = db.Column(db.String(64), nullable=False)
    device_id = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True, index=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, index=True)  # paid, credit, partial
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    advance_used = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    change_due = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        lazy=True,
    )
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    cashier = db.relationship("Employee", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_revenue(self) -> bool:
        return len(self.items) > 0

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "device_id": self.device_id,
            "created_at": to_utc_z(self.created_at),
            "customer_id": self.customer_id,
            "cashier_id": self.cashier_id,
            "subtotal": dec_str(self.subtotal),
            "discount": dec_str(self.discount),
            "tax": dec_str(self.tax),
            "total": dec_str(self.total),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "amount_paid": dec_str(self.amount_paid),
            "advance_used": dec_str(self.advance_used),
            "change": dec_str(self.change_due),
            "notes": self.notes,
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Individual line items on a sale (prices frozen at finalize time)."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    price_kind = db.Column(db.String(16), nullable=False, default="retail")
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": dec_str(self.quantity),
            "unit_price": dec_str(self.unit_price),
            "price_kind": self.price_kind,
            "discount": dec_str(self.discount),
            "subtotal": dec_str(self.subtotal),
        }
