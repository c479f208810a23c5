# Overview: Customer master data. Balances move only through ledger_service.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, CustomerTransaction
from ..money import ZERO
from ..validation import ModelValidationPolicy, validate_payload

# balance and total_purchases are deliberately absent: they are ledger-owned
CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "is_active"},
    required_on_create={"name"},
)


class CustomerNotFoundError(LookupError):
    """Raised when a customer id does not resolve."""


def list_customers(active_only: bool = False, search: str | None = None) -> list[Customer]:
    q = db.session.query(Customer)
    if active_only:
        q = q.filter(Customer.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        q = q.filter((Customer.name.ilike(like)) | (Customer.phone.ilike(like)))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def create_customer(data: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=False)
    customer = Customer(**patch, balance=ZERO, total_purchases=ZERO)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, data: dict) -> Customer:
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer


def list_transactions(customer_id: int) -> list[CustomerTransaction]:
    get_customer(customer_id)
    return (
        db.session.query(CustomerTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(CustomerTransaction.sequence.asc())
        .all()
    )
