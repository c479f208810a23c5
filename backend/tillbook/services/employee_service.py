# Overview: Employee records; every change is published for audit and sync.

from __future__ import annotations

from .. import events
from ..extensions import db
from ..models import Employee, EMPLOYEE_ROLES
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "role", "is_active"},
    required_on_create={"name", "email"},
)


class EmployeeNotFoundError(LookupError):
    pass


def _check_rules(patch: dict, exclude_id: int | None = None) -> None:
    if "role" in patch and patch["role"] not in EMPLOYEE_ROLES:
        raise ValidationError(f"Invalid role: {patch['role']}. Must be one of {list(EMPLOYEE_ROLES)}")
    if "email" in patch:
        patch["email"] = patch["email"].lower()
        if "@" not in patch["email"]:
            raise ValidationError("email is not valid")
        q = db.session.query(Employee.id).filter(Employee.email == patch["email"])
        if exclude_id is not None:
            q = q.filter(Employee.id != exclude_id)
        if q.first() is not None:
            raise ConflictError(f"Email already in use: {patch['email']}")


def list_employees(active_only: bool = False) -> list[Employee]:
    q = db.session.query(Employee)
    if active_only:
        q = q.filter(Employee.is_active.is_(True))
    return q.order_by(Employee.name.asc(), Employee.id.asc()).all()


def get_employee(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise EmployeeNotFoundError(f"Employee {employee_id} not found")
    return employee


def create_employee(data: dict, actor_id=None) -> Employee:
    patch = validate_payload(model=Employee, payload=data, policy=EMPLOYEE_POLICY, partial=False)
    _check_rules(patch)
    employee = Employee(**patch)
    db.session.add(employee)
    db.session.commit()
    events.publish(events.employee_changed, employee=employee, action="create", actor_id=actor_id)
    return employee


def update_employee(employee_id: int, data: dict, actor_id=None) -> Employee:
    employee = get_employee(employee_id)
    patch = validate_payload(model=Employee, payload=data, policy=EMPLOYEE_POLICY, partial=True)
    _check_rules(patch, exclude_id=employee.id)
    for key, value in patch.items():
        setattr(employee, key, value)
    db.session.commit()
    events.publish(events.employee_changed, employee=employee, action="update", actor_id=actor_id)
    return employee


def deactivate_employee(employee_id: int, actor_id=None) -> Employee:
    """Soft delete: sales keep pointing at the employee who rang them up."""
    employee = get_employee(employee_id)
    employee.is_active = False
    db.session.commit()
    events.publish(events.employee_changed, employee=employee, action="delete", actor_id=actor_id)
    return employee
