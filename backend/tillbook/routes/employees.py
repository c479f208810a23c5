# Overview: Flask API routes for employees; parses input and returns JSON responses.

# backend/tillbook/routes/employees.py
from flask import Blueprint, current_app, jsonify, request

from ..services import employee_service
from ..services.employee_service import EmployeeNotFoundError
from ..validation import ConflictError, ValidationError

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


def _json_error(exc: Exception):
    if isinstance(exc, EmployeeNotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    current_app.logger.exception("Employee request failed")
    return jsonify({"error": "Internal server error"}), 500


@employees_bp.get("")
def list_employees():
    active_only = request.args.get("active") in ("1", "true")
    rows = employee_service.list_employees(active_only=active_only)
    return jsonify({"items": [e.to_dict() for e in rows], "count": len(rows)})


@employees_bp.post("")
def create_employee_route():
    data = request.get_json(silent=True) or {}
    actor_id = data.pop("actor_id", None)
    try:
        employee = employee_service.create_employee(data, actor_id=actor_id)
    except Exception as e:
        return _json_error(e)
    return jsonify({"employee": employee.to_dict()}), 201


@employees_bp.patch("/<int:employee_id>")
def update_employee_route(employee_id: int):
    data = request.get_json(silent=True) or {}
    actor_id = data.pop("actor_id", None)
    try:
        employee = employee_service.update_employee(employee_id, data, actor_id=actor_id)
    except Exception as e:
        return _json_error(e)
    return jsonify({"employee": employee.to_dict()})


@employees_bp.delete("/<int:employee_id>")
def deactivate_employee_route(employee_id: int):
    try:
        employee = employee_service.deactivate_employee(employee_id, actor_id=request.args.get("actor_id"))
    except Exception as e:
        return _json_error(e)
    return jsonify({"employee": employee.to_dict()})
