# Overview: Flask API routes for employees operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee, require_roles
from ..errors import ValidationError
from ..services import employee_service


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
@require_employee
def list_employees():
    branch_id = request.args.get("branch_id", type=int)
    employees = employee_service.list_employees(g.principal, branch_id=branch_id)
    return jsonify([employee.to_dict() for employee in employees]), 200


@employees_bp.post("")
@require_auth
@require_roles("super-admin", "admin")
def create_employee():
    employee = employee_service.create_employee(request.get_json(silent=True), g.principal)
    return jsonify(employee.to_dict()), 201


@employees_bp.get("/<int:employee_id>")
@require_auth
@require_employee
def get_employee(employee_id: int):
    employee = employee_service.get_employee(employee_id, g.principal)
    return jsonify(employee.to_dict()), 200


@employees_bp.put("/<int:employee_id>")
@require_auth
@require_roles("super-admin", "admin")
def update_employee(employee_id: int):
    employee = employee_service.update_employee(employee_id, request.get_json(silent=True), g.principal)
    return jsonify(employee.to_dict()), 200


@employees_bp.patch("/<int:employee_id>/toggle-status")
@require_auth
@require_roles("super-admin", "admin")
def toggle_employee_status(employee_id: int):
    employee = employee_service.toggle_status(employee_id, g.principal)
    return jsonify(employee.to_dict()), 200


@employees_bp.post("/<int:employee_id>/change-password")
@require_auth
@require_employee
def change_password(employee_id: int):
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")
    if not current_password or not new_password:
        raise ValidationError("current_password and new_password required")

    employee_service.change_password(employee_id, current_password, new_password, g.principal)
    return jsonify({"message": "Password changed successfully"}), 200


@employees_bp.delete("/<int:employee_id>")
@require_auth
@require_roles("super-admin", "admin")
def delete_employee(employee_id: int):
    employee_service.delete_employee(employee_id, g.principal)
    return jsonify({"message": "Employee deleted"}), 200
