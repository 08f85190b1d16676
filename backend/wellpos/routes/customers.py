# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee
from ..errors import NotFoundError
from ..services import customer_service, qr_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_employee
def list_customers():
    customers = customer_service.list_customers(
        g.principal,
        branch_id=request.args.get("branch_id", type=int),
        search=request.args.get("search"),
    )
    return jsonify([customer.to_dict() for customer in customers]), 200


@customers_bp.post("")
@require_auth
@require_employee
def create_customer():
    customer = customer_service.create_customer(request.get_json(silent=True), g.principal)
    return jsonify(customer.to_dict()), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer(customer_id: int):
    # Customers may read their own record only
    if g.principal.is_customer and g.principal.principal_id != customer_id:
        raise NotFoundError("Customer not found")
    customer = customer_service.get_customer(customer_id, g.principal)
    return jsonify(customer.to_dict()), 200


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_employee
def update_customer(customer_id: int):
    customer = customer_service.update_customer(customer_id, request.get_json(silent=True), g.principal)
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_employee
def delete_customer(customer_id: int):
    customer_service.delete_customer(customer_id, g.principal)
    return jsonify({"message": "Customer deleted"}), 200


@customers_bp.post("/<int:customer_id>/qr-code")
@require_auth
@require_employee
def generate_qr_code(customer_id: int):
    qr = qr_service.generate_qr_code(customer_id, g.principal)
    return jsonify(qr.to_dict()), 201


@customers_bp.get("/<int:customer_id>/medical-history")
@require_auth
def get_medical_history(customer_id: int):
    if g.principal.is_customer and g.principal.principal_id != customer_id:
        raise NotFoundError("Customer not found")
    history = customer_service.get_medical_history(customer_id, g.principal)
    return jsonify(history.to_dict()), 200


@customers_bp.get("/<int:customer_id>/orders")
@require_auth
def list_customer_orders(customer_id: int):
    if g.principal.is_customer and g.principal.principal_id != customer_id:
        raise NotFoundError("Customer not found")
    orders = customer_service.list_customer_orders(customer_id, g.principal)
    return jsonify([order.to_dict() for order in orders]), 200
