# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee
from ..errors import ValidationError
from ..services import bundle_service, order_service
from ..validation import optional_id


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
@require_employee
def list_orders():
    orders = order_service.list_orders(
        g.principal,
        branch_id=request.args.get("branch_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
        status=request.args.get("status"),
    )
    return jsonify([order.to_dict() for order in orders]), 200


@orders_bp.post("")
@require_auth
@require_employee
def create_order():
    order = order_service.create_order(request.get_json(silent=True), g.principal)
    return jsonify(order.to_dict()), 201


@orders_bp.get("/<int:order_id>")
@require_auth
@require_employee
def get_order(order_id: int):
    order = order_service.get_order(order_id, g.principal)
    return jsonify(order.to_dict()), 200


@orders_bp.put("/<int:order_id>")
@require_auth
@require_employee
def update_order(order_id: int):
    order = order_service.update_order(order_id, request.get_json(silent=True), g.principal)
    return jsonify(order.to_dict()), 200


@orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_employee
def update_order_status(order_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        raise ValidationError("status required")
    order = order_service.update_status(order_id, status, g.principal)
    return jsonify(order.to_dict()), 200


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_employee
def delete_order(order_id: int):
    order_service.delete_order(order_id, g.principal)
    return jsonify({"message": "Order deleted"}), 200


@orders_bp.post("/<int:order_id>/use-service")
@require_auth
@require_employee
def use_service_from_order(order_id: int):
    data = request.get_json(silent=True) or {}
    service_id = data.get("service_id")
    if isinstance(service_id, bool) or not isinstance(service_id, int):
        raise ValidationError("service_id must be an integer")

    result = bundle_service.use_service_from_order(
        order_id,
        service_id,
        data.get("quantity", 1),
        customer_id=optional_id(data, "customer_id"),
        employee_id=g.principal.principal_id,
        notes=data.get("notes"),
        context=g.principal,
    )
    return jsonify(result), 200
