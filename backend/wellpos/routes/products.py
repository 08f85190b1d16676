# Overview: Flask API routes for products and bundle redemption; parses input and returns JSON responses.

"""
Products API routes

Besides CRUD, bundles expose their usage ledger:

- POST /api/products/<id>/use-service         redeem uses of the bundled service
- GET  /api/products/<id>/remaining-services  current allowance (pure read)
- GET  /api/products/<id>/usages              usage rows, newest first
"""

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee
from ..errors import ValidationError
from ..services import bundle_service, catalog_service
from ..validation import optional_id, parse_bool_arg


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    products = catalog_service.list_products(
        g.principal,
        branch_id=request.args.get("branch_id", type=int),
        product_type=request.args.get("type"),
        active=parse_bool_arg(request.args.get("active")),
    )
    return jsonify([product.to_dict() for product in products]), 200


@products_bp.post("")
@require_auth
@require_employee
def create_product():
    product = catalog_service.create_product(request.get_json(silent=True), g.principal)
    return jsonify(product.to_dict()), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    product = catalog_service.get_product(product_id, g.principal)
    return jsonify(product.to_dict()), 200


@products_bp.put("/<int:product_id>")
@require_auth
@require_employee
def update_product(product_id: int):
    product = catalog_service.update_product(product_id, request.get_json(silent=True), g.principal)
    return jsonify(product.to_dict()), 200


@products_bp.patch("/<int:product_id>/toggle-status")
@require_auth
@require_employee
def toggle_product(product_id: int):
    product = catalog_service.toggle_product(product_id, g.principal)
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_employee
def delete_product(product_id: int):
    catalog_service.delete_product(product_id, g.principal)
    return jsonify({"message": "Product deleted"}), 200


@products_bp.post("/<int:product_id>/use-service")
@require_auth
@require_employee
def use_service(product_id: int):
    data = request.get_json(silent=True) or {}
    service_id = data.get("service_id")
    if isinstance(service_id, bool) or not isinstance(service_id, int):
        raise ValidationError("service_id must be an integer")

    result = bundle_service.use_service(
        product_id,
        service_id,
        data.get("quantity", 1),
        customer_id=optional_id(data, "customer_id"),
        order_id=optional_id(data, "order_id"),
        employee_id=g.principal.principal_id,
        notes=data.get("notes"),
        context=g.principal,
    )
    return jsonify(result), 200


@products_bp.get("/<int:product_id>/remaining-services")
@require_auth
def remaining_services(product_id: int):
    return jsonify(bundle_service.get_remaining_services(product_id, g.principal)), 200


@products_bp.get("/<int:product_id>/usages")
@require_auth
@require_employee
def list_usages(product_id: int):
    usages = bundle_service.list_usages(product_id, g.principal)
    return jsonify([usage.to_dict() for usage in usages]), 200
