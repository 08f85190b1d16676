# Overview: Flask API routes for services (treatments) operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee
from ..services import catalog_service
from ..validation import parse_bool_arg


services_bp = Blueprint("services", __name__, url_prefix="/api/services")


@services_bp.get("")
@require_auth
def list_services():
    services = catalog_service.list_services(
        g.principal,
        branch_id=request.args.get("branch_id", type=int),
        service_type=request.args.get("type"),
        active=parse_bool_arg(request.args.get("active")),
    )
    return jsonify([service.to_dict() for service in services]), 200


@services_bp.post("")
@require_auth
@require_employee
def create_service():
    service = catalog_service.create_service(request.get_json(silent=True), g.principal)
    return jsonify(service.to_dict()), 201


@services_bp.get("/<int:service_id>")
@require_auth
def get_service(service_id: int):
    service = catalog_service.get_service(service_id, g.principal)
    return jsonify(service.to_dict()), 200


@services_bp.put("/<int:service_id>")
@require_auth
@require_employee
def update_service(service_id: int):
    service = catalog_service.update_service(service_id, request.get_json(silent=True), g.principal)
    return jsonify(service.to_dict()), 200


@services_bp.patch("/<int:service_id>/toggle-status")
@require_auth
@require_employee
def toggle_service(service_id: int):
    service = catalog_service.toggle_service(service_id, g.principal)
    return jsonify(service.to_dict()), 200


@services_bp.delete("/<int:service_id>")
@require_auth
@require_employee
def delete_service(service_id: int):
    catalog_service.delete_service(service_id, g.principal)
    return jsonify({"message": "Service deleted"}), 200
