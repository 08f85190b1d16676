# Overview: Flask API routes for branches operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee, require_roles
from ..services import branch_service
from ..validation import parse_bool_arg


branches_bp = Blueprint("branches", __name__, url_prefix="/api/branches")


@branches_bp.get("")
@require_auth
@require_employee
def list_branches():
    include_disabled = parse_bool_arg(request.args.get("include_disabled"))
    branches = branch_service.list_branches(
        g.principal,
        include_disabled=True if include_disabled is None else include_disabled,
    )
    return jsonify([branch.to_dict() for branch in branches]), 200


@branches_bp.get("/public")
def list_public_branches():
    """Enabled branches, for the intake form; no auth."""
    branches = branch_service.list_public_branches()
    return jsonify([
        {"id": b.id, "name": b.name, "city": b.city, "phone": b.phone, "email": b.email}
        for b in branches
    ]), 200


@branches_bp.post("")
@require_auth
@require_roles("super-admin", "admin")
def create_branch():
    branch = branch_service.create_branch(request.get_json(silent=True), g.principal)
    return jsonify(branch.to_dict()), 201


@branches_bp.get("/<int:branch_id>")
@require_auth
@require_employee
def get_branch(branch_id: int):
    branch = branch_service.get_branch(branch_id, g.principal)
    return jsonify(branch.to_dict()), 200


@branches_bp.put("/<int:branch_id>")
@require_auth
@require_roles("super-admin", "admin")
def update_branch(branch_id: int):
    branch = branch_service.update_branch(branch_id, request.get_json(silent=True), g.principal)
    return jsonify(branch.to_dict()), 200


@branches_bp.delete("/<int:branch_id>")
@require_auth
@require_roles("super-admin", "admin")
def delete_branch(branch_id: int):
    branch_service.delete_branch(branch_id, g.principal)
    return jsonify({"message": "Branch deleted"}), 200
