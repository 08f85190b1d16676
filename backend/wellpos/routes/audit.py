# Overview: Flask API routes for the audit journal; read-only queries for admins.

"""
Audit API routes

MULTI-TENANT: a super-admin sees every record (or those of DEFAULT_COMPANY_ID's
branches, via branch filters); admins and managers are pinned to their own
branch regardless of what they pass.
"""

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_roles
from ..errors import ValidationError
from ..services import audit_service
from ..time_utils import parse_iso_datetime


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")

AUDIT_READER_ROLES = ("super-admin", "admin", "manager")


def _date_arg(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


def _scoped_branch_id():
    if g.principal.is_super_admin:
        return request.args.get("branch_id", type=int)
    return g.principal.branch_id


@audit_bp.get("")
@require_auth
@require_roles(*AUDIT_READER_ROLES)
def list_audit_records():
    filters = {
        "action": request.args.get("action"),
        "entity_type": request.args.get("entity_type"),
        "entity_id": request.args.get("entity_id", type=int),
        "employee_id": request.args.get("employee_id", type=int),
        "customer_id": request.args.get("customer_id", type=int),
        "branch_id": _scoped_branch_id(),
        "start": _date_arg("start_date"),
        "end": _date_arg("end_date"),
    }
    result = audit_service.list_records(
        filters,
        page=request.args.get("page", 1, type=int),
        limit=request.args.get("limit", audit_service.DEFAULT_PAGE_SIZE, type=int),
    )
    return jsonify(result), 200


@audit_bp.get("/entity/<entity_type>/<int:entity_id>")
@require_auth
@require_roles(*AUDIT_READER_ROLES)
def entity_history(entity_type: str, entity_id: int):
    records = audit_service.records_for_entity(entity_type, entity_id, branch_id=_scoped_branch_id())
    return jsonify([r.to_dict() for r in records]), 200


@audit_bp.get("/employee/<int:employee_id>")
@require_auth
@require_roles(*AUDIT_READER_ROLES)
def employee_activity(employee_id: int):
    records = audit_service.records_for_employee(
        employee_id,
        start=_date_arg("start_date"),
        end=_date_arg("end_date"),
    )
    branch_id = _scoped_branch_id()
    if branch_id is not None:
        records = [r for r in records if r.branch_id == branch_id]
    return jsonify([r.to_dict() for r in records]), 200


@audit_bp.get("/stats")
@require_auth
@require_roles(*AUDIT_READER_ROLES)
def audit_statistics():
    stats = audit_service.statistics(
        start=_date_arg("start_date"),
        end=_date_arg("end_date"),
        branch_id=_scoped_branch_id(),
    )
    return jsonify(stats), 200
