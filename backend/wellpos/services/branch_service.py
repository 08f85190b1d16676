# Overview: Service-layer operations for branches; scoping, uniqueness and offered services.

"""
Branch Service

MULTI-TENANT: A branch belongs to one company. Admins create and edit
branches only inside their own company; a super-admin names the company
(or inherits DEFAULT_COMPANY_ID).

service_ids (write-only payload key) sets the services the branch offers.
Each must be a service registered at this branch; bundles may only include
offered services.
"""

from __future__ import annotations

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Branch, Company, Employee, Customer, Service
from ..validation import ModelValidationPolicy, validate_payload, enforce_email
from . import audit_service, tenant_service
from .principals import PrincipalContext


BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={
        "company_id", "name", "contact_person", "email", "phone", "timezone",
        "street", "house_number", "postcode", "city", "country",
        "billing_address", "opening_hours", "enabled", "visible_to_others",
    },
    required_on_create={
        "name", "contact_person", "email", "phone",
        "street", "postcode", "city", "country",
    },
    extra_fields={"service_ids"},
)


def _snapshot(branch: Branch) -> dict:
    values = audit_service.snapshot(branch)
    values["service_ids"] = sorted(s.id for s in branch.services)
    return values


def _require_unique_email(email: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Branch.id).filter(Branch.email == email)
    if exclude_id is not None:
        query = query.filter(Branch.id != exclude_id)
    if query.first():
        raise ConflictError("Branch with this email already exists")


def _resolve_services(branch_id: int | None, service_ids) -> list[Service]:
    if not isinstance(service_ids, list) or any(
        isinstance(sid, bool) or not isinstance(sid, int) for sid in service_ids
    ):
        raise ValidationError("service_ids must be a list of integers")
    if not service_ids:
        return []
    services = db.session.query(Service).filter(Service.id.in_(service_ids)).all()
    if len(services) != len(set(service_ids)) or any(s.branch_id != branch_id for s in services):
        raise NotFoundError("One or more services not found in this branch")
    return services


def list_branches(context: PrincipalContext, include_disabled: bool = True) -> list[Branch]:
    query = db.session.query(Branch)
    allowed = tenant_service.visible_branch_ids(context)
    if allowed is not None:
        query = query.filter(Branch.id.in_(allowed))
    if not include_disabled:
        query = query.filter(Branch.enabled.is_(True))
    return query.order_by(Branch.name.asc()).all()


def list_public_branches() -> list[Branch]:
    """Enabled branches, for the unauthenticated intake form."""
    return db.session.query(Branch).filter(Branch.enabled.is_(True)).order_by(Branch.name.asc()).all()


def get_branch(branch_id: int, context: PrincipalContext) -> Branch:
    return tenant_service.require_branch_in_scope(context, branch_id)


def create_branch(payload: dict, context: PrincipalContext) -> Branch:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)

    patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=False)
    enforce_email(patch)
    patch.pop("service_ids", None)

    scope_company = tenant_service.visible_company_id(context)
    company_id = patch.get("company_id") or scope_company
    if company_id is None:
        raise ValidationError("company_id is required")
    if scope_company is not None and company_id != scope_company:
        raise NotFoundError("Company not found")
    if not db.session.get(Company, company_id):
        raise NotFoundError("Company not found")
    patch["company_id"] = company_id

    _require_unique_email(patch["email"])

    branch = Branch(**patch)
    db.session.add(branch)
    db.session.commit()

    audit_service.record(
        "CREATE",
        "Branch",
        branch.id,
        employee_id=context.principal_id,
        branch_id=branch.id,
        new_values=_snapshot(branch),
    )
    return branch


def update_branch(branch_id: int, payload: dict, context: PrincipalContext) -> Branch:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    branch = get_branch(branch_id, context)

    patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=True)
    enforce_email(patch)
    if "company_id" in patch and patch["company_id"] != branch.company_id:
        raise ValidationError("A branch cannot move to another company")
    if "email" in patch and patch["email"] != branch.email:
        _require_unique_email(patch["email"], exclude_id=branch.id)

    services = None
    if "service_ids" in patch:
        services = _resolve_services(branch.id, patch.pop("service_ids"))

    old_values = _snapshot(branch)
    for key, value in patch.items():
        setattr(branch, key, value)
    if services is not None:
        branch.services = services
    db.session.commit()

    audit_service.record(
        "UPDATE",
        "Branch",
        branch.id,
        employee_id=context.principal_id,
        branch_id=branch.id,
        old_values=old_values,
        new_values=_snapshot(branch),
    )
    return branch


def delete_branch(branch_id: int, context: PrincipalContext) -> None:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    branch = get_branch(branch_id, context)

    if db.session.query(Employee.id).filter_by(branch_id=branch.id).first():
        raise ConflictError("Cannot delete branch with existing employees")
    if db.session.query(Customer.id).filter_by(branch_id=branch.id).first():
        raise ConflictError("Cannot delete branch with existing customers")

    old_values = _snapshot(branch)
    branch.services = []
    db.session.delete(branch)
    db.session.commit()

    audit_service.record(
        "DELETE",
        "Branch",
        old_values["id"],
        employee_id=context.principal_id,
        branch_id=old_values["id"],
        old_values=old_values,
    )
