# Overview: Service-layer operations for companies (tenant roots).

from __future__ import annotations

from ..errors import ConflictError, ForbiddenError, NotFoundError
from ..extensions import db
from ..models import Company, Branch
from ..validation import ModelValidationPolicy, validate_payload, enforce_email
from . import audit_service, tenant_service
from .principals import PrincipalContext, SeniorAdmin


COMPANY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "email", "phone", "address", "enabled"},
    required_on_create={"name", "contact_person", "email", "phone", "address"},
)


def _require_unique_email(email: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Company.id).filter(Company.email == email)
    if exclude_id is not None:
        query = query.filter(Company.id != exclude_id)
    if query.first():
        raise ConflictError("Company with this email already exists")


def list_companies(context: PrincipalContext) -> list[Company]:
    query = db.session.query(Company)
    company_id = tenant_service.visible_company_id(context)
    if company_id is not None:
        query = query.filter(Company.id == company_id)
    return query.order_by(Company.name.asc()).all()


def get_company(company_id: int, context: PrincipalContext) -> Company:
    company = db.session.get(Company, company_id)
    visible = tenant_service.visible_company_id(context)
    if not company or (visible is not None and company.id != visible):
        raise NotFoundError("Company not found")
    return company


def create_company(payload: dict, context: PrincipalContext) -> Company:
    """
    Create a tenant root. Only a super-admin may do this: any other role is
    bound to an existing company by its branch.
    """
    if not isinstance(context.principal, SeniorAdmin):
        raise ForbiddenError("Only a super-admin may create companies")

    patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=False)
    enforce_email(patch)
    _require_unique_email(patch["email"])

    company = Company(**patch)
    db.session.add(company)
    db.session.commit()

    audit_service.record(
        "CREATE",
        "Company",
        company.id,
        employee_id=context.principal_id,
        new_values=audit_service.snapshot(company),
    )
    return company


def update_company(company_id: int, payload: dict, context: PrincipalContext) -> Company:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    company = get_company(company_id, context)

    patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=True)
    enforce_email(patch)
    if "email" in patch and patch["email"] != company.email:
        _require_unique_email(patch["email"], exclude_id=company.id)

    old_values = audit_service.snapshot(company)
    for key, value in patch.items():
        setattr(company, key, value)
    db.session.commit()

    audit_service.record(
        "UPDATE",
        "Company",
        company.id,
        employee_id=context.principal_id,
        old_values=old_values,
        new_values=audit_service.snapshot(company),
    )
    return company


def delete_company(company_id: int, context: PrincipalContext) -> None:
    if not isinstance(context.principal, SeniorAdmin):
        raise ForbiddenError("Only a super-admin may delete companies")
    company = get_company(company_id, context)

    if db.session.query(Branch.id).filter_by(company_id=company.id).first():
        raise ConflictError("Cannot delete company with existing branches")

    old_values = audit_service.snapshot(company)
    db.session.delete(company)
    db.session.commit()

    audit_service.record(
        "DELETE",
        "Company",
        old_values["id"],
        employee_id=context.principal_id,
        old_values=old_values,
    )
