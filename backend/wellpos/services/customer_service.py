# Overview: Service-layer operations for customers; CRUD, medical history and order lookups.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Customer, Order, LoginSession, QRCode, PRINCIPAL_CUSTOMER
from ..validation import ModelValidationPolicy, validate_payload, enforce_email
from . import audit_service, tenant_service, session_service
from .principals import PrincipalContext


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"branch_id", "firstname", "lastname", "email", "phone", "enabled"},
    required_on_create={"firstname", "lastname", "email"},
)


def require_unique_email(branch_id: int, email: str, exclude_id: int | None = None) -> None:
    """Customer email is unique within a branch."""
    query = db.session.query(Customer.id).filter(Customer.branch_id == branch_id, Customer.email == email)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError("Customer with this email already exists in this branch")


def _audit(action: str, values: dict, context: PrincipalContext, old_values=None, new_values=None) -> None:
    audit_service.record(
        action,
        "Customer",
        values["id"],
        employee_id=context.principal_id,
        customer_id=values["id"],
        branch_id=values["branch_id"],
        old_values=old_values,
        new_values=new_values,
    )


def list_customers(context: PrincipalContext, branch_id: int | None = None, search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    allowed = tenant_service.visible_branch_ids(context)
    if allowed is not None:
        query = query.filter(Customer.branch_id.in_(allowed))
    if branch_id is not None:
        query = query.filter(Customer.branch_id == branch_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.firstname.ilike(term),
            Customer.lastname.ilike(term),
            Customer.email.ilike(term),
        ))
    return query.order_by(Customer.lastname.asc(), Customer.firstname.asc()).all()


def get_customer(customer_id: int, context: PrincipalContext) -> Customer:
    customer = db.session.get(Customer, customer_id)
    return tenant_service.require_in_scope(context, customer, "Customer")


def create_customer(payload: dict, context: PrincipalContext) -> Customer:
    tenant_service.require_employee(context)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_email(patch)

    patch["branch_id"] = tenant_service.resolve_branch_id(context, patch.get("branch_id"))
    require_unique_email(patch["branch_id"], patch["email"])

    customer = Customer(**patch)
    db.session.add(customer)
    db.session.commit()

    values = audit_service.snapshot(customer)
    _audit("CREATE", values, context, new_values=values)
    return customer


def update_customer(customer_id: int, payload: dict, context: PrincipalContext) -> Customer:
    tenant_service.require_employee(context)
    customer = get_customer(customer_id, context)

    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_email(patch)
    if "branch_id" in patch and patch["branch_id"] != customer.branch_id:
        tenant_service.require_branch_in_scope(context, patch["branch_id"])

    branch_id = patch.get("branch_id", customer.branch_id)
    email = patch.get("email", customer.email)
    if branch_id != customer.branch_id or email != customer.email:
        require_unique_email(branch_id, email, exclude_id=customer.id)

    was_enabled = customer.enabled
    old_values = audit_service.snapshot(customer)
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()

    if was_enabled and not customer.enabled:
        session_service.revoke_all(PRINCIPAL_CUSTOMER, customer.id, "disabled")

    new_values = audit_service.snapshot(customer)
    _audit("UPDATE", new_values, context, old_values=old_values, new_values=new_values)
    return customer


def delete_customer(customer_id: int, context: PrincipalContext) -> None:
    tenant_service.require_employee(context)
    customer = get_customer(customer_id, context)

    if db.session.query(Order.id).filter_by(customer_id=customer.id).first():
        raise ConflictError("Cannot delete customer with existing orders")

    session_service.revoke_all(PRINCIPAL_CUSTOMER, customer.id, "deleted")
    db.session.query(LoginSession).filter_by(customer_id=customer.id).delete(synchronize_session=False)
    db.session.query(QRCode).filter_by(customer_id=customer.id).delete(synchronize_session=False)

    old_values = audit_service.snapshot(customer)
    db.session.delete(customer)
    db.session.commit()

    _audit("DELETE", old_values, context, old_values=old_values)


def get_medical_history(customer_id: int, context: PrincipalContext):
    customer = get_customer(customer_id, context)
    if customer.medical_history is None:
        raise NotFoundError("Medical history not found")
    return customer.medical_history


def list_customer_orders(customer_id: int, context: PrincipalContext) -> list[Order]:
    customer = get_customer(customer_id, context)
    return (
        db.session.query(Order)
        .filter_by(customer_id=customer.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
