# Overview: Service-layer operations for company subscriptions.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Subscription, Company
from ..validation import ModelValidationPolicy, validate_payload
from . import audit_service, catalog_service, tenant_service
from .principals import PrincipalContext


SUBSCRIPTION_POLICY = ModelValidationPolicy(
    writable_fields={"company_id", "product_ids", "start_date", "end_date", "is_active"},
    required_on_create={"company_id", "product_ids", "start_date", "end_date"},
)


def _require_company(company_id: int, context: PrincipalContext) -> Company:
    company = db.session.get(Company, company_id)
    visible = tenant_service.visible_company_id(context)
    if not company or (visible is not None and company.id != visible):
        raise NotFoundError("Company not found")
    return company


def _require_product_ids(product_ids) -> list[int]:
    if not isinstance(product_ids, list) or any(
        isinstance(pid, bool) or not isinstance(pid, int) for pid in product_ids
    ):
        raise ValidationError("product_ids must be a list of integers")
    catalog_service.require_active_products(product_ids)
    return product_ids


def _require_no_overlap(company_id: int, start, end, exclude_id: int | None = None) -> None:
    query = db.session.query(Subscription.id).filter(
        Subscription.company_id == company_id,
        Subscription.is_active.is_(True),
        Subscription.start_date <= end,
        Subscription.end_date >= start,
    )
    if exclude_id is not None:
        query = query.filter(Subscription.id != exclude_id)
    if query.first():
        raise ValidationError("Active subscription already exists for this period")


def _audit(action: str, values: dict, context: PrincipalContext, old_values=None, new_values=None) -> None:
    audit_service.record(
        action,
        "Subscription",
        values["id"],
        employee_id=context.principal_id,
        old_values=old_values,
        new_values=new_values,
    )


def list_subscriptions(context: PrincipalContext, company_id: int | None = None, active: bool | None = None) -> list[Subscription]:
    query = db.session.query(Subscription)
    visible = tenant_service.visible_company_id(context)
    if visible is not None:
        query = query.filter(Subscription.company_id == visible)
    if company_id is not None:
        query = query.filter(Subscription.company_id == company_id)
    if active is not None:
        query = query.filter(Subscription.is_active.is_(active))
    return query.order_by(Subscription.start_date.desc()).all()


def get_subscription(subscription_id: int, context: PrincipalContext) -> Subscription:
    subscription = db.session.get(Subscription, subscription_id)
    visible = tenant_service.visible_company_id(context)
    if not subscription or (visible is not None and subscription.company_id != visible):
        raise NotFoundError("Subscription not found")
    return subscription


def create_subscription(payload: dict, context: PrincipalContext) -> Subscription:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    patch = validate_payload(model=Subscription, payload=payload, policy=SUBSCRIPTION_POLICY, partial=False)

    company = _require_company(patch["company_id"], context)
    _require_product_ids(patch["product_ids"])
    if patch["start_date"] >= patch["end_date"]:
        raise ValidationError("Start date must be before end date")
    if patch.get("is_active", True):
        _require_no_overlap(company.id, patch["start_date"], patch["end_date"])

    subscription = Subscription(**patch)
    db.session.add(subscription)
    db.session.commit()

    values = audit_service.snapshot(subscription)
    _audit("CREATE", values, context, new_values=values)
    return subscription


def update_subscription(subscription_id: int, payload: dict, context: PrincipalContext) -> Subscription:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    subscription = get_subscription(subscription_id, context)

    patch = validate_payload(model=Subscription, payload=payload, policy=SUBSCRIPTION_POLICY, partial=True)
    company_id = patch.get("company_id", subscription.company_id)
    if company_id != subscription.company_id:
        _require_company(company_id, context)
    if "product_ids" in patch:
        _require_product_ids(patch["product_ids"])

    start = patch.get("start_date", subscription.start_date)
    end = patch.get("end_date", subscription.end_date)
    if start >= end:
        raise ValidationError("Start date must be before end date")
    if patch.get("is_active", subscription.is_active):
        _require_no_overlap(company_id, start, end, exclude_id=subscription.id)

    old_values = audit_service.snapshot(subscription)
    for key, value in patch.items():
        setattr(subscription, key, value)
    db.session.commit()

    new_values = audit_service.snapshot(subscription)
    _audit("UPDATE", new_values, context, old_values=old_values, new_values=new_values)
    return subscription


def delete_subscription(subscription_id: int, context: PrincipalContext) -> None:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    subscription = get_subscription(subscription_id, context)

    old_values = audit_service.snapshot(subscription)
    db.session.delete(subscription)
    db.session.commit()

    _audit("DELETE", old_values, context, old_values=old_values)
