# Overview: Service-layer operations for the catalog; services and products (including bundles).

"""
Catalog Service

SERVICES: name unique per branch. A new service is added to its branch's
offered set. Toggling flips `active` (ACTIVATE / DEACTIVATE audit).

PRODUCTS: name unique per branch; company_id follows the branch. A bundle
names exactly one service, which must be active and offered by the branch,
and a positive `quantity`. used_quantity is never client-writable; only
bundle_service moves it.
"""

from __future__ import annotations

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Service, Product, Order, ServiceUsage, SERVICE_TYPES, PRODUCT_TYPES
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_price,
    enforce_positive,
    enforce_rules_product,
)
from . import audit_service, tenant_service
from .principals import PrincipalContext


SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "branch_id", "name", "description", "type", "price",
        "duration_minutes", "color", "active",
    },
    required_on_create={"name", "description", "type", "price", "duration_minutes"},
    choices={"type": SERVICE_TYPES},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "branch_id", "name", "description", "type", "price", "active",
        "service_id", "quantity",
    },
    required_on_create={"name", "type", "price"},
    choices={"type": PRODUCT_TYPES},
)


def _audit(action: str, entity_type: str, values: dict, context: PrincipalContext, old_values=None, new_values=None) -> None:
    audit_service.record(
        action,
        entity_type,
        values["id"],
        employee_id=context.principal_id,
        branch_id=values.get("branch_id"),
        old_values=old_values,
        new_values=new_values,
    )


# Services

def _require_unique_service_name(branch_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Service.id).filter(Service.branch_id == branch_id, Service.name == name)
    if exclude_id is not None:
        query = query.filter(Service.id != exclude_id)
    if query.first():
        raise ConflictError("Service with this name already exists in this branch")


def list_services(
    context: PrincipalContext,
    branch_id: int | None = None,
    service_type: str | None = None,
    active: bool | None = None,
) -> list[Service]:
    query = db.session.query(Service)
    allowed = tenant_service.visible_branch_ids(context)
    if allowed is not None:
        query = query.filter(Service.branch_id.in_(allowed))
    if branch_id is not None:
        query = query.filter(Service.branch_id == branch_id)
    if service_type:
        query = query.filter(Service.type == service_type)
    if active is not None:
        query = query.filter(Service.active.is_(active))
    return query.order_by(Service.name.asc()).all()


def get_service(service_id: int, context: PrincipalContext) -> Service:
    return tenant_service.require_in_scope(context, db.session.get(Service, service_id), "Service")


def create_service(payload: dict, context: PrincipalContext) -> Service:
    tenant_service.require_employee(context)
    patch = validate_payload(model=Service, payload=payload, policy=SERVICE_POLICY, partial=False)
    enforce_price(patch)
    enforce_positive(patch, "duration_minutes")

    branch = tenant_service.require_branch_in_scope(
        context, tenant_service.resolve_branch_id(context, patch.get("branch_id"))
    )
    patch["branch_id"] = branch.id
    _require_unique_service_name(branch.id, patch["name"])

    service = Service(**patch)
    db.session.add(service)
    branch.services.append(service)
    db.session.commit()

    values = audit_service.snapshot(service)
    _audit("CREATE", "Service", values, context, new_values=values)
    return service


def update_service(service_id: int, payload: dict, context: PrincipalContext) -> Service:
    tenant_service.require_employee(context)
    service = get_service(service_id, context)

    patch = validate_payload(model=Service, payload=payload, policy=SERVICE_POLICY, partial=True)
    enforce_price(patch)
    enforce_positive(patch, "duration_minutes")
    if "branch_id" in patch and patch["branch_id"] != service.branch_id:
        raise ValidationError("A service cannot move to another branch")
    if "name" in patch and patch["name"] != service.name:
        _require_unique_service_name(service.branch_id, patch["name"], exclude_id=service.id)

    old_values = audit_service.snapshot(service)
    for key, value in patch.items():
        setattr(service, key, value)
    db.session.commit()

    new_values = audit_service.snapshot(service)
    _audit("UPDATE", "Service", new_values, context, old_values=old_values, new_values=new_values)
    return service


def toggle_service(service_id: int, context: PrincipalContext) -> Service:
    tenant_service.require_employee(context)
    service = get_service(service_id, context)

    old_values = audit_service.snapshot(service)
    service.active = not service.active
    db.session.commit()

    new_values = audit_service.snapshot(service)
    _audit("ACTIVATE" if service.active else "DEACTIVATE", "Service", new_values, context,
           old_values=old_values, new_values=new_values)
    return service


def delete_service(service_id: int, context: PrincipalContext) -> None:
    tenant_service.require_employee(context)
    service = get_service(service_id, context)

    if db.session.query(Product.id).filter_by(service_id=service.id).first():
        raise ConflictError("Cannot delete a service that is included in a product")
    if db.session.query(Order.id).filter_by(service_id=service.id).first():
        raise ConflictError("Cannot delete a service with existing orders")

    old_values = audit_service.snapshot(service)
    if service.branch_id is not None:
        branch = tenant_service.require_branch_in_scope(context, service.branch_id)
        if service in branch.services:
            branch.services.remove(service)
    db.session.delete(service)
    db.session.commit()

    _audit("DELETE", "Service", old_values, context, old_values=old_values)


# Products

def _require_unique_product_name(branch_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.branch_id == branch_id, Product.name == name)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product with this name already exists in this branch")


def _require_bundle_service(branch, service_id: int) -> Service:
    service = db.session.get(Service, service_id)
    if not service or not service.active:
        raise ConflictError("Service not found or inactive")
    if not branch.offers_service(service.id):
        raise ConflictError(f"Service '{service.name}' is not available in this branch")
    return service


def list_products(
    context: PrincipalContext,
    branch_id: int | None = None,
    product_type: str | None = None,
    active: bool | None = None,
) -> list[Product]:
    query = db.session.query(Product)
    allowed = tenant_service.visible_branch_ids(context)
    if allowed is not None:
        query = query.filter(Product.branch_id.in_(allowed))
    if branch_id is not None:
        query = query.filter(Product.branch_id == branch_id)
    if product_type:
        query = query.filter(Product.type == product_type)
    if active is not None:
        query = query.filter(Product.active.is_(active))
    return query.order_by(Product.name.asc()).all()


def get_product(product_id: int, context: PrincipalContext) -> Product:
    return tenant_service.require_in_scope(context, db.session.get(Product, product_id), "Product")


def create_product(payload: dict, context: PrincipalContext) -> Product:
    tenant_service.require_employee(context)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    branch = tenant_service.require_branch_in_scope(
        context, tenant_service.resolve_branch_id(context, patch.get("branch_id"))
    )
    patch["branch_id"] = branch.id
    patch["company_id"] = branch.company_id
    _require_unique_product_name(branch.id, patch["name"])

    if patch["type"] == "bundle":
        _require_bundle_service(branch, patch["service_id"])
    else:
        patch["service_id"] = None
        patch["quantity"] = 0

    product = Product(used_quantity=0, **patch)
    db.session.add(product)
    db.session.commit()

    values = audit_service.snapshot(product)
    _audit("CREATE", "Product", values, context, new_values=values)
    return product


def update_product(product_id: int, payload: dict, context: PrincipalContext) -> Product:
    """
    Edit a product. A bundle that has been redeemed keeps its type and
    service, and its quantity cannot drop below what was already used.
    """
    tenant_service.require_employee(context)
    product = get_product(product_id, context)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_price(patch)
    enforce_positive(patch, "quantity")
    if "branch_id" in patch and patch["branch_id"] != product.branch_id:
        raise ValidationError("A product cannot move to another branch")
    if "name" in patch and patch["name"] != product.name:
        _require_unique_product_name(product.branch_id, patch["name"], exclude_id=product.id)

    new_type = patch.get("type", product.type)
    has_usage = product.used_quantity > 0 or db.session.query(ServiceUsage.id).filter_by(product_id=product.id).first()
    if has_usage and (
        new_type != product.type or ("service_id" in patch and patch["service_id"] != product.service_id)
    ):
        raise ConflictError("Cannot change type or service of a bundle that has been used")

    if new_type == "bundle":
        service_id = patch.get("service_id", product.service_id)
        quantity = patch.get("quantity", product.quantity)
        if service_id is None or not quantity:
            raise ValidationError("Bundle products require service_id and quantity")
        if service_id != product.service_id or new_type != product.type:
            branch = tenant_service.require_branch_in_scope(context, product.branch_id)
            _require_bundle_service(branch, service_id)
        if quantity < product.used_quantity:
            raise ConflictError("quantity cannot be lower than the quantity already used")
    else:
        patch["service_id"] = None
        patch["quantity"] = 0

    old_values = audit_service.snapshot(product)
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()

    new_values = audit_service.snapshot(product)
    _audit("UPDATE", "Product", new_values, context, old_values=old_values, new_values=new_values)
    return product


def toggle_product(product_id: int, context: PrincipalContext) -> Product:
    tenant_service.require_employee(context)
    product = get_product(product_id, context)

    old_values = audit_service.snapshot(product)
    product.active = not product.active
    db.session.commit()

    new_values = audit_service.snapshot(product)
    _audit("ACTIVATE" if product.active else "DEACTIVATE", "Product", new_values, context,
           old_values=old_values, new_values=new_values)
    return product


def delete_product(product_id: int, context: PrincipalContext) -> None:
    tenant_service.require_employee(context)
    product = get_product(product_id, context)

    if db.session.query(Order.id).filter_by(product_id=product.id).first():
        raise ConflictError("Cannot delete a product with existing orders")
    if db.session.query(ServiceUsage.id).filter_by(product_id=product.id).first():
        raise ConflictError("Cannot delete a product with recorded service usage")

    old_values = audit_service.snapshot(product)
    db.session.delete(product)
    db.session.commit()

    _audit("DELETE", "Product", old_values, context, old_values=old_values)


def require_active_products(product_ids: list[int]) -> list[Product]:
    """All ids must name existing, active products (used by subscriptions)."""
    if not product_ids:
        return []
    products = (
        db.session.query(Product)
        .filter(Product.id.in_(product_ids), Product.active.is_(True))
        .all()
    )
    if len(products) != len(set(product_ids)):
        raise ValidationError("One or more products not found or inactive")
    return products
