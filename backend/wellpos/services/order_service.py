# Overview: Service-layer operations for orders; creation, edits, deletion and the status machine.

"""
Order Service

STATE MACHINE:
    pending -> paid
    pending -> canceled

RULES:
- Field edits are refused (Conflict) once status is paid or canceled.
- Deletion is refused (Conflict) once status is paid.
- update_status() applies any valid status from any current status. No
  transition guard is enforced there; that mirrors established behaviour and
  is pending product review.

Bundle orders record the services they grant in included_service_ids,
which bundle_service.use_service_from_order checks before redeeming.
"""

from __future__ import annotations

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Order,
    Customer,
    Service,
    Product,
    ServiceUsage,
    ORDER_STATUSES,
    PAYMENT_METHODS,
    ORDER_ITEM_TYPES,
)
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_order
from . import audit_service, tenant_service
from .principals import PrincipalContext
from wellpos.time_utils import utcnow


ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "branch_id", "item_type", "service_id", "product_id",
        "customer_name", "item_name", "price", "quantity", "payment_method",
        "appointment_at", "notes",
    },
    required_on_create={"customer_id", "item_type", "price", "payment_method"},
    choices={"item_type": ORDER_ITEM_TYPES, "payment_method": PAYMENT_METHODS},
)

ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name", "item_name", "price", "quantity", "payment_method",
        "appointment_at", "notes",
    },
    choices={"payment_method": PAYMENT_METHODS},
)


def _audit(action: str, order: Order, context: PrincipalContext, old_values=None, new_values=None) -> None:
    audit_service.record(
        action,
        "Order",
        order.id,
        employee_id=context.principal_id if context.is_employee else None,
        customer_id=order.customer_id,
        branch_id=order.branch_id,
        order_id=order.id,
        old_values=old_values,
        new_values=new_values,
    )


def get_order(order_id: int, context: PrincipalContext) -> Order:
    order = db.session.get(Order, order_id)
    return tenant_service.require_in_scope(context, order, "Order")


def list_orders(
    context: PrincipalContext,
    branch_id: int | None = None,
    customer_id: int | None = None,
    status: str | None = None,
) -> list[Order]:
    query = db.session.query(Order)

    allowed = tenant_service.visible_branch_ids(context)
    if allowed is not None:
        query = query.filter(Order.branch_id.in_(allowed))
    if branch_id is not None:
        query = query.filter(Order.branch_id == branch_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")
        query = query.filter(Order.status == status)

    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def create_order(payload: dict, context: PrincipalContext) -> Order:
    """
    Create a pending order.

    Verifies the branch and that the customer and the active service or
    product all belong to it, derives display names and the total, and stamps the customer's
    last visit.
    """
    patch = validate_payload(model=Order, payload=payload, policy=ORDER_CREATE_POLICY, partial=False)
    enforce_rules_order(patch)

    branch_id = tenant_service.resolve_branch_id(context, patch.get("branch_id"))

    customer = db.session.get(Customer, patch["customer_id"])
    tenant_service.require_in_scope(context, customer, "Customer")
    if customer.branch_id != branch_id:
        raise NotFoundError("Customer not found")

    included_service_ids: list[int] = []
    if patch["item_type"] == "service":
        service = db.session.get(Service, patch["service_id"])
        if not service or not service.active or service.branch_id != branch_id:
            raise NotFoundError("Service not found or inactive")
        item_name = patch.get("item_name") or service.name
        patch["product_id"] = None
    else:
        product = db.session.get(Product, patch["product_id"])
        if not product or not product.active:
            raise NotFoundError("Product not found or inactive")
        tenant_service.require_in_scope(context, product, "Product")
        if product.branch_id is not None and product.branch_id != branch_id:
            raise NotFoundError("Product not found or inactive")
        item_name = patch.get("item_name") or product.name
        if product.is_bundle:
            included_service_ids = [product.service_id]
        patch["service_id"] = None

    quantity = patch.get("quantity") or 1
    order = Order(
        customer_id=customer.id,
        branch_id=branch_id,
        employee_id=context.principal_id,
        customer_name=patch.get("customer_name") or customer.full_name,
        item_type=patch["item_type"],
        service_id=patch.get("service_id"),
        product_id=patch.get("product_id"),
        item_name=item_name,
        price=patch["price"],
        quantity=quantity,
        total_price=patch["price"] * quantity,
        payment_method=patch["payment_method"],
        status="pending",
        appointment_at=patch.get("appointment_at"),
        notes=patch.get("notes"),
        included_service_ids=included_service_ids,
    )
    db.session.add(order)
    customer.last_visit_at = utcnow()
    db.session.commit()

    _audit("CREATE", order, context, new_values=audit_service.snapshot(order))
    return order


def update_order(order_id: int, payload: dict, context: PrincipalContext) -> Order:
    order = get_order(order_id, context)

    if order.is_terminal:
        raise ConflictError("Cannot update paid or canceled order")

    patch = validate_payload(model=Order, payload=payload, policy=ORDER_UPDATE_POLICY, partial=True)
    enforce_rules_order(patch)

    old_values = audit_service.snapshot(order)
    for key, value in patch.items():
        setattr(order, key, value)
    order.total_price = order.price * order.quantity
    db.session.commit()

    _audit("UPDATE", order, context, old_values=old_values, new_values=audit_service.snapshot(order))
    return order


def update_status(order_id: int, status: str, context: PrincipalContext) -> Order:
    """Set status unconditionally (any valid status from any status)."""
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")

    order = get_order(order_id, context)
    old_values = audit_service.snapshot(order)
    order.status = status
    db.session.commit()

    _audit("UPDATE_STATUS", order, context, old_values=old_values, new_values=audit_service.snapshot(order))
    return order


def delete_order(order_id: int, context: PrincipalContext) -> None:
    order = get_order(order_id, context)

    if order.status == "paid":
        raise ConflictError("Cannot delete paid order")

    if db.session.query(ServiceUsage.id).filter_by(order_id=order.id).first():
        raise ConflictError("Cannot delete an order with recorded service usage")

    old_values = audit_service.snapshot(order)
    db.session.delete(order)
    db.session.commit()

    audit_service.record(
        "DELETE",
        "Order",
        old_values["id"],
        employee_id=context.principal_id,
        customer_id=old_values["customer_id"],
        branch_id=old_values["branch_id"],
        old_values=old_values,
    )
