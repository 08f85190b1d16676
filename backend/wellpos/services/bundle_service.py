# Overview: Service-layer operations for bundle redemption; atomic usage counter and usage rows.

"""
Bundle / Usage Ledger

WHY: A bundle product grants `quantity` uses of exactly one service. Each
redemption must respect 0 <= used_quantity <= quantity even when two
cashiers redeem against the same bundle at the same moment.

ATOMICITY: check and increment are one statement:

    UPDATE products
       SET used_quantity = used_quantity + :q
     WHERE id = :id AND type = 'bundle'
       AND used_quantity + :q <= quantity

rowcount == 0 means the balance was insufficient at the instant of the
write; no read-then-write window exists. The ServiceUsage row is inserted
in the same transaction, and the USE_SERVICE audit record follows the
commit.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Order, ServiceUsage, Service, Customer
from . import audit_service, tenant_service
from .principals import PrincipalContext

logger = logging.getLogger(__name__)


def _require_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")
    return quantity


def _load_product(product_id: int, context: PrincipalContext | None) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    if context is not None:
        tenant_service.require_in_scope(context, product, "Product")
    return product


def _usage_branch_id(product: Product, branch_id: int | None, context: PrincipalContext | None) -> int | None:
    """Branch the redemption is booked to: the caller's own, else the bundle's."""
    if branch_id is not None:
        if context is not None:
            return tenant_service.require_branch_in_scope(context, branch_id).id
        return branch_id
    if context is not None and context.branch_id is not None:
        return context.branch_id
    return product.branch_id


def _usage_order(product: Product, order_id: int | None, context: PrincipalContext | None) -> Order | None:
    if order_id is None:
        return None
    order = db.session.get(Order, order_id)
    if not order or order.product_id != product.id:
        raise NotFoundError("Order not found for this product")
    if context is not None:
        tenant_service.require_in_scope(context, order, "Order")
    return order


def _usage_customer(customer_id: int | None, order: Order | None, context: PrincipalContext | None) -> int | None:
    if customer_id is None:
        return order.customer_id if order else None
    if order is not None and order.customer_id != customer_id:
        raise NotFoundError("Customer not found for this order")
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    if context is not None:
        tenant_service.require_in_scope(context, customer, "Customer")
    return customer.id


def use_service(
    product_id: int,
    service_id: int,
    quantity: int = 1,
    customer_id: int | None = None,
    order_id: int | None = None,
    branch_id: int | None = None,
    employee_id: int | None = None,
    notes: str | None = None,
    context: PrincipalContext | None = None,
) -> dict:
    """
    Redeem `quantity` uses of `service_id` from a bundle.

    Raises:
        NotFoundError: product missing / out of scope, service not in bundle,
            or a customer, order or branch that is unknown or out of scope
        ConflictError: product is not a bundle, or balance insufficient
    """
    quantity = _require_quantity(quantity)
    product = _load_product(product_id, context)

    if not product.is_bundle:
        raise ConflictError("Product is not a bundle")

    if product.service_id != service_id:
        raise NotFoundError("Service is not part of this product")

    order = _usage_order(product, order_id, context)
    customer_id = _usage_customer(customer_id, order, context)
    usage_branch_id = _usage_branch_id(product, branch_id, context)
    service = db.session.get(Service, service_id)

    try:
        claimed = db.session.execute(
            update(Product)
            .where(Product.id == product.id)
            .where(Product.type == "bundle")
            .where(Product.used_quantity + quantity <= Product.quantity)
            .values(used_quantity=Product.used_quantity + quantity)
            .execution_options(synchronize_session=False)
        ).rowcount

        if claimed != 1:
            db.session.rollback()
            raise ConflictError("Not enough remaining quantity")

        usage = ServiceUsage(
            customer_id=customer_id,
            order_id=order_id,
            product_id=product.id,
            service_id=service_id,
            branch_id=usage_branch_id,
            employee_id=employee_id,
            service_name=service.name if service else f"service:{service_id}",
            quantity_used=quantity,
            notes=notes,
        )
        db.session.add(usage)
        db.session.commit()
    except ConflictError:
        raise
    except Exception:
        db.session.rollback()
        logger.exception("Bundle redemption failed for product %s", product_id)
        raise

    db.session.refresh(product)

    audit_service.record(
        "USE_SERVICE",
        "Product",
        product.id,
        employee_id=employee_id,
        customer_id=customer_id,
        branch_id=usage_branch_id,
        order_id=order_id,
        old_values={"used_quantity": product.used_quantity - quantity},
        new_values={
            "service_id": service_id,
            "quantity_used": quantity,
            "used_quantity": product.used_quantity,
        },
    )

    return {
        "product": product.to_dict(),
        "usage": usage.to_dict(),
        "remaining_quantity": product.remaining_quantity,
    }


def use_service_from_order(
    order_id: int,
    service_id: int,
    quantity: int = 1,
    customer_id: int | None = None,
    branch_id: int | None = None,
    employee_id: int | None = None,
    notes: str | None = None,
    context: PrincipalContext | None = None,
) -> dict:
    """Redeem against the bundle an order sold; the service must be one the order grants."""
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if context is not None:
        tenant_service.require_in_scope(context, order, "Order")

    included = set(order.included_service_ids or [])
    if order.item_type != "product" or order.product_id is None or service_id not in included:
        raise NotFoundError("Service is not included in this order")

    return use_service(
        order.product_id,
        service_id,
        quantity,
        customer_id=customer_id if customer_id is not None else order.customer_id,
        order_id=order.id,
        branch_id=branch_id if branch_id is not None else order.branch_id,
        employee_id=employee_id,
        notes=notes,
        context=context,
    )


def get_remaining_services(product_id: int, context: PrincipalContext | None = None) -> dict:
    """Pure read of a bundle's allowance. Non-bundles get an explanatory result."""
    product = _load_product(product_id, context)

    if not product.is_bundle:
        return {
            "product_id": product.id,
            "is_bundle": False,
            "message": "Product is not a bundle and has no service allowance",
        }

    service = product.service
    return {
        "product_id": product.id,
        "is_bundle": True,
        "service_id": product.service_id,
        "service_name": service.name if service else None,
        "service_type": service.type if service else None,
        "total_quantity": product.quantity,
        "used_quantity": product.used_quantity,
        "remaining_quantity": product.remaining_quantity,
    }


def list_usages(product_id: int, context: PrincipalContext | None = None) -> list[ServiceUsage]:
    _load_product(product_id, context)
    return (
        db.session.query(ServiceUsage)
        .filter_by(product_id=product_id)
        .order_by(ServiceUsage.created_at.desc(), ServiceUsage.id.desc())
        .all()
    )
