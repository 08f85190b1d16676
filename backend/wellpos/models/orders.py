from __future__ import annotations

from ..extensions import db
from wellpos.time_utils import to_utc_z


ORDER_STATUSES = ("pending", "paid", "canceled")
TERMINAL_ORDER_STATUSES = ("paid", "canceled")
PAYMENT_METHODS = ("cash", "card", "digital_wallet", "insurance")
ORDER_ITEM_TYPES = ("service", "product")


class Order(db.Model):
    """
    Purchase of a service or a product for a customer at a branch.

    STATE MACHINE:
        pending -> paid
        pending -> canceled

    paid / canceled orders refuse field edits; status itself is changed only
    through order_service.update_status, which is not guarded.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_branch_status", "branch_id", "status"),
        db.Index("ix_orders_customer_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    item_type = db.Column(db.String(16), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    item_name = db.Column(db.String(255), nullable=False)

    price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    appointment_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Services a bundle line grants; redemption via the order is checked against this
    included_service_ids = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    branch = db.relationship("Branch")
    product = db.relationship("Product")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "branch_id": self.branch_id,
            "employee_id": self.employee_id,
            "item_type": self.item_type,
            "service_id": self.service_id,
            "product_id": self.product_id,
            "item_name": self.item_name,
            "price": float(self.price),
            "quantity": self.quantity,
            "total_price": float(self.total_price),
            "payment_method": self.payment_method,
            "status": self.status,
            "appointment_at": to_utc_z(self.appointment_at),
            "notes": self.notes,
            "included_service_ids": list(self.included_service_ids or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ServiceUsage(db.Model):
    """
    One redemption against a bundle. Written in the same transaction as the
    product counter increment. Append-only.
    """
    __tablename__ = "service_usages"
    __table_args__ = (
        db.Index("ix_service_usages_product", "product_id"),
        db.Index("ix_service_usages_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)

    service_name = db.Column(db.String(255), nullable=False)
    quantity_used = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "branch_id": self.branch_id,
            "employee_id": self.employee_id,
            "service_name": self.service_name,
            "quantity_used": self.quantity_used,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
