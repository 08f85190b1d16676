from __future__ import annotations

from ..extensions import db
from wellpos.time_utils import to_utc_z


SERVICE_TYPES = ("treatment", "consultation", "wellness", "custom")
PRODUCT_TYPES = ("service", "bundle")


class Service(db.Model):
    """A bookable treatment. Name is unique within a branch."""
    __tablename__ = "services"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "name", name="uq_services_branch_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(32), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    color = db.Column(db.String(16), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "price": float(self.price) if self.price is not None else None,
            "duration_minutes": self.duration_minutes,
            "color": self.color,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable item. A "service" product is a passthrough; a "bundle" grants
    `quantity` uses of exactly one service and counts consumption in
    `used_quantity`.

    The counter pair lives on this row so a single conditional UPDATE can
    check and increment it; the check constraint backs that up in the DB.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "name", name="uq_products_branch_name"),
        db.CheckConstraint(
            "used_quantity >= 0 AND used_quantity <= quantity",
            name="ck_products_used_within_quantity",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(16), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    used_quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    service = db.relationship("Service")

    @property
    def is_bundle(self) -> bool:
        return self.type == "bundle"

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - self.used_quantity

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "price": float(self.price) if self.price is not None else None,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
        }
        if self.is_bundle:
            data.update({
                "service_id": self.service_id,
                "quantity": self.quantity,
                "used_quantity": self.used_quantity,
                "remaining_quantity": self.remaining_quantity,
            })
        return data
