from __future__ import annotations

from ..extensions import db
from wellpos.time_utils import to_utc_z


branch_services = db.Table(
    "branch_services",
    db.Column("branch_id", db.Integer, db.ForeignKey("branches.id"), primary_key=True),
    db.Column("service_id", db.Integer, db.ForeignKey("services.id"), primary_key=True),
)


class Company(db.Model):
    """
    Tenant root. Every branch, and through it every employee, customer,
    product and order, belongs to exactly one company.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(64), nullable=False)
    address = db.Column(db.String(512), nullable=False)

    enabled = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "enabled": self.enabled,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Branch(db.Model):
    """
    A physical location of a company. Branch email is globally unique.

    Services offered here are tracked in branch_services; bundle products may
    only include a service the branch offers.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.Index("ix_branches_company_id", "company_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    phone = db.Column(db.String(64), nullable=False)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    street = db.Column(db.String(255), nullable=False)
    house_number = db.Column(db.String(32), nullable=True)
    postcode = db.Column(db.String(32), nullable=False)
    city = db.Column(db.String(128), nullable=False)
    country = db.Column(db.String(128), nullable=False)
    billing_address = db.Column(db.String(512), nullable=True)

    opening_hours = db.Column(db.JSON, nullable=False, default=list)

    enabled = db.Column(db.Boolean, nullable=False, default=True, index=True)
    visible_to_others = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("branches", lazy=True))
    services = db.relationship("Service", secondary=branch_services, lazy="selectin")

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r} company_id={self.company_id}>"

    def offers_service(self, service_id: int) -> bool:
        return any(s.id == service_id for s in self.services)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "timezone": self.timezone,
            "address": {
                "street": self.street,
                "house_number": self.house_number,
                "postcode": self.postcode,
                "city": self.city,
                "country": self.country,
            },
            "billing_address": self.billing_address,
            "opening_hours": self.opening_hours or [],
            "service_ids": [s.id for s in self.services],
            "enabled": self.enabled,
            "visible_to_others": self.visible_to_others,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
