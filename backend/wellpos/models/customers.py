from __future__ import annotations

from ..extensions import db
from wellpos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer principal. Authenticates only through one-time QR codes.

    Email is unique within a branch, not globally.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "email", name="uq_customers_branch_email"),
        db.Index("ix_customers_branch_id", "branch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    firstname = db.Column(db.String(128), nullable=False)
    lastname = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)

    enabled = db.Column(db.Boolean, nullable=False, default=True)
    last_visit_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("customers", lazy=True))
    medical_history = db.relationship(
        "MedicalHistory",
        uselist=False,
        back_populates="customer",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "email": self.email,
            "phone": self.phone,
            "enabled": self.enabled,
            "last_visit_at": to_utc_z(self.last_visit_at),
            "has_medical_history": self.medical_history is not None,
            "created_at": to_utc_z(self.created_at),
        }


class MedicalHistory(db.Model):
    """Intake form answers, one per customer."""
    __tablename__ = "medical_histories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, unique=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    field_of_application = db.Column(db.JSON, nullable=False, default=dict)
    pregnancy = db.Column(db.Boolean, nullable=False, default=False)
    diseases = db.Column(db.JSON, nullable=False, default=list)
    health_issues = db.Column(db.JSON, nullable=False, default=list)
    drugs_and_implants = db.Column(db.JSON, nullable=False, default=list)
    generic_note = db.Column(db.Text, nullable=True)
    terms_accepted = db.Column(db.Boolean, nullable=False)
    signature = db.Column(db.Text, nullable=True)
    personal_data = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", back_populates="medical_history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "branch_id": self.branch_id,
            "field_of_application": self.field_of_application,
            "pregnancy": self.pregnancy,
            "diseases": self.diseases,
            "health_issues": self.health_issues,
            "drugs_and_implants": self.drugs_and_implants,
            "generic_note": self.generic_note,
            "terms_accepted": self.terms_accepted,
            "signature": self.signature,
            "personal_data": self.personal_data,
            "created_at": to_utc_z(self.created_at),
        }
