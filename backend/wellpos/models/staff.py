from __future__ import annotations

from ..extensions import db
from wellpos.time_utils import to_utc_z


SUPER_ADMIN = "super-admin"
EMPLOYEE_ROLES = (SUPER_ADMIN, "admin", "manager", "operator")


class Employee(db.Model):
    """
    Staff principal.

    Username and email are unique across the whole system. Every role except
    super-admin is bound to a branch; the check constraint keeps rows that
    bypass the service layer honest too.

    Employees are disabled rather than deleted in normal operation.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.CheckConstraint(
            "role = 'super-admin' OR branch_id IS NOT NULL",
            name="ck_employees_branch_required",
        ),
        db.Index("ix_employees_branch_id", "branch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)

    username = db.Column(db.String(64), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    firstname = db.Column(db.String(128), nullable=False)
    lastname = db.Column(db.String(128), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)
    personal_pin = db.Column(db.String(8), nullable=False)

    role = db.Column(db.String(32), nullable=False)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    language = db.Column(db.String(8), nullable=False, default="en")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    branch = db.relationship("Branch", backref=db.backref("employees", lazy=True))

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "username": self.username,
            "email": self.email,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "role": self.role,
            "enabled": self.enabled,
            "language": self.language,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }
