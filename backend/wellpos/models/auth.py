from __future__ import annotations

from ..extensions import db
from wellpos.time_utils import to_utc_z


PRINCIPAL_EMPLOYEE = "employee"
PRINCIPAL_CUSTOMER = "customer"
PRINCIPAL_KINDS = (PRINCIPAL_EMPLOYEE, PRINCIPAL_CUSTOMER)


class LoginSession(db.Model):
    """
    Durable record of one authenticated login.

    WHY two stores: this row is kept for listing and audit; the Redis entry
    keyed by session_key decides whether a bearer token is still honoured.
    A session is live iff is_active AND expires_at > now AND the cache entry
    exists.

    Exactly one of employee_id / customer_id is set, matching principal_kind.
    """
    __tablename__ = "login_sessions"
    __table_args__ = (
        db.CheckConstraint(
            "(principal_kind = 'employee' AND employee_id IS NOT NULL AND customer_id IS NULL)"
            " OR (principal_kind = 'customer' AND customer_id IS NOT NULL AND employee_id IS NULL)",
            name="ck_login_sessions_principal",
        ),
        db.Index("ix_login_sessions_employee_active", "employee_id", "is_active"),
        db.Index("ix_login_sessions_customer_active", "customer_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Opaque id embedded in both tokens as "sid"
    session_key = db.Column(db.String(64), nullable=False, unique=True, index=True)

    principal_kind = db.Column(db.String(16), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_activity_at = db.Column(db.DateTime(timezone=True), nullable=False)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ended_reason = db.Column(db.String(32), nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def principal_id(self) -> int | None:
        if self.principal_kind == PRINCIPAL_CUSTOMER:
            return self.customer_id
        return self.employee_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "principal_kind": self.principal_kind,
            "principal_id": self.principal_id,
            "branch_id": self.branch_id,
            "is_active": self.is_active,
            "expires_at": to_utc_z(self.expires_at),
            "last_activity_at": to_utc_z(self.last_activity_at),
            "ended_at": to_utc_z(self.ended_at),
            "ended_reason": self.ended_reason,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": to_utc_z(self.created_at),
        }


class QRCode(db.Model):
    """
    One-time passwordless login code for a customer.

    Redeemed by a single conditional UPDATE (is_valid -> false, used_at -> now)
    so two concurrent redemptions cannot both succeed.
    """
    __tablename__ = "qr_codes"
    __table_args__ = (
        db.Index("ix_qr_codes_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(128), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_valid = db.Column(db.Boolean, nullable=False, default=True)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("qr_codes", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "customer_id": self.customer_id,
            "branch_id": self.branch_id,
            "expires_at": to_utc_z(self.expires_at),
            "is_valid": self.is_valid,
            "used_at": to_utc_z(self.used_at),
            "created_at": to_utc_z(self.created_at),
        }
