from __future__ import annotations

from ..extensions import db
from wellpos.time_utils import to_utc_z


class Subscription(db.Model):
    """
    A company's subscription to a set of products for a date range.

    A company holds at most one active subscription whose range overlaps
    any other active one; subscription_service enforces that on write.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.CheckConstraint("start_date < end_date", name="ck_subscriptions_range"),
        db.Index("ix_subscriptions_company_active", "company_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)

    product_ids = db.Column(db.JSON, nullable=False, default=list)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("subscriptions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_ids": list(self.product_ids or []),
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
