from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from wellpos.time_utils import to_utc_z


class AuditRecord(db.Model):
    """
    Append-only journal of state transitions.

    Written by audit_service.record() after the mutation it describes has
    committed. Secrets in old_values / new_values are replaced with a fixed
    sentinel before the row is built.

    IMMUTABLE: ORM updates and deletes of existing rows are refused by the
    mapper events below.
    """
    __tablename__ = "audit_records"
    __table_args__ = (
        db.Index("ix_audit_records_entity", "entity_type", "entity_id"),
        db.Index("ix_audit_records_employee_created", "employee_id", "created_at"),
        db.Index("ix_audit_records_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    action = db.Column(db.String(64), nullable=False, index=True)  # CREATE, UPDATE, LOGIN, USE_SERVICE, ...
    entity_type = db.Column(db.String(64), nullable=False, index=True)  # Employee, Order, Product, ...
    entity_id = db.Column(db.Integer, nullable=True)

    # Plain integers, not foreign keys: records must outlive the rows they describe
    employee_id = db.Column(db.Integer, nullable=True)
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    branch_id = db.Column(db.Integer, nullable=True)
    order_id = db.Column(db.Integer, nullable=True)

    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)

    ip_address = db.Column(db.String(64), nullable=False, default="unknown")
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "employee_id": self.employee_id,
            "customer_id": self.customer_id,
            "branch_id": self.branch_id,
            "order_id": self.order_id,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": to_utc_z(self.created_at),
        }


class AuditRecordImmutableError(RuntimeError):
    pass


@event.listens_for(AuditRecord, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise AuditRecordImmutableError(f"Audit record {target.id} is immutable")


@event.listens_for(AuditRecord, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise AuditRecordImmutableError(f"Audit record {target.id} cannot be deleted")
