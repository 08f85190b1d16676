# Overview: Service-layer operations for the audit journal; recording and read-only queries.

"""
Audit Recorder

WHY: Every state change must be attributable. Each mutating operation calls
record() exactly once, after its own commit.

WRITE-AFTER-COMMIT: record() runs in its own transaction. If that insert
fails the business mutation is already durable, so the failure is logged
("Audit write failed after commit") and swallowed rather than surfaced as
an error for an operation that actually succeeded.

REDACTION: keys listed in SECRET_FIELDS are replaced with REDACTED_VALUE in
both snapshots, at any nesting depth. The key is kept so a reader can still
see that the field was part of the change.

Append-only: there is no update or delete here, and the model refuses both.
"""

from __future__ import annotations

import logging
from datetime import datetime, date
from decimal import Decimal

from flask import has_request_context, request
from sqlalchemy import func

from ..extensions import db
from ..models import AuditRecord
from wellpos.time_utils import to_utc_z

logger = logging.getLogger(__name__)

REDACTED_VALUE = "[HIDDEN]"
SECRET_FIELDS = frozenset({
    "password",
    "password_hash",
    "current_password",
    "new_password",
    "personal_pin",
    "qr_code",
    "access_token",
    "refresh_token",
})

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def redact(values):
    if isinstance(values, dict):
        return {
            key: (REDACTED_VALUE if key in SECRET_FIELDS else redact(value))
            for key, value in values.items()
        }
    if isinstance(values, list):
        return [redact(v) for v in values]
    return values


def _json_safe(value):
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def snapshot(instance, exclude: tuple[str, ...] = ()) -> dict:
    """Column-level copy of a model row, JSON-safe, before redaction."""
    return {
        column.key: _json_safe(getattr(instance, column.key))
        for column in instance.__table__.columns
        if column.key not in exclude
    }


def request_meta() -> tuple[str, str | None]:
    """(source ip, user agent) of the current request, or system defaults."""
    if not has_request_context():
        return "system", None
    return request.remote_addr or "unknown", request.headers.get("User-Agent")


def record(
    action: str,
    entity_type: str,
    entity_id: int | None,
    *,
    employee_id: int | None = None,
    customer_id: int | None = None,
    branch_id: int | None = None,
    order_id: int | None = None,
    old_values: dict | None = None,
    new_values: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuditRecord | None:
    """
    Append one audit record. Call only after the described mutation committed.

    Returns the stored record, or None when the write failed (logged).
    """
    if ip_address is None and user_agent is None:
        ip_address, user_agent = request_meta()

    entry = AuditRecord(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        employee_id=employee_id,
        customer_id=customer_id,
        branch_id=branch_id,
        order_id=order_id,
        old_values=redact(_json_safe(old_values)) if old_values is not None else None,
        new_values=redact(_json_safe(new_values)) if new_values is not None else None,
        ip_address=ip_address or "unknown",
        user_agent=user_agent[:512] if user_agent else None,
    )

    try:
        db.session.add(entry)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception(
            "Audit write failed after commit: action=%s entity=%s id=%s",
            action, entity_type, entity_id,
        )
        return None

    return entry


def _apply_filters(query, filters: dict):
    if filters.get("action"):
        query = query.filter(AuditRecord.action.ilike(f"%{filters['action']}%"))
    if filters.get("entity_type"):
        query = query.filter(AuditRecord.entity_type.ilike(f"%{filters['entity_type']}%"))
    if filters.get("entity_id") is not None:
        query = query.filter(AuditRecord.entity_id == filters["entity_id"])
    if filters.get("employee_id") is not None:
        query = query.filter(AuditRecord.employee_id == filters["employee_id"])
    if filters.get("customer_id") is not None:
        query = query.filter(AuditRecord.customer_id == filters["customer_id"])
    if filters.get("branch_id") is not None:
        query = query.filter(AuditRecord.branch_id == filters["branch_id"])
    if filters.get("start") is not None:
        query = query.filter(AuditRecord.created_at >= filters["start"])
    if filters.get("end") is not None:
        query = query.filter(AuditRecord.created_at <= filters["end"])
    return query


def list_records(filters: dict | None = None, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
    """
    Filtered, paginated listing, newest first.

    action / entity_type are case-insensitive substring matches; ids are
    exact; start / end bound created_at.
    """
    filters = filters or {}
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

    query = _apply_filters(db.session.query(AuditRecord), filters)
    total = query.count()
    items = (
        query.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": [r.to_dict() for r in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def records_for_entity(entity_type: str, entity_id: int, branch_id: int | None = None) -> list[AuditRecord]:
    query = db.session.query(AuditRecord).filter_by(entity_type=entity_type, entity_id=entity_id)
    if branch_id is not None:
        query = query.filter(AuditRecord.branch_id == branch_id)
    return query.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc()).all()


def records_for_employee(
    employee_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[AuditRecord]:
    query = _apply_filters(
        db.session.query(AuditRecord),
        {"employee_id": employee_id, "start": start, "end": end},
    )
    return query.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc()).all()


def statistics(
    start: datetime | None = None,
    end: datetime | None = None,
    branch_id: int | None = None,
) -> dict:
    """Counts by action and by entity type plus a per-day timeline."""
    filters = {"start": start, "end": end, "branch_id": branch_id}

    by_action = _apply_filters(
        db.session.query(AuditRecord.action, func.count(AuditRecord.id)),
        filters,
    ).group_by(AuditRecord.action).all()

    by_entity = _apply_filters(
        db.session.query(AuditRecord.entity_type, func.count(AuditRecord.id)),
        filters,
    ).group_by(AuditRecord.entity_type).all()

    day = func.date(AuditRecord.created_at)
    timeline = _apply_filters(
        db.session.query(day, func.count(AuditRecord.id)),
        filters,
    ).group_by(day).order_by(day).all()

    return {
        "total": sum(count for _, count in by_action),
        "by_action": sorted(
            ({"action": a, "count": c} for a, c in by_action),
            key=lambda row: row["count"],
            reverse=True,
        ),
        "by_entity_type": sorted(
            ({"entity_type": e, "count": c} for e, c in by_entity),
            key=lambda row: row["count"],
            reverse=True,
        ),
        "timeline": [{"date": str(d), "count": c} for d, c in timeline],
    }
