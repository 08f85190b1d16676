# Overview: Service-layer operations for login sessions; durable rows plus the Redis liveness entry.

"""
Login Session Management

WHY: A signed token alone cannot be revoked. Every token carries a session
id, and a session is honoured only while:

    login_sessions.is_active AND expires_at > now   (durable, for listing/audit)
    {prefix}:session:{sid} exists in Redis          (fast path, per request)

Logout and refresh flip the durable row with a single conditional UPDATE
and drop the Redis key, so the old token stops working immediately.

CACHE FAILURE: SessionCache never raises. A failed read means "no session"
and the request is rejected with 401, never 500.

TRANSACTIONS: add_session() only stages the row. The caller commits (so QR
redemption and session creation can share one transaction) and then calls
publish() to write the cache entry.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy import update, delete, or_

from ..extensions import db, session_cache
from ..models import LoginSession, PRINCIPAL_CUSTOMER, PRINCIPAL_EMPLOYEE
from wellpos.time_utils import utcnow, utc_in

logger = logging.getLogger(__name__)

# last_activity_at is refreshed at most this often per session
ACTIVITY_WRITE_INTERVAL = timedelta(seconds=60)

DEFAULT_RETENTION_DAYS = 30


def generate_session_id() -> str:
    """
    Opaque session id (256 bits from the OS CSPRNG).

    WHY secrets: the id is embedded in the token and keys the cache entry;
    it must not be guessable.
    """
    return secrets.token_urlsafe(32)


def add_session(
    principal_kind: str,
    principal_id: int,
    ttl_seconds: int,
    branch_id: int | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LoginSession:
    """Stage a new durable session row. Caller commits."""
    now = utcnow()
    row = LoginSession(
        session_key=generate_session_id(),
        principal_kind=principal_kind,
        employee_id=principal_id if principal_kind == PRINCIPAL_EMPLOYEE else None,
        customer_id=principal_id if principal_kind == PRINCIPAL_CUSTOMER else None,
        branch_id=branch_id,
        expires_at=utc_in(ttl_seconds),
        is_active=True,
        last_activity_at=now,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.session.add(row)
    db.session.flush()
    return row


def publish(row: LoginSession, ttl_seconds: int, role: str | None = None) -> bool:
    """Write the Redis liveness entry for a committed session."""
    descriptor = {
        "principal_kind": row.principal_kind,
        "principal_id": row.principal_id,
        "branch_id": row.branch_id,
        "role": role,
    }
    ok = session_cache.set(row.session_key, descriptor, ttl_seconds)
    if not ok:
        logger.error(
            "Session %s committed but not cached; bearer validation will reject it",
            row.id,
        )
    return ok


def deactivate(session_key: str, reason: str, require_unexpired: bool = False) -> bool:
    """
    Flip an active session to inactive in one conditional UPDATE.

    Returns True only for the caller that actually performed the flip, which
    is what makes refresh tokens single-use. Caller commits.
    """
    now = utcnow()
    stmt = (
        update(LoginSession)
        .where(LoginSession.session_key == session_key)
        .where(LoginSession.is_active.is_(True))
    )
    if require_unexpired:
        stmt = stmt.where(LoginSession.expires_at > now)
    result = db.session.execute(
        stmt.values(is_active=False, ended_at=now, ended_reason=reason)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def revoke_all(principal_kind: str, principal_id: int, reason: str) -> int:
    """
    End every active session of a principal (used when it is disabled).

    Commits, then drops the cache entries so outstanding tokens die at once.
    """
    keys = [row.session_key for row in list_sessions(principal_kind, principal_id, active_only=True)]
    for key in keys:
        deactivate(key, reason)
    db.session.commit()
    for key in keys:
        session_cache.delete(key)
    return len(keys)


def is_live(session_key: str) -> bool:
    """
    A session is live iff its cache entry exists AND its row is active and
    unexpired. The row check keeps a revoked session dead when the cache
    delete that should have accompanied the revocation failed.
    """
    if session_cache.get(session_key) is None:
        return False
    row = (
        db.session.query(LoginSession.id)
        .filter(LoginSession.session_key == session_key)
        .filter(LoginSession.is_active.is_(True))
        .filter(LoginSession.expires_at > utcnow())
        .first()
    )
    return row is not None


def touch(session_key: str) -> None:
    """Best-effort activity timestamp; throttled to one write per interval."""
    now = utcnow()
    try:
        db.session.execute(
            update(LoginSession)
            .where(LoginSession.session_key == session_key)
            .where(LoginSession.is_active.is_(True))
            .where(LoginSession.last_activity_at < now - ACTIVITY_WRITE_INTERVAL)
            .values(last_activity_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("Failed to record activity for session", exc_info=True)


def list_sessions(principal_kind: str, principal_id: int, active_only: bool = True) -> list[LoginSession]:
    query = db.session.query(LoginSession).filter(LoginSession.principal_kind == principal_kind)
    if principal_kind == PRINCIPAL_CUSTOMER:
        query = query.filter(LoginSession.customer_id == principal_id)
    else:
        query = query.filter(LoginSession.employee_id == principal_id)
    if active_only:
        query = query.filter(
            LoginSession.is_active.is_(True),
            LoginSession.expires_at > utcnow(),
        )
    return query.order_by(LoginSession.created_at.desc(), LoginSession.id.desc()).all()


def cleanup_expired(retention_days: int = DEFAULT_RETENTION_DAYS) -> dict:
    """
    Mark lapsed sessions inactive, then prune inactive rows older than the
    retention window. Redis entries expire on their own TTL.
    """
    now = utcnow()
    cutoff = now - timedelta(days=retention_days)

    expired = db.session.execute(
        update(LoginSession)
        .where(LoginSession.is_active.is_(True))
        .where(LoginSession.expires_at <= now)
        .values(is_active=False, ended_at=now, ended_reason="expired")
        .execution_options(synchronize_session=False)
    ).rowcount

    pruned = db.session.execute(
        delete(LoginSession)
        .where(LoginSession.is_active.is_(False))
        .where(or_(LoginSession.ended_at < cutoff, LoginSession.expires_at < cutoff))
        .execution_options(synchronize_session=False)
    ).rowcount

    db.session.commit()
    logger.info("Session cleanup: %s expired, %s pruned", expired, pruned)
    return {"expired": expired, "pruned": pruned}
