# Overview: Service-layer operations for auth; password/QR login, refresh, logout and bearer validation.

"""
Identity / Session Broker

WHY: One place decides who a caller is. Routes never decode tokens or touch
the session cache themselves; they call validate_bearer().

PRINCIPALS:
- Employees log in with email + password (bcrypt, cost factor 12).
- Customers log in with a one-time QR code; they have no password.

LIFETIMES (config):
- Access token: ACCESS_TOKEN_TTL_SECONDS for both kinds.
- Refresh token and session: EMPLOYEE_SESSION_TTL_SECONDS (7 days) or
  CUSTOMER_SESSION_TTL_SECONDS (24 hours).

SECURITY NOTES:
- Unknown email, wrong password and disabled account all return the same
  "Invalid credentials" error, and unknown emails still pay for a bcrypt
  check against a dummy hash so timing does not reveal which case applied.
- Unknown, expired and already-used QR codes all return the same error.
- QR redemption is a conditional UPDATE in the same transaction as the new
  session row; if anything fails before commit the code stays valid.
- Refresh flips the old session inactive with a conditional UPDATE, so a
  refresh token can be exchanged exactly once.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

import bcrypt
from flask import current_app
from sqlalchemy import update

from ..errors import UnauthorizedError, ValidationError
from ..extensions import db, session_cache
from ..models import (
    Employee,
    Customer,
    QRCode,
    PRINCIPAL_EMPLOYEE,
    PRINCIPAL_CUSTOMER,
)
from . import audit_service, session_service, token_service
from .principals import PrincipalContext, principal_from_claims, staff_role, CustomerPrincipal
from wellpos.time_utils import utcnow

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_QR_CODE = "Invalid or expired QR code"
INVALID_REFRESH = "Invalid refresh token"
SESSION_EXPIRED = "Session expired or revoked"


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password with bcrypt (cost factor 12)."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time password check."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("dummy-password-for-timing")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _session_ttl(principal_kind: str) -> int:
    if principal_kind == PRINCIPAL_CUSTOMER:
        return int(current_app.config["CUSTOMER_SESSION_TTL_SECONDS"])
    return int(current_app.config["EMPLOYEE_SESSION_TTL_SECONDS"])


def _issue(row, role: str | None, ttl: int) -> dict:
    claims = token_service.build_claims(
        principal_id=row.principal_id,
        principal_kind=row.principal_kind,
        session_id=row.session_key,
        role=role,
        branch_id=row.branch_id,
    )
    return token_service.issue_token_pair(claims, refresh_ttl_seconds=ttl)


def login(email: str, password: str, ip_address: str | None = None, user_agent: str | None = None) -> dict:
    """
    Staff login with email + password.

    Returns {access_token, refresh_token, token_type, expires_in, user}.
    Raises UnauthorizedError("Invalid credentials") on any failure.
    """
    employee = db.session.query(Employee).filter_by(email=normalize_email(email)).first()

    if not employee:
        verify_password(password or "", _dummy_hash())
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not verify_password(password, employee.password_hash) or not employee.enabled:
        raise UnauthorizedError(INVALID_CREDENTIALS)

    principal = staff_role(employee.role, employee.branch_id)
    ttl = _session_ttl(PRINCIPAL_EMPLOYEE)

    row = session_service.add_session(
        PRINCIPAL_EMPLOYEE,
        employee.id,
        ttl,
        branch_id=principal.branch_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    tokens = _issue(row, principal.role, ttl)
    db.session.commit()

    session_service.publish(row, ttl, role=principal.role)

    _touch_last_login(employee)

    audit_service.record(
        "LOGIN",
        "Employee",
        employee.id,
        employee_id=employee.id,
        branch_id=employee.branch_id,
        new_values={"email": employee.email, "role": employee.role},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return {**tokens, "user": employee.to_dict()}


def _touch_last_login(employee: Employee) -> None:
    """Best-effort; a failure here must not undo a successful login."""
    try:
        employee.last_login_at = utcnow()
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("Failed to update last_login_at for employee %s", employee.id, exc_info=True)


def login_with_qr(code: str, ip_address: str | None = None, user_agent: str | None = None) -> dict:
    """
    Customer login by one-time QR code.

    Redemption (is_valid -> false, used_at -> now) and session creation share
    one transaction; exactly one of any number of concurrent callers wins.
    """
    if not code:
        raise UnauthorizedError(INVALID_QR_CODE)

    now = utcnow()
    qr = db.session.query(QRCode).filter_by(code=code).first()
    if not qr or not qr.is_valid or qr.expires_at <= now:
        raise UnauthorizedError(INVALID_QR_CODE)

    customer = db.session.get(Customer, qr.customer_id)
    if not customer or not customer.enabled:
        raise UnauthorizedError(INVALID_QR_CODE)

    ttl = _session_ttl(PRINCIPAL_CUSTOMER)
    try:
        redeemed = db.session.execute(
            update(QRCode)
            .where(QRCode.id == qr.id)
            .where(QRCode.is_valid.is_(True))
            .where(QRCode.expires_at > now)
            .values(is_valid=False, used_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        if redeemed != 1:
            db.session.rollback()
            raise UnauthorizedError(INVALID_QR_CODE)

        row = session_service.add_session(
            PRINCIPAL_CUSTOMER,
            customer.id,
            ttl,
            branch_id=customer.branch_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        tokens = _issue(row, None, ttl)
        db.session.commit()
    except UnauthorizedError:
        raise
    except Exception:
        db.session.rollback()
        logger.exception("QR login failed before commit; code %s left valid", qr.id)
        raise

    session_service.publish(row, ttl)

    audit_service.record(
        "LOGIN_QR",
        "Customer",
        customer.id,
        customer_id=customer.id,
        branch_id=customer.branch_id,
        new_values={"qr_code_id": qr.id, "used_at": now},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return {**tokens, "customer": customer.to_dict()}


def _resolve_enabled_principal(kind: str, principal_id: int):
    if kind == PRINCIPAL_CUSTOMER:
        principal = db.session.get(Customer, principal_id)
    else:
        principal = db.session.get(Employee, principal_id)
    if not principal or not principal.enabled:
        return None
    return principal


def refresh(refresh_token: str, ip_address: str | None = None, user_agent: str | None = None) -> dict:
    """
    Exchange a refresh token for a new pair bound to a new session.

    The presented session is superseded (inactive) in the same transaction
    that creates its replacement.
    """
    claims = token_service.decode_token(refresh_token, token_service.TOKEN_REFRESH)
    kind = claims.get("kind")
    old_sid = claims["sid"]

    principal = _resolve_enabled_principal(kind, claims["sub"])
    if principal is None:
        raise UnauthorizedError(INVALID_REFRESH)

    if kind == PRINCIPAL_CUSTOMER:
        role, branch_id = None, principal.branch_id
    else:
        staff = staff_role(principal.role, principal.branch_id)
        role, branch_id = staff.role, staff.branch_id

    ttl = _session_ttl(kind)
    try:
        if not session_service.deactivate(old_sid, "refreshed", require_unexpired=True):
            db.session.rollback()
            raise UnauthorizedError(INVALID_REFRESH)

        row = session_service.add_session(
            kind,
            principal.id,
            ttl,
            branch_id=branch_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        tokens = _issue(row, role, ttl)
        db.session.commit()
    except UnauthorizedError:
        raise
    except Exception:
        db.session.rollback()
        logger.exception("Token refresh failed before commit")
        raise

    session_cache.delete(old_sid)
    session_service.publish(row, ttl, role=role)

    audit_service.record(
        "TOKEN_REFRESH",
        "Customer" if kind == PRINCIPAL_CUSTOMER else "Employee",
        principal.id,
        employee_id=principal.id if kind == PRINCIPAL_EMPLOYEE else None,
        customer_id=principal.id if kind == PRINCIPAL_CUSTOMER else None,
        branch_id=branch_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return tokens


def logout(context: PrincipalContext, ip_address: str | None = None, user_agent: str | None = None) -> bool:
    """
    End the caller's session. Idempotent.

    Returns True when an active session was actually ended.
    """
    session_cache.delete(context.session_id)
    ended = session_service.deactivate(context.session_id, "logout")
    db.session.commit()

    if ended:
        audit_service.record(
            "LOGOUT",
            "Customer" if context.is_customer else "Employee",
            context.principal_id,
            employee_id=context.principal_id if context.is_employee else None,
            customer_id=context.principal_id if context.is_customer else None,
            branch_id=context.branch_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    return ended


def validate_bearer(access_token: str) -> PrincipalContext:
    """
    Resolve an access token to the caller's principal context.

    Signature and expiry are not enough: the session id must still have a
    live cache entry and an active, unexpired row, so a logged-out token is
    rejected immediately.
    """
    claims = token_service.decode_token(access_token, token_service.TOKEN_ACCESS)
    sid = claims["sid"]

    if not session_service.is_live(sid):
        raise UnauthorizedError(SESSION_EXPIRED)

    try:
        principal = principal_from_claims(claims.get("kind"), claims.get("role"), claims.get("bid"))
    except ValidationError:
        raise UnauthorizedError("Invalid token")

    session_service.touch(sid)

    return PrincipalContext(
        principal_id=claims["sub"],
        principal_kind=claims.get("kind"),
        principal=principal,
        session_id=sid,
    )


def current_principal(context: PrincipalContext) -> dict:
    """Profile of the authenticated caller (GET /api/auth/me)."""
    if isinstance(context.principal, CustomerPrincipal):
        customer = db.session.get(Customer, context.principal_id)
        if not customer:
            raise UnauthorizedError(SESSION_EXPIRED)
        return {"kind": PRINCIPAL_CUSTOMER, "customer": customer.to_dict()}

    employee = db.session.get(Employee, context.principal_id)
    if not employee:
        raise UnauthorizedError(SESSION_EXPIRED)
    return {"kind": PRINCIPAL_EMPLOYEE, "user": employee.to_dict()}
