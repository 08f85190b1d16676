# Overview: Service-layer operations for one-time customer login codes.

"""
QR Code Issuance

Codes are 192-bit random strings, valid for QR_CODE_TTL_SECONDS and
redeemable once (see auth_service.login_with_qr). Issuing a new code does
not revoke earlier unexpired ones.
"""

from __future__ import annotations

import secrets

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import QRCode, Customer
from . import audit_service, tenant_service
from .principals import PrincipalContext
from wellpos.time_utils import utcnow, utc_in


def generate_code() -> str:
    return secrets.token_urlsafe(24)


def add_qr_code(customer: Customer) -> QRCode:
    """Stage a fresh code for a customer. Caller commits."""
    qr = QRCode(
        code=generate_code(),
        customer_id=customer.id,
        branch_id=customer.branch_id,
        expires_at=utc_in(int(current_app.config["QR_CODE_TTL_SECONDS"])),
        is_valid=True,
    )
    db.session.add(qr)
    db.session.flush()
    return qr


def generate_qr_code(customer_id: int, context: PrincipalContext) -> QRCode:
    """Staff-triggered code for an existing, enabled customer."""
    customer = db.session.get(Customer, customer_id)
    tenant_service.require_in_scope(context, customer, "Customer")
    if not customer.enabled:
        raise ValidationError("Customer is disabled")

    qr = add_qr_code(customer)
    db.session.commit()

    audit_service.record(
        "QR_GENERATE",
        "QRCode",
        qr.id,
        employee_id=context.principal_id,
        customer_id=customer.id,
        branch_id=customer.branch_id,
        new_values={"qr_code": qr.code, "expires_at": qr.expires_at},
    )
    return qr


def find_valid(code: str) -> QRCode | None:
    """Unused, unexpired code, or None. Does not redeem."""
    if not code:
        return None
    return (
        db.session.query(QRCode)
        .filter(QRCode.code == code, QRCode.is_valid.is_(True), QRCode.expires_at > utcnow())
        .first()
    )


def validate_qr_code(code: str) -> bool:
    return find_valid(code) is not None


def customer_for_code(code: str) -> Customer:
    qr = find_valid(code)
    if not qr:
        raise NotFoundError("Invalid or expired QR code")
    customer = db.session.get(Customer, qr.customer_id)
    if not customer:
        raise NotFoundError("Invalid or expired QR code")
    return customer
