# Overview: Service-layer operations for first-run provisioning of the initial company and super-admin.

"""
Bootstrap Service

Idempotent provisioning driven by environment variables, run by
`flask system bootstrap` (and safe to run on every deploy).

INITIAL COMPANY (skipped when INITIAL_COMPANY_ENABLED is false, when any
company already exists, or when a required variable is missing):
    INITIAL_COMPANY_NAME, INITIAL_COMPANY_CONTACT_PERSON, INITIAL_COMPANY_EMAIL,
    INITIAL_COMPANY_PHONE, INITIAL_COMPANY_ADDRESS, INITIAL_COMPANY_ACTIVE

SUPER-ADMIN (skipped when SUPER_ADMIN_EMAIL or SUPER_ADMIN_PASSWORD is
missing, when a super-admin exists, or when the email/username is taken):
    SUPER_ADMIN_EMAIL, SUPER_ADMIN_PASSWORD, SUPER_ADMIN_USERNAME,
    SUPER_ADMIN_FIRSTNAME, SUPER_ADMIN_LASTNAME, SUPER_ADMIN_PIN,
    SUPER_ADMIN_LANGUAGE, SUPER_ADMIN_BRANCH_ID

An invalid SUPER_ADMIN_PIN falls back to 0000; an unknown
SUPER_ADMIN_BRANCH_ID is ignored.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping

from ..extensions import db
from ..models import Company, Branch, Employee, SUPER_ADMIN
from . import audit_service
from .auth_service import hash_password, normalize_email

logger = logging.getLogger(__name__)

DEFAULT_PIN = "0000"


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def ensure_initial_company(env: Mapping[str, str] | None = None) -> Company | None:
    """Create the first company from INITIAL_COMPANY_*; returns it or None if skipped."""
    env = os.environ if env is None else env

    if not _parse_bool(env.get("INITIAL_COMPANY_ENABLED"), True):
        logger.debug("Company bootstrap disabled via configuration")
        return None

    if db.session.query(Company.id).first():
        logger.debug("Company bootstrap skipped: company record already present")
        return None

    values = {
        "name": env.get("INITIAL_COMPANY_NAME"),
        "contact_person": env.get("INITIAL_COMPANY_CONTACT_PERSON"),
        "email": normalize_email(env.get("INITIAL_COMPANY_EMAIL")),
        "phone": env.get("INITIAL_COMPANY_PHONE"),
        "address": env.get("INITIAL_COMPANY_ADDRESS"),
    }
    if not all(values.values()):
        logger.warning("Company bootstrap skipped: incomplete INITIAL_COMPANY_* configuration")
        return None

    company = Company(enabled=_parse_bool(env.get("INITIAL_COMPANY_ACTIVE"), True), **values)
    db.session.add(company)
    db.session.commit()

    audit_service.record(
        "CREATE",
        "Company",
        company.id,
        new_values=audit_service.snapshot(company),
        ip_address="bootstrap",
    )
    logger.info("Initial company %r created", company.name)
    return company


def ensure_super_admin(env: Mapping[str, str] | None = None) -> Employee | None:
    """Create the first super-admin from SUPER_ADMIN_*; returns it or None if skipped."""
    env = os.environ if env is None else env

    email = normalize_email(env.get("SUPER_ADMIN_EMAIL"))
    password = env.get("SUPER_ADMIN_PASSWORD")
    if not email or not password:
        logger.info("Super admin bootstrap skipped: missing SUPER_ADMIN_EMAIL or SUPER_ADMIN_PASSWORD")
        return None

    if db.session.query(Employee.id).filter_by(role=SUPER_ADMIN).first():
        logger.debug("Super admin already exists; bootstrap skipped")
        return None

    username = env.get("SUPER_ADMIN_USERNAME") or "superadmin"
    if db.session.query(Employee.id).filter_by(email=email).first():
        logger.warning("Super admin bootstrap skipped: employee with email %s already exists", email)
        return None
    if db.session.query(Employee.id).filter_by(username=username).first():
        logger.warning("Super admin bootstrap skipped: username %s is already in use", username)
        return None

    pin = env.get("SUPER_ADMIN_PIN") or DEFAULT_PIN
    if len(pin) != 4 or not pin.isdigit():
        logger.warning("SUPER_ADMIN_PIN must be a 4-digit string. Falling back to %s", DEFAULT_PIN)
        pin = DEFAULT_PIN

    branch_id = None
    raw_branch = env.get("SUPER_ADMIN_BRANCH_ID")
    if raw_branch:
        if not raw_branch.strip().isdigit():
            logger.warning("SUPER_ADMIN_BRANCH_ID %s is not a valid id; creating super admin without branch", raw_branch)
        elif db.session.get(Branch, int(raw_branch)) is None:
            logger.warning("SUPER_ADMIN_BRANCH_ID %s not found; creating super admin without branch", raw_branch)
        else:
            branch_id = int(raw_branch)

    employee = Employee(
        branch_id=branch_id,
        username=username,
        email=email,
        firstname=env.get("SUPER_ADMIN_FIRSTNAME") or "Super",
        lastname=env.get("SUPER_ADMIN_LASTNAME") or "Admin",
        password_hash=hash_password(password),
        personal_pin=pin,
        role=SUPER_ADMIN,
        enabled=True,
        language=env.get("SUPER_ADMIN_LANGUAGE") or "en",
    )
    db.session.add(employee)
    db.session.commit()

    audit_service.record(
        "CREATE",
        "Employee",
        employee.id,
        branch_id=branch_id,
        new_values=audit_service.snapshot(employee),
        ip_address="bootstrap",
    )
    logger.info("Super admin %s created", email)
    return employee


def run(env: Mapping[str, str] | None = None) -> dict:
    company = ensure_initial_company(env)
    admin = ensure_super_admin(env)
    return {
        "company_created": company is not None,
        "super_admin_created": admin is not None,
    }
