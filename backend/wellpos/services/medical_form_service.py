# Overview: Service-layer operations for the public medical intake form.

"""
Medical Intake Form

Public (unauthenticated) entry point for new customers:

1. Branch must exist and be enabled.
2. Email must be new within that branch (Conflict otherwise).
3. Customer, medical history and a one-time QR code are created in one
   transaction.
4. One MEDICAL_FORM_SUBMIT audit record follows the commit; the QR code in
   it is redacted.

The returned QR code is what the customer uses for passwordless login.
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Branch, Customer, MedicalHistory
from ..validation import enforce_email
from . import audit_service, branch_service, customer_service, qr_service

logger = logging.getLogger(__name__)

SUBMIT_MESSAGE = "Medical form submitted successfully. Please use the QR code to log in to your account."

HEALTH_OPTIONS = [
    "Skin diseases", "Arthritis", "Diabetes", "Hypertension", "Heart disease",
    "Asthma", "Cancer", "Epilepsy", "Chronic pain", "Autoimmune diseases", "Other",
]
SPORTS_AND_FITNESS_OPTIONS = [
    "Weight training", "Cardio", "Yoga", "Pilates", "Swimming", "Running",
    "Cycling", "Team sports", "Martial arts", "Dance", "Other",
]
BEAUTY_AND_WELLNESS_OPTIONS = [
    "Facial treatments", "Body massage", "Sauna", "Cryotherapy", "Skin care",
    "Hair treatments", "Nail care", "Spa treatments", "Wellness consultation", "Other",
]
DISEASE_OPTIONS = [
    "Diabetes", "Hypertension", "Heart disease", "Asthma", "Arthritis", "Cancer",
    "Epilepsy", "Autoimmune diseases", "Mental health conditions", "Other",
]
HEALTH_ISSUE_OPTIONS = [
    "Back pain", "Joint stiffness", "Muscle tension", "Stress", "Insomnia",
    "Headaches", "Circulation problems", "Digestive issues", "Respiratory problems", "Other",
]
DRUG_IMPLANT_OPTIONS = [
    "Insulin pump", "Pacemaker", "Joint replacement", "Dental implants",
    "Hearing aid", "Medication", "Contraceptive device", "Other",
]
GENDER_OPTIONS = ["male", "female", "other"]
UNIT_SYSTEM_OPTIONS = ["metric", "imperial"]
SKIN_TYPE_OPTIONS = [
    {"value": 1, "label": "Type 1 - Very fair skin, always burns, never tans"},
    {"value": 2, "label": "Type 2 - Fair skin, usually burns, tans minimally"},
    {"value": 3, "label": "Type 3 - Medium skin, sometimes burns, tans uniformly"},
    {"value": 4, "label": "Type 4 - Olive skin, rarely burns, tans easily"},
    {"value": 5, "label": "Type 5 - Brown skin, very rarely burns, tans very easily"},
    {"value": 6, "label": "Type 6 - Dark brown/black skin, never burns, tans very easily"},
]
SLEEP_QUALITY_OPTIONS = ["Excellent", "Good", "Fair", "Poor", "Very poor"]
STRESS_LEVEL_OPTIONS = ["Low", "Moderate", "High", "Very high"]
STRESS_FREQUENCY_OPTIONS = ["Never", "Rarely", "Sometimes", "Often", "Daily"]


def _string_list(payload: dict, key: str) -> list[str]:
    value = payload.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{key} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def _personal_data(payload: dict) -> dict:
    personal = payload.get("personal_data")
    if not isinstance(personal, dict):
        raise ValidationError("personal_data is required")

    data = {k: (v.strip() if isinstance(v, str) else v) for k, v in personal.items()}
    for key in ("firstname", "lastname", "email"):
        if not data.get(key):
            raise ValidationError(f"personal_data.{key} is required")
    enforce_email(data)
    if data.get("gender") and data["gender"].lower() not in GENDER_OPTIONS:
        raise ValidationError(f"Invalid gender. Must be one of: {', '.join(GENDER_OPTIONS)}")
    return data


def submit_form(payload: dict, ip_address: str | None = None, user_agent: str | None = None) -> dict:
    """Register a customer from the intake form and hand back a login QR code."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    branch_id = payload.get("branch_id")
    if isinstance(branch_id, bool) or not isinstance(branch_id, int):
        raise ValidationError("branch_id must be an integer")

    branch = db.session.query(Branch).filter_by(id=branch_id, enabled=True).first()
    if not branch:
        raise NotFoundError("Branch not found or disabled")

    personal = _personal_data(payload)

    field_of_application = payload.get("field_of_application")
    if not field_of_application or not isinstance(field_of_application, (str, dict, list)):
        raise ValidationError("field_of_application is required")

    if payload.get("terms_accepted") is not True:
        raise ValidationError("Terms must be accepted")

    pregnancy = payload.get("pregnancy", False)
    if not isinstance(pregnancy, bool):
        raise ValidationError("pregnancy must be a boolean")

    customer_service.require_unique_email(branch.id, personal["email"])

    try:
        customer = Customer(
            branch_id=branch.id,
            firstname=personal["firstname"],
            lastname=personal["lastname"],
            email=personal["email"],
            phone=personal.get("phone"),
            enabled=True,
        )
        db.session.add(customer)
        db.session.flush()

        history = MedicalHistory(
            customer_id=customer.id,
            branch_id=branch.id,
            field_of_application=field_of_application,
            pregnancy=pregnancy,
            diseases=_string_list(payload, "diseases"),
            health_issues=_string_list(payload, "health_issues"),
            drugs_and_implants=_string_list(payload, "drugs_and_implants"),
            generic_note=payload.get("generic_note"),
            terms_accepted=True,
            signature=payload.get("signature"),
            personal_data=personal,
        )
        db.session.add(history)

        qr = qr_service.add_qr_code(customer)
        db.session.commit()
    except ValidationError:
        db.session.rollback()
        raise
    except Exception:
        db.session.rollback()
        logger.exception("Medical form submission failed for branch %s", branch.id)
        raise

    audit_service.record(
        "MEDICAL_FORM_SUBMIT",
        "Customer",
        customer.id,
        customer_id=customer.id,
        branch_id=branch.id,
        new_values={
            "customer": audit_service.snapshot(customer),
            "medical_history": audit_service.snapshot(history),
            "qr_code": qr.code,
        },
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return {
        "customer": customer.to_dict(),
        "qr_code": qr.code,
        "qr_code_expires_at": qr.to_dict()["expires_at"],
        "message": SUBMIT_MESSAGE,
    }


def get_form_options() -> dict:
    branches = [
        {
            "id": b.id,
            "name": b.name,
            "address": ", ".join(
                part for part in (b.street, b.house_number, b.postcode, b.city, b.country) if part
            ),
            "phone": b.phone,
            "email": b.email,
        }
        for b in branch_service.list_public_branches()
    ]
    return {
        "branches": branches,
        "health_options": HEALTH_OPTIONS,
        "sports_and_fitness_options": SPORTS_AND_FITNESS_OPTIONS,
        "beauty_and_wellness_options": BEAUTY_AND_WELLNESS_OPTIONS,
        "disease_options": DISEASE_OPTIONS,
        "health_issue_options": HEALTH_ISSUE_OPTIONS,
        "drug_implant_options": DRUG_IMPLANT_OPTIONS,
        "gender_options": GENDER_OPTIONS,
        "unit_system_options": UNIT_SYSTEM_OPTIONS,
        "skin_type_options": SKIN_TYPE_OPTIONS,
        "sleep_quality_options": SLEEP_QUALITY_OPTIONS,
        "stress_level_options": STRESS_LEVEL_OPTIONS,
        "stress_frequency_options": STRESS_FREQUENCY_OPTIONS,
    }


def validate_qr_code(code: str) -> bool:
    return qr_service.validate_qr_code(code)
