# Overview: Flask API routes for the public medical intake form; no authentication.

from flask import Blueprint, jsonify, request

from ..services import medical_form_service


medical_form_bp = Blueprint("medical_form", __name__, url_prefix="/api/medical-form")


@medical_form_bp.get("/options")
def form_options():
    return jsonify(medical_form_service.get_form_options()), 200


@medical_form_bp.post("/submit")
def submit_form():
    result = medical_form_service.submit_form(
        request.get_json(silent=True),
        ip_address=request.remote_addr or "unknown",
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify(result), 201


@medical_form_bp.get("/validate/<code>")
def validate_qr_code(code: str):
    return jsonify({"valid": medical_form_service.validate_qr_code(code)}), 200
