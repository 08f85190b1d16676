# Overview: Flask API routes for companies operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee
from ..services import company_service


companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


@companies_bp.get("")
@require_auth
@require_employee
def list_companies():
    companies = company_service.list_companies(g.principal)
    return jsonify([company.to_dict() for company in companies]), 200


@companies_bp.post("")
@require_auth
@require_employee
def create_company():
    company = company_service.create_company(request.get_json(silent=True), g.principal)
    return jsonify(company.to_dict()), 201


@companies_bp.get("/<int:company_id>")
@require_auth
@require_employee
def get_company(company_id: int):
    company = company_service.get_company(company_id, g.principal)
    return jsonify(company.to_dict()), 200


@companies_bp.put("/<int:company_id>")
@require_auth
@require_employee
def update_company(company_id: int):
    company = company_service.update_company(company_id, request.get_json(silent=True), g.principal)
    return jsonify(company.to_dict()), 200


@companies_bp.delete("/<int:company_id>")
@require_auth
@require_employee
def delete_company(company_id: int):
    company_service.delete_company(company_id, g.principal)
    return jsonify({"message": "Company deleted"}), 200
