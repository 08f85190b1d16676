# Overview: Flask API routes for subscriptions operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_employee, require_roles
from ..services import subscription_service
from ..validation import parse_bool_arg


subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")


@subscriptions_bp.get("")
@require_auth
@require_employee
def list_subscriptions():
    subscriptions = subscription_service.list_subscriptions(
        g.principal,
        company_id=request.args.get("company_id", type=int),
        active=parse_bool_arg(request.args.get("active")),
    )
    return jsonify([s.to_dict() for s in subscriptions]), 200


@subscriptions_bp.post("")
@require_auth
@require_roles("super-admin", "admin")
def create_subscription():
    subscription = subscription_service.create_subscription(request.get_json(silent=True), g.principal)
    return jsonify(subscription.to_dict()), 201


@subscriptions_bp.get("/<int:subscription_id>")
@require_auth
@require_employee
def get_subscription(subscription_id: int):
    subscription = subscription_service.get_subscription(subscription_id, g.principal)
    return jsonify(subscription.to_dict()), 200


@subscriptions_bp.put("/<int:subscription_id>")
@require_auth
@require_roles("super-admin", "admin")
def update_subscription(subscription_id: int):
    subscription = subscription_service.update_subscription(
        subscription_id, request.get_json(silent=True), g.principal
    )
    return jsonify(subscription.to_dict()), 200


@subscriptions_bp.delete("/<int:subscription_id>")
@require_auth
@require_roles("super-admin", "admin")
def delete_subscription(subscription_id: int):
    subscription_service.delete_subscription(subscription_id, g.principal)
    return jsonify({"message": "Subscription deleted"}), 200
