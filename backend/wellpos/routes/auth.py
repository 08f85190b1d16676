# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login       staff email + password
- POST /api/auth/login-qr    customer one-time QR code
- POST /api/auth/refresh     exchange a refresh token (single use)
- POST /api/auth/logout      end the current session (idempotent)
- GET  /api/auth/me          profile of the caller
- GET  /api/auth/sessions    caller's active sessions

Service errors (ApiError) are rendered by the app-level handler; anything
else is logged and reported as a plain 500.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_roles
from ..errors import ApiError, ForbiddenError, ValidationError
from ..models import PRINCIPAL_EMPLOYEE, PRINCIPAL_KINDS
from ..services import auth_service, session_service
from ..validation import parse_bool_arg


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client_meta() -> tuple:
    return request.remote_addr or "unknown", request.headers.get("User-Agent")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an employee.

    Returns {access_token, refresh_token, token_type, expires_in, user}.
    Unknown email, wrong password and disabled account are indistinguishable.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            raise ValidationError("email and password required")

        ip_address, user_agent = _client_meta()
        result = auth_service.login(email, password, ip_address=ip_address, user_agent=user_agent)
        return jsonify(result), 200

    except ApiError:
        raise
    except Exception:
        current_app.logger.exception("Failed to login employee")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login-qr")
def login_qr_route():
    """Authenticate a customer with a one-time QR code."""
    try:
        data = request.get_json(silent=True) or {}
        code = data.get("qr_code") or data.get("code")

        if not code:
            raise ValidationError("qr_code required")

        ip_address, user_agent = _client_meta()
        result = auth_service.login_with_qr(code, ip_address=ip_address, user_agent=user_agent)
        return jsonify(result), 200

    except ApiError:
        raise
    except Exception:
        current_app.logger.exception("Failed to login customer with QR code")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    try:
        data = request.get_json(silent=True) or {}
        refresh_token = data.get("refresh_token")

        if not refresh_token:
            raise ValidationError("refresh_token required")

        ip_address, user_agent = _client_meta()
        tokens = auth_service.refresh(refresh_token, ip_address=ip_address, user_agent=user_agent)
        return jsonify(tokens), 200

    except ApiError:
        raise
    except Exception:
        current_app.logger.exception("Failed to refresh session")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    ip_address, user_agent = _client_meta()
    auth_service.logout(g.principal, ip_address=ip_address, user_agent=user_agent)
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    profile = auth_service.current_principal(g.principal)
    profile["principal"] = g.principal.to_dict()
    return jsonify(profile), 200


@auth_bp.get("/sessions")
@require_auth
def list_sessions_route():
    """
    Active sessions of the caller; the current one is flagged.

    A super-admin may pass principal_kind and principal_id to inspect anyone.
    """
    principal_kind = g.principal.principal_kind
    principal_id = g.principal.principal_id
    if "principal_id" in request.args:
        if not g.principal.is_super_admin:
            raise ForbiddenError("Only a super-admin may list other principals' sessions")
        principal_kind = request.args.get("principal_kind", PRINCIPAL_EMPLOYEE)
        if principal_kind not in PRINCIPAL_KINDS:
            raise ValidationError(f"Invalid principal_kind. Must be one of: {', '.join(PRINCIPAL_KINDS)}")
        principal_id = request.args.get("principal_id", type=int)
        if principal_id is None:
            raise ValidationError("principal_id must be an integer")

    active_only = parse_bool_arg(request.args.get("active_only"))
    sessions = session_service.list_sessions(
        principal_kind,
        principal_id,
        active_only=True if active_only is None else active_only,
    )
    items = []
    for row in sessions:
        item = row.to_dict()
        item["is_current"] = row.session_key == g.principal.session_id
        items.append(item)
    return jsonify(items), 200


@auth_bp.post("/sessions/cleanup")
@require_auth
@require_roles("super-admin")
def cleanup_sessions_route():
    data = request.get_json(silent=True) or {}
    retention_days = data.get("retention_days", session_service.DEFAULT_RETENTION_DAYS)
    if isinstance(retention_days, bool) or not isinstance(retention_days, int) or retention_days < 0:
        raise ValidationError("retention_days must be a non-negative integer")
    return jsonify(session_service.cleanup_expired(retention_days)), 200
