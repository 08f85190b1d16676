# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import UnauthorizedError
from .services import auth_service


def _is_authenticated() -> bool:
    return hasattr(g, "principal")


def require_auth(f):
    """
    Require a live bearer session and establish the principal context.

    Sets:
    - g.principal: PrincipalContext (id, kind, role variant, session id)
    - g.branch_id: the caller's branch, None for a super-admin

    SECURITY: Returns 401 if:
    - No Authorization header
    - Signature, expiry or token type is wrong
    - The session was logged out, refreshed away or revoked
    - The session cache is unreachable (fail closed)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        try:
            context = auth_service.validate_bearer(token)
        except UnauthorizedError as e:
            return jsonify(e.to_dict()), 401

        g.principal = context
        g.branch_id = context.branch_id

        return f(*args, **kwargs)

    return decorated_function


def require_employee(f):
    """Staff only; customers get 403."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.principal.is_employee:
            return jsonify({"error": "Staff access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_roles(*roles: str):
    """Require one of the given staff roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not g.principal.is_employee or g.principal.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                    "message": f"Requires role: {', '.join(roles)}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
