# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import InvalidToken
from .models import ROLE_ADMIN
from .services import get_services


def _is_authenticated() -> bool:
    return hasattr(g, 'principal')


def require_auth(f):
    """
    Require a valid access token.

    Sets g.principal to the token's AccessClaims (user_id, role).

    Returns 401 if there is no "Authorization: Bearer <token>" header and
    403 if the token is malformed, tampered with, or expired. No database
    lookup is made; the check is signature + expiry only.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header:
            return jsonify({"error": "No token provided"}), 401

        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return jsonify({"error": "Invalid token"}), 403

        try:
            g.principal = get_services().tokens.verify_access(token.strip())
        except InvalidToken:
            return jsonify({"error": "Invalid token"}), 403

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Allow the route only for role=admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Unauthorized: Must be logged in"}), 401
        if g.principal.role != ROLE_ADMIN:
            return jsonify({"error": "Forbidden: Admin privilege required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_customer(f):
    """Allow the route for any authenticated role except admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Unauthorized: Must be logged in"}), 401
        if g.principal.role == ROLE_ADMIN:
            return jsonify({"error": "Forbidden: Admins cannot make purchases"}), 403
        return f(*args, **kwargs)
    return decorated_function
