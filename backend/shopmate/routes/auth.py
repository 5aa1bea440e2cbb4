# Overview: Flask API routes for signup, login and token refresh/logout.

# backend/shopmate/routes/auth.py
"""
Authentication API routes

- POST /signup   create a role=user account
- POST /login    exchange username/password for access + refresh tokens
- POST /refresh  exchange a refresh token for a new access token
- POST /logout   revoke a refresh token

Refresh and logout take the refresh token in the JSON body as {"token": ...}.
"""

from flask import Blueprint, request, current_app

from ..errors import ServiceError, error_response
from ..services import get_services


auth_bp = Blueprint("auth", __name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@auth_bp.post("/signup")
def signup_route():
    """Self-service signup. Always creates role=user."""
    data = _json_body()
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        return {"error": "Username and password required"}, 400

    try:
        get_services().credentials.create_user(username, password)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return {"error": "Database error"}, 500

    return {"message": "Signup successful, please login"}, 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a token pair.

    Returns {accessToken, refreshToken, role}. The access token goes in the
    Authorization header of inventory calls; the refresh token is only sent
    to /refresh and /logout.
    """
    data = _json_body()
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        return {"error": "Username and password required"}, 400

    services = get_services()
    try:
        user = services.credentials.verify_credentials(username, password)
        session = services.tokens.issue_session(user.id, user.role)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return {"error": "Database error"}, 500

    current_app.logger.info("User %s logged in", user.id)
    return session.to_dict(), 200


@auth_bp.post("/refresh")
def refresh_route():
    """Mint a new access token. The refresh token itself is not rotated."""
    token = _json_body().get("token")
    if not token:
        return {"error": "No refresh token provided"}, 401

    try:
        access_token = get_services().tokens.refresh_access(token)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refresh access token")
        return {"error": "Invalid refresh token"}, 403

    return {"accessToken": access_token}, 200


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke the refresh token.

    Idempotent: logging out an already revoked token still succeeds. Access
    tokens issued from this session stay valid until they expire.
    """
    token = _json_body().get("token")
    if not token:
        return {"error": "No refresh token provided"}, 400

    try:
        get_services().tokens.revoke(token)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return {"error": "Database error"}, 500

    return {"message": "Logged out successfully"}, 200
