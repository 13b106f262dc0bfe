"""
Authentication endpoints for the Namhatta portal API.

Provides login, logout, token verification and the caller's districts.
The access token travels in an HttpOnly cookie; a Bearer header is also
accepted for API clients.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from core.errors import ValidationError
from portal.auth.decorators import auth_required, current_token

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

MAX_USERNAME_LENGTH = 100
MAX_PASSWORD_LENGTH = 200


def _set_auth_cookie(response, token: str):
    settings = current_app.extensions["settings"]
    response.set_cookie(
        settings.auth.auth_cookie_name,
        token,
        max_age=settings.auth.token_lifetime_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="Strict",
    )


def _clear_auth_cookie(response):
    settings = current_app.extensions["settings"]
    response.delete_cookie(
        settings.auth.auth_cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite="Strict",
    )


# =============================================================================
# Login / Logout
# =============================================================================

@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Authenticate a user, start their (only) session and set the auth cookie.
    Rate limited per client address (applied at registration).
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data, dict):
        raise ValidationError("No credentials provided")

    username = data.get("username")
    password = data.get("password")

    # Type validation - prevent type confusion attacks
    if not isinstance(username, str) or not isinstance(password, str):
        raise ValidationError("Username and password must be strings")

    if not username or not password:
        raise ValidationError("Username and password required")

    if len(username) > MAX_USERNAME_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError("Credentials exceed maximum length")

    principal = current_app.extensions["user_directory"].authenticate(username, password)
    if principal is None:
        return jsonify({"error": "Invalid credentials"}), 401

    # Starting a session replaces any previous one, invalidating its tokens
    session_token = current_app.extensions["session_registry"].create_session(principal.id)
    token = current_app.extensions["token_service"].issue({
        "sub": principal.username,
        "user_id": principal.id,
        "role": principal.role.value,
        "districts": sorted(principal.districts),
        "session_token": session_token,
    })

    logger.info(f"Login successful for user {principal.id}")
    response = jsonify({"user": principal.to_dict()})
    _set_auth_cookie(response, token)
    return response


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Revoke the presented token, end the session and clear the cookie.

    Always succeeds: logging out with a missing or dead token is a no-op.
    """
    token = current_token()
    if token:
        tokens = current_app.extensions["token_service"]
        payload = tokens.verify(token)
        current_app.extensions["revocation_store"].revoke(token)
        if payload is not None:
            current_app.extensions["session_registry"].remove_session(payload.user_id)
            logger.info(f"Logout for user {payload.user_id}")

    response = jsonify({"message": "Logged out"})
    _clear_auth_cookie(response)
    return response


# =============================================================================
# Session inspection
# =============================================================================

@auth_bp.route('/verify', methods=['GET'])
@auth_required
def verify():
    """Return the authenticated user (401 if the guard chain fails)."""
    return jsonify({"user": g.principal.to_dict()})


@auth_bp.route('/user-districts', methods=['GET'])
@auth_required
def user_districts():
    """Districts assigned to the authenticated user."""
    districts = current_app.extensions["user_directory"].get_districts(g.principal.id)
    return jsonify({"districts": districts})
