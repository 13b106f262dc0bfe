"""
Centralized error handling for the Namhatta portal API.

Error Hierarchy:
- APIError (4xx): Expected errors with messages safe to expose to clients
  - AuthenticationError (401): missing/invalid/expired/revoked/superseded token
  - AuthorizationError (403): role or district mismatch
- InternalError (5xx): Unexpected errors - never expose internal details
  - ConfigurationError: missing signing secret, auth bypass in production

Hierarchy validation problems are NOT exceptions: they are returned as a
ValidationResult (see core.hierarchy) so every violation is reported at once.

Usage:
    from core.errors import AuthenticationError, NotFoundError

    raise NotFoundError(f"Devotee {devotee_id} not found")
"""

import logging
import uuid

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


# =============================================================================
# Exception Classes (4xx - Expected Errors)
# =============================================================================

class APIError(Exception):
    """
    Base class for expected API errors (4xx status codes).
    Messages are safe to expose to clients.
    """
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(APIError):
    """Resource not found (404)."""
    status_code = 404


class ValidationError(APIError):
    """Request payload validation failed (400)."""
    status_code = 400


class AuthenticationError(APIError):
    """Authentication failed (401).

    The client only ever sees the generic message. ``reason`` is one of the
    AUTH_* / *_INVALID codes below and is for logs only.
    """
    status_code = 401

    AUTH_REQUIRED = "AUTH_REQUIRED"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    INVALID_TOKEN = "INVALID_TOKEN"
    SESSION_INVALID = "SESSION_INVALID"
    PRINCIPAL_INACTIVE = "PRINCIPAL_INACTIVE"

    def __init__(self, reason: str):
        message = "Authentication required" if reason == self.AUTH_REQUIRED else "Authentication failed"
        super().__init__(message)
        self.reason = reason


class AuthorizationError(APIError):
    """Role or district mismatch (403)."""
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


# =============================================================================
# Internal Errors (5xx - Never Expose)
# =============================================================================

class InternalError(Exception):
    """
    Unexpected internal errors (5xx status codes).
    Message should NEVER be exposed to clients.
    """
    pass


class ConfigurationError(InternalError):
    """Fatal misconfiguration: missing secret, or auth bypass in production."""
    pass


# =============================================================================
# Flask Handlers
# =============================================================================

def register_error_handlers(app):
    """
    Register Flask error handlers for the error hierarchy.

    Call this in your Flask app factory:
        from core.errors import register_error_handlers
        register_error_handlers(app)
    """

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(e):
        """Log the reason code, return the generic message."""
        logger.warning(f"Authentication rejected: {e.reason}")
        return jsonify({"error": str(e)}), e.status_code

    @app.errorhandler(APIError)
    def handle_api_error(e):
        """Handle all other APIError subclasses."""
        error_id = str(uuid.uuid4())[:8]
        logger.warning(f"API error: {e}", extra={'error_id': error_id})
        return jsonify({
            "error": str(e),
            "error_id": error_id
        }), e.status_code

    @app.errorhandler(ConfigurationError)
    def handle_configuration_error(e):
        """Security misconfiguration: loud in logs, opaque to clients."""
        error_id = str(uuid.uuid4())[:8]
        logger.critical(f"SECURITY CONFIGURATION ERROR: {e}", extra={'error_id': error_id})
        return jsonify({
            "error": "Security configuration error",
            "error_id": error_id
        }), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        """Handle unexpected errors; HTTP errors (404, 405, 429...) pass through."""
        if isinstance(e, HTTPException):
            return e
        error_id = str(uuid.uuid4())[:8]
        logger.exception("Internal server error", extra={'error_id': error_id})
        return jsonify({
            "error": "Internal server error",
            "error_id": error_id
        }), 500
