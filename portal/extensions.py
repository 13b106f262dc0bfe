"""
Flask extension instances.

Centralized extension objects initialized via init_extensions(app, settings).
Import these objects in blueprints instead of creating new instances.
"""

import logging

from flask import jsonify
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from config.settings import AppSettings

logger = logging.getLogger(__name__)

# Created in init_extensions with full config
limiter = None


def _allowed_origins(settings: AppSettings) -> list[str]:
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


def init_extensions(app, settings: AppSettings):
    """Initialize all Flask extensions with the app instance.

    Args:
        app: Flask application instance
        settings: application settings (CORS origins, rate limits)
    """
    # Credentials are carried in a cookie, so CORS must allow them
    CORS(app, origins=_allowed_origins(settings), supports_credentials=True)

    # Rate limiter; keyed by client address so unauthenticated login attempts count too
    global limiter
    limiter = Limiter(
        key_func=get_remote_address,
        app=app,
        default_limits=[settings.rate_limit.default],
        storage_uri=settings.rate_limit.storage or "memory://",
        strategy="moving-window",
    )
    app.extensions["rate_limiter"] = limiter

    @app.errorhandler(429)
    def ratelimit_handler(e):
        logger.warning(f"Rate limit exceeded: {e.description}")
        return jsonify({
            "error": "Rate limit exceeded",
            "message": str(e.description),
        }), 429

    return limiter
