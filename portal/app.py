"""
Flask Application Factory.

Creates and configures the app: settings, logging, extensions, database,
auth services and blueprints. Services are built once here and stored in
app.extensions; nothing reads ambient globals at request time.
"""

import logging
import time
import uuid

from dotenv import load_dotenv
from flask import Flask, g, request

load_dotenv()

logger = logging.getLogger(__name__)


def create_app(config=None, settings=None, db=None):
    """Create and configure the Flask application.

    Args:
        config: Optional dict of Flask config overrides (e.g. {'TESTING': True}).
        settings: AppSettings to use instead of get_settings().
        db: DatabaseManager to use instead of one built from settings.

    Returns:
        Configured Flask app instance.

    Raises:
        ConfigurationError: required configuration (JWT_SECRET) is missing
    """
    from config.settings import get_settings
    from core.db import DatabaseManager

    settings = settings or get_settings()

    app = Flask(__name__)
    app.config.update(
        AUTH_COOKIE_NAME=settings.auth.auth_cookie_name,
        JSON_SORT_KEYS=False,
    )
    if config:
        app.config.update(config)
    app.extensions["settings"] = settings

    # Configure logging
    from portal.logging_config import configure_logging
    configure_logging(settings, app)

    # Initialize extensions (CORS, limiter)
    from portal.extensions import init_extensions
    init_extensions(app, settings)

    # Register custom error handlers for APIError hierarchy
    from core.errors import register_error_handlers
    register_error_handlers(app)

    # Database + schema
    db = db or DatabaseManager(db_path=settings.database.db_path)
    from portal.auth.schema import initialize
    initialize(db, settings)
    app.extensions["db"] = db

    _init_services(app, settings, db)

    if settings.auth_bypass_requested:
        if settings.is_production:
            logger.critical(
                "AUTHENTICATION_ENABLED=false with APP_ENV=production: "
                "every authenticated request will be refused"
            )
        else:
            logger.warning("Authentication bypass is enabled (development only)")

    # Register blueprints
    _register_blueprints(app, settings)

    # Register middleware
    _register_middleware(app, settings)

    # Background sweeps (sessions, blacklist)
    from portal.maintenance import start_sweeper
    start_sweeper(app)

    return app


def _init_services(app, settings, db):
    """Build the auth and hierarchy services for this app."""
    from core.hierarchy import HierarchyService, MemberStore
    from portal.auth.guard import AuthorizationGuard
    from portal.auth.identity import UserDirectory
    from portal.auth.revocation import RevocationStore
    from portal.auth.tokens import TokenService
    from portal.sessions import SessionRegistry

    tokens = TokenService(settings.auth)
    sessions = SessionRegistry(db, lifetime_minutes=settings.auth.session_lifetime_minutes)
    revocations = RevocationStore(db, tokens)
    users = UserDirectory(db)
    members = MemberStore(db)

    app.extensions.update({
        "token_service": tokens,
        "session_registry": sessions,
        "revocation_store": revocations,
        "user_directory": users,
        "auth_guard": AuthorizationGuard(settings, tokens, revocations, sessions, users),
        "member_store": members,
        "hierarchy_service": HierarchyService(members),
    })


def _register_blueprints(app, settings):
    """Register all route blueprints."""
    from portal.extensions import limiter

    # Auth
    from portal.routes.auth_routes import auth_bp
    app.register_blueprint(auth_bp)

    # Login is limited per client address, on top of the default limit
    app.view_functions['auth.login'] = limiter.limit(settings.rate_limit.login)(
        app.view_functions['auth.login']
    )

    from portal.routes.devotees import devotees_bp
    app.register_blueprint(devotees_bp)

    from portal.routes.senapoti import senapoti_bp
    app.register_blueprint(senapoti_bp)


def _register_middleware(app, settings):
    """Register request tracking and security middleware."""

    @app.before_request
    def before_request_tracking():
        """Assign request ID and start the timer."""
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])
        g.start_time = time.time()

    @app.after_request
    def after_request_tracking(response):
        """Log request completion with timing and add security headers."""
        duration_ms = 0
        if hasattr(g, 'start_time'):
            duration_ms = (time.time() - g.start_time) * 1000

        if hasattr(g, 'request_id'):
            response.headers['X-Request-ID'] = g.request_id

        principal = g.get('principal')
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            log_level,
            f"{request.method} {request.path} -> {response.status_code} ({duration_ms:.1f}ms)",
            extra={
                'request_id': getattr(g, 'request_id', 'unknown'),
                'method': request.method,
                'endpoint': request.path,
                'status_code': response.status_code,
                'duration_ms': round(duration_ms, 2),
                'remote_addr': request.remote_addr,
                'user': principal.id if principal else None,
            }
        )

        # Security headers
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Content-Security-Policy'] = "default-src 'self'"
        if settings.is_production:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        return response
