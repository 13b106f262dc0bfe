"""
Flask route decorators for authentication and authorization.

Provides:
- auth_required: run the guard chain, set g.principal
- role_required: auth_required plus a role check
- district_scoped: auth_required plus g.query_constraint

The guard itself lives in app.extensions["auth_guard"] (set up by create_app).
"""
from functools import wraps

from flask import current_app, g

from .tokens import get_token_from_request


def _guard():
    return current_app.extensions["auth_guard"]


def current_token():
    """Raw token presented with the current request (cookie or Bearer)."""
    return get_token_from_request(current_app.config["AUTH_COOKIE_NAME"])


def auth_required(f):
    """Decorator to require an authenticated principal.

    Sets g.principal on success. Failures raise AuthenticationError, which
    the registered error handler turns into a 401. Stacked decorators share
    one guard run per request.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        if g.get("principal") is None:
            g.principal = _guard().authenticate(current_token())
        return f(*args, **kwargs)
    return decorated


def role_required(*allowed_roles):
    """Decorator factory to require specific portal roles.

    Usage:
        @role_required(PortalRole.ADMIN, PortalRole.OFFICE)
        def office_only():
            ...
    """
    def decorator(f):
        @wraps(f)
        @auth_required
        def decorated(*args, **kwargs):
            _guard().authorize(g.principal, allowed_roles)
            return f(*args, **kwargs)
        return decorated
    return decorator


def district_scoped(f):
    """Decorator that sets g.query_constraint for the authenticated principal.

    Handlers filter with g.query_constraint.effective_districts(requested);
    a DISTRICT_SUPERVISOR can never widen it through query parameters.
    """
    @wraps(f)
    @auth_required
    def decorated(*args, **kwargs):
        g.query_constraint = _guard().district_scope(g.principal)
        return f(*args, **kwargs)
    return decorated
