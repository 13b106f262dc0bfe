"""
Portal authentication and authorization.

Public API:
- Decorators: auth_required, role_required, district_scoped
- Services: TokenService, RevocationStore, UserDirectory, AuthorizationGuard
- Types: Principal, PortalRole, TokenPayload, QueryConstraint
- Passwords: hash_password, verify_password, validate_password_strength

Import Rules:
- External callers: Use `from portal.auth import X` (this facade)
- Internal auth modules: Use `from .submodule import X` (direct imports)
- Ban: `from portal.auth import X` inside auth submodules (causes facade import)
"""

# =============================================================================
# Decorators (most commonly used)
# =============================================================================
from .decorators import (
    auth_required,
    role_required,
    district_scoped,
    current_token,
)

# =============================================================================
# Services
# =============================================================================
from .tokens import TokenService, get_token_from_request
from .revocation import RevocationStore
from .identity import UserDirectory
from .guard import AuthorizationGuard, DEV_PRINCIPAL

# =============================================================================
# Types
# =============================================================================
from .types import Principal, PortalRole, TokenPayload, QueryConstraint

# =============================================================================
# Password Utilities
# =============================================================================
from .passwords import (
    hash_password,
    verify_password,
    validate_password_strength,
)

# =============================================================================
# Schema Initialization (for create_app)
# =============================================================================
from .schema import initialize as init_database

__all__ = [
    # Decorators
    "auth_required",
    "role_required",
    "district_scoped",
    "current_token",

    # Services
    "TokenService",
    "get_token_from_request",
    "RevocationStore",
    "UserDirectory",
    "AuthorizationGuard",
    "DEV_PRINCIPAL",

    # Types
    "Principal",
    "PortalRole",
    "TokenPayload",
    "QueryConstraint",

    # Passwords
    "hash_password",
    "verify_password",
    "validate_password_strength",

    # Init
    "init_database",
]
