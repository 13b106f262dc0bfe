"""
Per-request authorization guard.

The chain runs in a fixed order and stops at the first failure:

    no token -> AUTH_REQUIRED
    revoked -> TOKEN_REVOKED
    bad signature / expired / malformed -> INVALID_TOKEN
    session superseded or expired -> SESSION_INVALID
    account missing or inactive -> PRINCIPAL_INACTIVE

On success the Principal is rebuilt from the store, so role and district
changes apply immediately instead of waiting for the token to expire.
"""
import logging
from typing import TYPE_CHECKING, Iterable, Optional

from config.settings import AppSettings
from core.errors import AuthenticationError, AuthorizationError, ConfigurationError

from .identity import UserDirectory
from .revocation import RevocationStore
from .tokens import TokenService
from .types import Principal, PortalRole, QueryConstraint

if TYPE_CHECKING:
    from portal.sessions import SessionRegistry

logger = logging.getLogger(__name__)

DEV_PRINCIPAL = Principal(
    id=1,
    username="dev-user",
    role=PortalRole.ADMIN,
    districts=frozenset(),
)

UNRESTRICTED_ROLES = frozenset({PortalRole.ADMIN, PortalRole.OFFICE})


class AuthorizationGuard:
    """Turns a raw token into a Principal, or refuses."""

    def __init__(
        self,
        settings: AppSettings,
        tokens: TokenService,
        revocations: RevocationStore,
        sessions: "SessionRegistry",
        users: UserDirectory,
    ):
        self._settings = settings
        self._tokens = tokens
        self._revocations = revocations
        self._sessions = sessions
        self._users = users

    def authenticate(self, token: Optional[str]) -> Principal:
        """Run the guard chain.

        Raises:
            AuthenticationError: with the reason code of the failing step
            ConfigurationError: authentication bypass requested in production
        """
        if self._settings.auth_bypass_requested:
            return self._bypass_principal()

        if not token:
            raise AuthenticationError(AuthenticationError.AUTH_REQUIRED)

        if self._revocations.is_revoked(token):
            raise AuthenticationError(AuthenticationError.TOKEN_REVOKED)

        payload = self._tokens.verify(token)
        if payload is None:
            raise AuthenticationError(AuthenticationError.INVALID_TOKEN)

        if not self._sessions.validate_session(payload.user_id, payload.session_token):
            logger.info(f"Session no longer valid for user {payload.user_id}")
            raise AuthenticationError(AuthenticationError.SESSION_INVALID)

        principal = self._users.get_principal(payload.user_id)
        if principal is None or not principal.is_active:
            raise AuthenticationError(AuthenticationError.PRINCIPAL_INACTIVE)

        return principal

    def _bypass_principal(self) -> Principal:
        if self._settings.is_production:
            raise ConfigurationError(
                "AUTHENTICATION_ENABLED=false is not allowed when APP_ENV=production"
            )
        logger.warning("Authentication bypass active: request served as dev-user")
        return DEV_PRINCIPAL

    # =========================================================================
    # Authorization
    # =========================================================================

    @staticmethod
    def authorize(principal: Principal, allowed_roles: Iterable[PortalRole]) -> None:
        """Raise AuthorizationError unless the principal holds one of the roles."""
        allowed = {PortalRole(r) for r in allowed_roles}
        if principal.role not in allowed:
            logger.info(f"User {principal.id} ({principal.role.value}) denied; needs one of {sorted(r.value for r in allowed)}")
            raise AuthorizationError()

    @staticmethod
    def district_scope(principal: Principal) -> QueryConstraint:
        """District filter for queries made on behalf of the principal."""
        if principal.role in UNRESTRICTED_ROLES:
            return QueryConstraint()
        return QueryConstraint(districts=frozenset(principal.districts))
