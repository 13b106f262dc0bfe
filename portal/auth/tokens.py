"""
JWT token issuance and verification.

Handles:
- Access token signing (HS256 via PyJWT)
- Verification of signature, expiry and claim shape
- Token fingerprints (revocation keys; raw tokens are never stored)
- Session secrets for single-session enforcement
"""
import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask import request

from config.settings import AuthSettings
from core.errors import ConfigurationError

from .types import TokenPayload

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS = ("sub", "user_id", "role", "session_token", "jti", "iat", "exp")


class TokenService:
    """Signs and verifies portal access tokens."""

    def __init__(self, settings: AuthSettings):
        secret = settings.jwt_secret.get_secret_value()
        if not secret:
            raise ConfigurationError("JWT signing secret is not configured")
        self._secret = secret
        self._algorithm = settings.jwt_algorithm
        self.lifetime = timedelta(minutes=settings.token_lifetime_minutes)

    # =========================================================================
    # Issue / verify
    # =========================================================================

    def issue(self, claims: dict, now: Optional[datetime] = None) -> str:
        """Create a signed access token.

        Args:
            claims: sub, user_id, role, districts, session_token
            now: issue time (defaults to current UTC time)

        Returns:
            Encoded JWT
        """
        now = now or datetime.now(timezone.utc)
        payload = dict(claims)
        payload["districts"] = sorted(payload.get("districts") or ())
        payload["jti"] = str(uuid.uuid4())
        payload["iat"] = now
        payload["exp"] = now + self.lifetime
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: Optional[str]) -> Optional[TokenPayload]:
        """Decode and validate a token.

        Returns:
            TokenPayload, or None if the token is malformed, badly signed,
            expired or missing claims. Never raises.
        """
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": list(_REQUIRED_CLAIMS)},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired token")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected invalid token: {type(e).__name__}")
            return None

        try:
            return TokenPayload(
                sub=str(payload["sub"]),
                user_id=int(payload["user_id"]),
                role=str(payload["role"]),
                districts=tuple(payload.get("districts") or ()),
                session_token=str(payload["session_token"]),
                jti=str(payload["jti"]),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (TypeError, ValueError):
            logger.debug("Rejected token with malformed claims")
            return None

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def fingerprint(token: str) -> str:
        """SHA-256 hex digest of the raw token (revocation key)."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def new_session_secret() -> str:
        """256-bit random session token, hex encoded."""
        return secrets.token_hex(32)


def get_token_from_request(cookie_name: str) -> Optional[str]:
    """Extract the token from the auth cookie, falling back to a Bearer header."""
    token = request.cookies.get(cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None
