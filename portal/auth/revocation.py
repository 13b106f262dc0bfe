"""
Token revocation (JWT blacklist).

Revoked tokens are keyed by their SHA-256 fingerprint and kept until the
token's own expiry, after which the sweep drops them. A revoked token is
rejected even while its signature and expiry are still valid.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from core.db import DatabaseManager, to_db_time

from .tokens import TokenService

logger = logging.getLogger(__name__)


class RevocationStore:
    """Persistent set of revoked token fingerprints."""

    def __init__(self, db: DatabaseManager, tokens: TokenService):
        self._db = db
        self._tokens = tokens

    def revoke(self, token: Optional[str]) -> bool:
        """Blacklist a token until it expires.

        Returns:
            True if the token is (now) revoked, False if it was not a valid
            token to begin with (nothing is written).
        """
        payload = self._tokens.verify(token)
        if payload is None:
            return False

        with self._db.connect() as conn:
            try:
                conn.execute(
                    "INSERT INTO jwt_blacklist (token_hash, expired_at) VALUES (?, ?)",
                    (self._tokens.fingerprint(token), to_db_time(payload.exp)),
                )
            except sqlite3.IntegrityError:
                pass  # Already revoked
        logger.info(f"Revoked token for user {payload.user_id}")
        return True

    def is_revoked(self, token: str) -> bool:
        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM jwt_blacklist WHERE token_hash = ?",
                (self._tokens.fingerprint(token),),
            ).fetchone()
        return row is not None

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Drop entries whose token has expired. Returns rows removed."""
        now = now or datetime.now(timezone.utc)
        with self._db.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM jwt_blacklist WHERE expired_at < ?", (to_db_time(now),)
            )
            removed = cursor.rowcount
        if removed:
            logger.info(f"Swept {removed} expired blacklist entries")
        return removed
