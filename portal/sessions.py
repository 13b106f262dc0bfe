"""
Session Management Module

Implements single-session enforcement: each user has at most one live
session. Logging in replaces the previous session, so any token still
carrying the old session token stops validating.
"""

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.db import DatabaseManager, from_db_time, to_db_time
from portal.auth.tokens import TokenService

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Manages user sessions with single-session enforcement."""

    def __init__(self, db: DatabaseManager, lifetime_minutes: int = 60, secret_factory=None):
        self._db = db
        self.lifetime = timedelta(minutes=lifetime_minutes)
        self._new_secret = secret_factory or TokenService.new_session_secret

    def create_session(self, user_id: int, now: Optional[datetime] = None) -> str:
        """Start a new session for a user, replacing any existing one.

        Delete and insert share one BEGIN IMMEDIATE transaction; the UNIQUE
        user_id constraint keeps two concurrent logins from both surviving.

        Returns:
            The new session token
        """
        now = now or datetime.now(timezone.utc)
        session_token = self._new_secret()

        with self._db.connect(immediate=True) as conn:
            replaced = conn.execute(
                "DELETE FROM user_sessions WHERE user_id = ?", (user_id,)
            ).rowcount
            conn.execute(
                "INSERT INTO user_sessions (user_id, session_token, expires_at) VALUES (?, ?, ?)",
                (user_id, session_token, to_db_time(now + self.lifetime)),
            )

        if replaced:
            logger.info(f"Replaced existing session for user {user_id}")
        return session_token

    def validate_session(self, user_id: int, session_token: Optional[str], now: Optional[datetime] = None) -> bool:
        """Check a session token against the user's live session.

        An expired session is deleted and reported invalid.
        """
        if not session_token:
            return False
        now = now or datetime.now(timezone.utc)

        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT session_token, expires_at FROM user_sessions WHERE user_id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return False
            if from_db_time(row["expires_at"]) <= now:
                conn.execute(
                    "DELETE FROM user_sessions WHERE user_id = ? AND session_token = ?",
                    (user_id, row["session_token"]),
                )
                return False

        return hmac.compare_digest(row["session_token"], session_token)

    def get_session(self, user_id: int) -> Optional[dict]:
        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT user_id, session_token, expires_at, created_at FROM user_sessions WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return {
            "user_id": row["user_id"],
            "session_token": row["session_token"],
            "expires_at": from_db_time(row["expires_at"]),
            "created_at": row["created_at"],
        }

    def remove_session(self, user_id: int) -> bool:
        """End a user's session (logout). Returns True if one existed."""
        with self._db.connect() as conn:
            removed = conn.execute(
                "DELETE FROM user_sessions WHERE user_id = ?", (user_id,)
            ).rowcount
        return removed > 0

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired sessions. Returns rows removed."""
        now = now or datetime.now(timezone.utc)
        with self._db.connect() as conn:
            removed = conn.execute(
                "DELETE FROM user_sessions WHERE expires_at <= ?", (to_db_time(now),)
            ).rowcount
        if removed:
            logger.info(f"Swept {removed} expired sessions")
        return removed
