"""
User identity: lookup, credential checks and account management.

Handles:
- Principal hydration (role + districts read fresh from the store)
- Username/password authentication
- User creation and district assignment
"""
import logging
import sqlite3
from typing import Iterable, Optional

from core.db import DatabaseManager
from core.errors import ValidationError

from .passwords import burn_password_check, hash_password, verify_password
from .types import Principal, PortalRole

logger = logging.getLogger(__name__)


class UserDirectory:
    """Portal accounts and their district assignments."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_principal(self, user_id: int) -> Optional[Principal]:
        """Load a user with their current districts, or None if unknown."""
        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT id, username, role, is_active FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            if row is None:
                return None
            districts = self._districts(conn, user_id)
        return self._to_principal(row, districts)

    def get_districts(self, user_id: int) -> list[dict]:
        """District assignments as [{code, name}] ordered by code."""
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT district_code, district_name FROM user_districts "
                "WHERE user_id = ? ORDER BY district_code",
                (user_id,),
            ).fetchall()
        return [{"code": r["district_code"], "name": r["district_name"]} for r in rows]

    @staticmethod
    def _districts(conn: sqlite3.Connection, user_id: int) -> frozenset[str]:
        rows = conn.execute(
            "SELECT district_code FROM user_districts WHERE user_id = ?", (user_id,)
        ).fetchall()
        return frozenset(r["district_code"] for r in rows)

    @staticmethod
    def _to_principal(row, districts: frozenset[str]) -> Optional[Principal]:
        try:
            role = PortalRole(row["role"])
        except ValueError:
            logger.error(f"User {row['id']} has unknown role {row['role']!r}")
            return None
        return Principal(
            id=row["id"],
            username=row["username"],
            role=role,
            districts=districts,
            is_active=bool(row["is_active"]),
        )

    # =========================================================================
    # Authentication
    # =========================================================================

    def authenticate(self, username: str, password: str) -> Optional[Principal]:
        """Check credentials for an active account.

        Returns:
            The Principal, or None for an unknown user, inactive account or
            wrong password (indistinguishable to the caller).
        """
        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT id, username, password_hash, role, is_active FROM users "
                "WHERE username = ?",
                (username,),
            ).fetchone()
            districts = self._districts(conn, row["id"]) if row else frozenset()

        if row is None:
            burn_password_check(password)
            logger.info("Login failed: unknown user")
            return None

        if not verify_password(password, row["password_hash"]):
            logger.info(f"Login failed: bad password for user {row['id']}")
            return None

        if not row["is_active"]:
            logger.info(f"Login failed: user {row['id']} is inactive")
            return None

        return self._to_principal(row, districts)

    # =========================================================================
    # Management
    # =========================================================================

    def create_user(
        self,
        username: str,
        password: str,
        role: PortalRole,
        districts: Iterable[str] = (),
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        is_active: bool = True,
    ) -> int:
        """Create an account and assign districts.

        Raises:
            ValidationError: the username is taken
        """
        with self._db.connect() as conn:
            try:
                cursor = conn.execute(
                    """INSERT INTO users (username, password_hash, full_name, email, role, is_active)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (username, hash_password(password), full_name, email,
                     PortalRole(role).value, 1 if is_active else 0),
                )
            except sqlite3.IntegrityError:
                raise ValidationError(f"User '{username}' already exists") from None
            user_id = cursor.lastrowid
            self._replace_districts(conn, user_id, districts)

        logger.info(f"Created user {user_id} with role {PortalRole(role).value}")
        return user_id

    def set_districts(self, user_id: int, districts: Iterable[str]) -> None:
        """Replace a user's district assignments."""
        with self._db.connect() as conn:
            self._replace_districts(conn, user_id, districts)

    def set_active(self, user_id: int, is_active: bool) -> None:
        with self._db.connect() as conn:
            conn.execute(
                "UPDATE users SET is_active = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (1 if is_active else 0, user_id),
            )

    def user_exists(self, username: str) -> bool:
        with self._db.connect() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE username = ?", (username,)).fetchone()
        return row is not None

    @staticmethod
    def _replace_districts(conn: sqlite3.Connection, user_id: int, districts: Iterable[str]) -> None:
        conn.execute("DELETE FROM user_districts WHERE user_id = ?", (user_id,))
        conn.executemany(
            "INSERT INTO user_districts (user_id, district_code) VALUES (?, ?)",
            [(user_id, code) for code in sorted(set(districts))],
        )
