"""
Devotee hierarchy persistence.

Handles:
- Member lookup and district-filtered listing
- Reporting-graph snapshots for cycle detection
- Supervisor candidates for a role within a district
- Role / reporting-edge updates and subordinate re-pointing
- Role change history

Methods that take a `conn` run inside the caller's transaction; the others
open their own.
"""
import sqlite3
from collections.abc import Iterable
from typing import Optional, Union

from core.db import DatabaseManager

from .cycles import SnapshotGraph
from .policy import DISTRICT_SUPERVISOR, ROLE_HIERARCHY, HierarchyRole, expected_supervisor_role
from .types import HierarchyMember

_MEMBER_COLUMNS = "id, name, legal_name, district_code, leadership_role, reporting_to_devotee_id"


def _row_to_member(row) -> HierarchyMember:
    return HierarchyMember(
        id=row["id"],
        name=row["name"],
        legal_name=row["legal_name"],
        district_code=row["district_code"],
        leadership_role=row["leadership_role"],
        reporting_to_devotee_id=row["reporting_to_devotee_id"],
    )


def _district_clause(districts: Optional[Iterable[str]]) -> tuple[str, list]:
    """SQL fragment restricting rows to `districts` (None = no restriction)."""
    if districts is None:
        return "", []
    codes = sorted(set(districts))
    placeholders = ", ".join("?" for _ in codes)
    return f" AND district_code IN ({placeholders})", codes


class MemberStore:
    """Reads and writes devotee hierarchy rows."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def transaction(self):
        """Immediate transaction for read-validate-write sequences."""
        return self._db.connect(immediate=True)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_member(self, member_id: int, conn: sqlite3.Connection = None) -> Optional[HierarchyMember]:
        if conn is None:
            with self._db.connect() as own:
                return self.get_member(member_id, own)
        row = conn.execute(
            f"SELECT {_MEMBER_COLUMNS} FROM devotees WHERE id = ?",  # nosec B608
            (member_id,),
        ).fetchone()
        return _row_to_member(row) if row else None

    def reporting_to(self, member_id: int) -> Optional[int]:
        """Single-edge lookup (ReportingGraph protocol)."""
        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT reporting_to_devotee_id FROM devotees WHERE id = ?", (member_id,)
            ).fetchone()
        return row["reporting_to_devotee_id"] if row else None

    def snapshot(self, conn: sqlite3.Connection = None) -> SnapshotGraph:
        """All reporting edges, read in one statement."""
        if conn is None:
            with self._db.connect() as own:
                return self.snapshot(own)
        rows = conn.execute("SELECT id, reporting_to_devotee_id FROM devotees").fetchall()
        return SnapshotGraph({row["id"]: row["reporting_to_devotee_id"] for row in rows})

    def direct_subordinates(
        self,
        supervisor_id: int,
        conn: sqlite3.Connection = None,
        districts: Optional[Iterable[str]] = None,
    ) -> list[HierarchyMember]:
        """Members reporting straight to `supervisor_id`, optionally limited to districts."""
        if conn is None:
            with self._db.connect() as own:
                return self.direct_subordinates(supervisor_id, own, districts)
        if districts is not None and not set(districts):
            return []
        clause, params = _district_clause(districts)
        rows = conn.execute(
            f"SELECT {_MEMBER_COLUMNS} FROM devotees "  # nosec B608
            f"WHERE reporting_to_devotee_id = ?{clause} ORDER BY id",
            [supervisor_id, *params],
        ).fetchall()
        return [_row_to_member(row) for row in rows]

    def all_subordinates(
        self,
        supervisor_id: int,
        districts: Optional[Iterable[str]] = None,
    ) -> list[tuple[HierarchyMember, int]]:
        """Direct and indirect reports as (member, depth) pairs, depth-first.

        With `districts`, members outside them are left out of the result;
        their own reports are still reached, at their true depth.
        """
        allowed = None if districts is None else set(districts)
        collected: list[tuple[HierarchyMember, int]] = []
        visited: set[int] = set()

        with self._db.connect() as conn:
            stack = [(supervisor_id, 0)]
            while stack:
                current, depth = stack.pop()
                if current in visited:
                    continue
                visited.add(current)
                for member in reversed(self.direct_subordinates(current, conn)):
                    if member.id in visited:
                        continue
                    if allowed is None or member.district_code in allowed:
                        collected.append((member, depth + 1))
                    stack.append((member.id, depth + 1))
        return collected

    def available_supervisors(
        self,
        district_code: str,
        target_role: Union[str, HierarchyRole],
        exclude_id: Optional[int] = None,
    ) -> list[dict]:
        """Who a holder of `target_role` in `district_code` could report to.

        Returns the district's holders of the expected supervisor role with
        their direct-report counts. For MALA_SENAPOTI the supervisor is the
        district supervisor, returned as a single placeholder entry with id 0.

        Raises:
            ValueError: unknown `target_role`
        """
        supervisor_role = expected_supervisor_role(target_role)
        if supervisor_role == DISTRICT_SUPERVISOR:
            return [{
                "id": 0,
                "name": "District Supervisor",
                "legal_name": "District Supervisor",
                "leadership_role": DISTRICT_SUPERVISOR,
                "subordinate_count": 0,
            }]

        with self._db.connect() as conn:
            rows = conn.execute(
                """SELECT d.id, d.name, d.legal_name, d.leadership_role,
                          (SELECT COUNT(*) FROM devotees s
                           WHERE s.reporting_to_devotee_id = d.id) AS subordinate_count
                   FROM devotees d
                   WHERE d.district_code = ? AND d.leadership_role = ?
                   ORDER BY d.id""",
                (district_code, supervisor_role),
            ).fetchall()
        return [
            {
                "id": row["id"],
                "name": row["name"] or row["legal_name"],
                "legal_name": row["legal_name"],
                "leadership_role": row["leadership_role"],
                "subordinate_count": row["subordinate_count"],
            }
            for row in rows
            if row["id"] != exclude_id
        ]

    def list_members(
        self,
        districts: Optional[Iterable[str]] = None,
        role: Optional[HierarchyRole] = None,
        leaders_only: bool = False,
    ) -> list[HierarchyMember]:
        """Devotees, optionally restricted to districts and/or a role.

        Args:
            districts: district codes to keep; None means every district and
                an empty collection means none
            role: keep only holders of this senapoti role
            leaders_only: keep only devotees holding any senapoti role
        """
        if districts is not None and not set(districts):
            return []

        clause, params = _district_clause(districts)
        sql = f"SELECT {_MEMBER_COLUMNS} FROM devotees WHERE 1 = 1{clause}"  # nosec B608
        if role is not None:
            sql += " AND leadership_role = ?"
            params.append(role.value)
        elif leaders_only:
            sql += " AND leadership_role IS NOT NULL"
        sql += " ORDER BY id"

        with self._db.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_member(row) for row in rows]

    def district_hierarchy(self, district_code: str) -> dict[str, list[dict]]:
        """Leaders of one district grouped by role, top level first."""
        leaders = self.list_members(districts=[district_code], leaders_only=True)
        grouped: dict[str, list[dict]] = {
            role.value: [] for role in sorted(ROLE_HIERARCHY, key=lambda r: ROLE_HIERARCHY[r].level)
        }
        for member in leaders:
            grouped.setdefault(member.leadership_role, []).append(member.to_dict())
        return grouped

    # =========================================================================
    # Writes
    # =========================================================================

    def create_member(
        self,
        legal_name: str,
        district_code: Optional[str] = None,
        leadership_role: Optional[HierarchyRole] = None,
        reporting_to: Optional[int] = None,
        name: Optional[str] = None,
    ) -> int:
        with self._db.connect() as conn:
            cursor = conn.execute(
                """INSERT INTO devotees
                   (name, legal_name, district_code, leadership_role, reporting_to_devotee_id)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    name,
                    legal_name,
                    district_code,
                    leadership_role.value if leadership_role else None,
                    reporting_to,
                ),
            )
            return cursor.lastrowid

    def update_role(
        self,
        conn: sqlite3.Connection,
        member_id: int,
        role: Optional[HierarchyRole],
        reporting_to: Optional[int],
    ) -> None:
        conn.execute(
            """UPDATE devotees
               SET leadership_role = ?, reporting_to_devotee_id = ?, updated_at = CURRENT_TIMESTAMP
               WHERE id = ?""",
            (role.value if role else None, reporting_to, member_id),
        )

    def repoint(self, conn: sqlite3.Connection, member_ids: Iterable[int], supervisor_id: Optional[int]) -> int:
        """Point every member in `member_ids` at `supervisor_id`."""
        count = 0
        for member_id in member_ids:
            cursor = conn.execute(
                """UPDATE devotees
                   SET reporting_to_devotee_id = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE id = ?""",
                (supervisor_id, member_id),
            )
            count += cursor.rowcount
        return count

    # =========================================================================
    # History
    # =========================================================================

    def record_change(
        self,
        conn: sqlite3.Connection,
        devotee_id: int,
        previous_role: Optional[str],
        new_role: Optional[str],
        previous_reporting_to: Optional[int],
        new_reporting_to: Optional[int],
        changed_by: int,
        reason: str,
        district_code: Optional[str],
        subordinates_transferred: int = 0,
    ) -> int:
        cursor = conn.execute(
            """INSERT INTO role_change_history
               (devotee_id, previous_role, new_role, previous_reporting_to, new_reporting_to,
                changed_by, reason, district_code, subordinates_transferred)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                devotee_id,
                previous_role,
                new_role,
                previous_reporting_to,
                new_reporting_to,
                changed_by,
                reason,
                district_code,
                subordinates_transferred,
            ),
        )
        return cursor.lastrowid

    def role_history(self, devotee_id: int) -> list[dict]:
        with self._db.connect() as conn:
            rows = conn.execute(
                """SELECT id, devotee_id, previous_role, new_role, previous_reporting_to,
                          new_reporting_to, changed_by, reason, district_code,
                          subordinates_transferred, created_at
                   FROM role_change_history WHERE devotee_id = ? ORDER BY id DESC""",
                (devotee_id,),
            ).fetchall()
        return [dict(row) for row in rows]
