"""
Hierarchy mutations.

Combines the pure checks (transitions, cycles, transfers) with the member
store. Every mutation reloads the reporting graph inside a BEGIN IMMEDIATE
transaction, validates against that snapshot and writes in the same
transaction, so two concurrent edits cannot both pass a cycle check that
only one of them would survive.

Usage:
    from core.hierarchy import HierarchyService, RoleChangeRequest

    service = HierarchyService(MemberStore(db))
    result = service.apply_change(
        RoleChangeRequest(member_id=7, change_type="PROMOTE",
                          current_role="CHAKRA_SENAPOTI",
                          target_role="MAHA_CHAKRA_SENAPOTI",
                          changed_by=principal.id),
        new_reporting_to_id=3,
    )
    if not result.is_valid:
        ...  # nothing was written
"""
import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional, Sequence

from core.errors import AuthorizationError, NotFoundError

from .cycles import CircularReferenceDetector
from .members import MemberStore
from .policy import ChangeType, HierarchyRole, parse_change_type, parse_role
from .transfers import SubordinateTransferPlanner
from .transitions import TransitionValidator
from .types import HierarchyMember, RoleChangeRequest, ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class _ChangePlan:
    """What apply_change will write once the checks pass."""
    member: HierarchyMember
    new_role: Optional[HierarchyRole] = None
    new_reporting_to: Optional[int] = None
    subordinates: list[HierarchyMember] = field(default_factory=list)
    subordinate_supervisor_id: Optional[int] = None


def _require_in_scope(members: Iterable[HierarchyMember], districts: Optional[Iterable[str]]) -> None:
    """Raise AuthorizationError if any member lies outside `districts` (None = all)."""
    if districts is None:
        return
    allowed = set(districts)
    outside = sorted(m.id for m in members if m.district_code not in allowed)
    if outside:
        raise AuthorizationError(
            f"Access denied: subordinate devotee(s) {outside} are outside your districts"
        )


class HierarchyService:
    """Validates and commits senapoti role changes."""

    def __init__(
        self,
        store: MemberStore,
        validator: Optional[TransitionValidator] = None,
        planner: Optional[SubordinateTransferPlanner] = None,
    ):
        self.store = store
        self.validator = validator or TransitionValidator()
        self.planner = planner or SubordinateTransferPlanner()

    # =========================================================================
    # Role changes
    # =========================================================================

    def validate_change(
        self,
        request: RoleChangeRequest,
        new_reporting_to_id: Optional[int] = None,
        subordinate_supervisor_id: Optional[int] = None,
        districts: Optional[Iterable[str]] = None,
    ) -> ValidationResult:
        """Dry run of apply_change. Nothing is written.

        Raises:
            NotFoundError: the devotee does not exist
            AuthorizationError: subordinates to move lie outside `districts`
        """
        with self.store.transaction() as conn:
            result, _ = self._check(
                conn, request, new_reporting_to_id, subordinate_supervisor_id, districts
            )
        return result

    def apply_change(
        self,
        request: RoleChangeRequest,
        new_reporting_to_id: Optional[int] = None,
        subordinate_supervisor_id: Optional[int] = None,
        districts: Optional[Iterable[str]] = None,
    ) -> ValidationResult:
        """Validate and commit a role change in one transaction.

        Args:
            request: the proposed change; `changed_by` is required
            new_reporting_to_id: supervisor the member reports to afterwards.
                None keeps the current edge, except for REMOVE which always
                clears it.
            subordinate_supervisor_id: where the member's direct reports move
                when the change orphans them
            districts: the caller's district scope (None = unrestricted);
                every subordinate that would move must lie inside it

        Returns:
            ValidationResult; when invalid, nothing was written.

        Raises:
            NotFoundError: the devotee does not exist
            AuthorizationError: subordinates to move lie outside `districts`
            ValueError: `request.changed_by` is missing
        """
        if request.changed_by is None:
            raise ValueError("changed_by is required to apply a role change")

        with self.store.transaction() as conn:
            result, plan = self._check(
                conn, request, new_reporting_to_id, subordinate_supervisor_id, districts
            )
            if not result.is_valid:
                logger.info(
                    f"Role change for devotee {request.member_id} rejected: {result.errors}"
                )
                return result

            member = plan.member
            transferred = 0
            if plan.subordinates:
                transferred = self.store.repoint(
                    conn, [s.id for s in plan.subordinates], plan.subordinate_supervisor_id
                )
                for subordinate in plan.subordinates:
                    self.store.record_change(
                        conn,
                        devotee_id=subordinate.id,
                        previous_role=subordinate.leadership_role,
                        new_role=subordinate.leadership_role,
                        previous_reporting_to=member.id,
                        new_reporting_to=plan.subordinate_supervisor_id,
                        changed_by=request.changed_by,
                        reason=request.reason or f"Supervisor {member.id} changed role",
                        district_code=subordinate.district_code,
                    )

            self.store.update_role(conn, member.id, plan.new_role, plan.new_reporting_to)
            self.store.record_change(
                conn,
                devotee_id=member.id,
                previous_role=member.leadership_role,
                new_role=plan.new_role.value if plan.new_role else None,
                previous_reporting_to=member.reporting_to_devotee_id,
                new_reporting_to=plan.new_reporting_to,
                changed_by=request.changed_by,
                reason=request.reason,
                district_code=member.district_code,
                subordinates_transferred=transferred,
            )

        logger.info(
            f"Devotee {member.id} {parse_change_type(request.change_type).value}: "
            f"{member.leadership_role} -> {plan.new_role.value if plan.new_role else None} "
            f"(by user {request.changed_by}, {transferred} subordinate(s) moved)"
        )
        return result

    def _check(
        self,
        conn: sqlite3.Connection,
        request: RoleChangeRequest,
        new_reporting_to_id: Optional[int],
        subordinate_supervisor_id: Optional[int],
        districts: Optional[Iterable[str]] = None,
    ) -> tuple[ValidationResult, Optional[_ChangePlan]]:
        member = self.store.get_member(request.member_id, conn)
        if member is None:
            raise NotFoundError(f"Devotee {request.member_id} not found")

        result = self.validator.validate(request)
        if not result.is_valid:
            return result, None

        # The request was built from a read that may now be stale
        if request.current_role != member.leadership_role:
            result.add_error(
                f"Current role mismatch: devotee holds {member.leadership_role}, "
                f"request assumes {request.current_role}"
            )
            return result, None

        change_type = parse_change_type(request.change_type)
        plan = _ChangePlan(member=member)
        if change_type is ChangeType.REMOVE:
            plan.new_role = None
            plan.new_reporting_to = None
        else:
            plan.new_role = parse_role(request.target_role)
            plan.new_reporting_to = (
                new_reporting_to_id if new_reporting_to_id is not None else member.reporting_to_devotee_id
            )

        graph = self.store.snapshot(conn)

        if plan.new_reporting_to is not None:
            if plan.new_reporting_to not in graph:
                result.add_error("New supervisor not found")
            else:
                result.merge(CircularReferenceDetector(graph).detect(member.id, plan.new_reporting_to))

        if self.planner.requires_transfer(member.leadership_role, change_type):
            subordinates = self.store.direct_subordinates(member.id, conn)
            if subordinates:
                _require_in_scope(subordinates, districts)
                new_supervisor = (
                    self.store.get_member(subordinate_supervisor_id, conn)
                    if subordinate_supervisor_id is not None else None
                )
                # Subordinates are checked against the graph as it will be after the change
                detector = CircularReferenceDetector(graph.with_edge(member.id, plan.new_reporting_to))
                result.merge(self.planner.validate_transfer(
                    member.id,
                    subordinates,
                    new_supervisor,
                    change_type,
                    detector,
                    new_supervisor_id=subordinate_supervisor_id,
                ))
                plan.subordinates = subordinates
                plan.subordinate_supervisor_id = subordinate_supervisor_id

        return result, plan

    # =========================================================================
    # Subordinate transfer
    # =========================================================================

    def transfer_subordinates(
        self,
        from_id: int,
        to_id: int,
        subordinate_ids: Optional[Sequence[int]],
        reason: str,
        changed_by: int,
        districts: Optional[Iterable[str]] = None,
    ) -> ValidationResult:
        """Move direct reports of `from_id` under `to_id`.

        Args:
            subordinate_ids: which reports to move; None moves all of them
            districts: the caller's district scope (None = unrestricted)

        Raises:
            NotFoundError: `from_id` does not exist
            AuthorizationError: a report to move lies outside `districts`
        """
        with self.store.transaction() as conn:
            source = self.store.get_member(from_id, conn)
            if source is None:
                raise NotFoundError(f"Devotee {from_id} not found")

            result = ValidationResult()
            current = {s.id: s for s in self.store.direct_subordinates(from_id, conn)}

            if subordinate_ids is None:
                moving = list(current.values())
            else:
                moving = []
                for sub_id in subordinate_ids:
                    if sub_id not in current:
                        result.add_error(f"Devotee {sub_id} does not report to devotee {from_id}")
                    else:
                        moving.append(current[sub_id])

            if not moving and result.is_valid:
                result.add_error(f"Devotee {from_id} has no subordinates to transfer")
            if not result.is_valid:
                return result
            _require_in_scope(moving, districts)

            target = self.store.get_member(to_id, conn)
            detector = CircularReferenceDetector(self.store.snapshot(conn))
            result.merge(self.planner.validate_transfer(
                from_id, moving, target, ChangeType.REPLACE, detector, new_supervisor_id=to_id
            ))
            if not result.is_valid:
                return result

            self.store.repoint(conn, [s.id for s in moving], to_id)
            for subordinate in moving:
                self.store.record_change(
                    conn,
                    devotee_id=subordinate.id,
                    previous_role=subordinate.leadership_role,
                    new_role=subordinate.leadership_role,
                    previous_reporting_to=from_id,
                    new_reporting_to=to_id,
                    changed_by=changed_by,
                    reason=reason,
                    district_code=subordinate.district_code,
                )

        logger.info(f"Moved {len(moving)} subordinate(s) from devotee {from_id} to {to_id} (by user {changed_by})")
        return result
