"""
Subordinate transfer planning.

When a member who manages a level changes role (or loses it), their direct
reports must be re-pointed before the change is committed. The planner only
flags and validates that requirement; carrying out the reassignment is the
caller's step (HierarchyService.transfer_subordinates).
"""
from typing import Optional, Sequence, Union

from .cycles import CircularReferenceDetector
from .policy import ROLE_HIERARCHY, ChangeType, HierarchyRole, parse_change_type, parse_role
from .types import HierarchyMember, ValidationResult


class SubordinateTransferPlanner:
    """Decides when a role change orphans subordinates."""

    def requires_transfer(
        self,
        current_role: Optional[Union[str, HierarchyRole]],
        change_type: Union[str, ChangeType],
    ) -> bool:
        if current_role is None:
            return False
        manages = ROLE_HIERARCHY[parse_role(current_role)].manages
        return bool(manages) and parse_change_type(change_type) in (
            ChangeType.PROMOTE,
            ChangeType.DEMOTE,
            ChangeType.REMOVE,
            ChangeType.REPLACE,
        )

    def validate_transfer(
        self,
        member_id: int,
        subordinates: Sequence[HierarchyMember],
        new_supervisor: Optional[HierarchyMember],
        change_type: Union[str, ChangeType],
        detector: CircularReferenceDetector,
        new_supervisor_id: Optional[int] = None,
    ) -> ValidationResult:
        """Check that `subordinates` of `member_id` can move to `new_supervisor`.

        Args:
            member_id: the member whose reports are being moved
            subordinates: current direct reports of `member_id`
            new_supervisor: the member they would move to (None if not found)
            change_type: the role change that triggers the transfer
            detector: cycle detector over a consistent snapshot
            new_supervisor_id: id the caller asked for, when `new_supervisor`
                could not be loaded
        """
        result = ValidationResult()

        if not subordinates:
            return result

        target_id = new_supervisor.id if new_supervisor else new_supervisor_id
        if target_id is None:
            if parse_change_type(change_type) is ChangeType.REMOVE:
                result.add_error(
                    f"Cannot remove role: {len(subordinates)} subordinates need to be "
                    f"transferred to another supervisor"
                )
            else:
                result.add_error(
                    f"Role change requires subordinate transfer: {len(subordinates)} "
                    f"subordinates need new supervisor"
                )
            return result

        if new_supervisor is None:
            result.add_error("New supervisor not found")
            return result

        if not new_supervisor.leadership_role:
            result.add_error("New supervisor must have a leadership role")
            return result

        if new_supervisor.id == member_id:
            result.add_error("Subordinates cannot be transferred to the devotee whose role is changing")
            return result

        for subordinate in subordinates:
            check = detector.detect(subordinate.id, new_supervisor.id)
            if not check.is_valid:
                result.add_error(
                    f"Circular reference detected for subordinate {subordinate.display_name}: "
                    f"{', '.join(check.errors)}"
                )

        result.add_warning(
            f"{len(subordinates)} subordinate(s) will be transferred: "
            f"{', '.join(s.display_name for s in subordinates)}"
        )
        return result
