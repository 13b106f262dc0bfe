"""
Role transition validation.

Checks a RoleChangeRequest against the policy table. Problems accumulate
instead of short-circuiting so the caller can report every violation at once.
"""
import logging
from typing import Optional

from .policy import (
    ROLE_HIERARCHY,
    ChangeType,
    HierarchyRole,
    parse_change_type,
    parse_role,
)
from .types import RoleChangeRequest, ValidationResult

logger = logging.getLogger(__name__)


class TransitionValidator:
    """Decides whether a promote/demote/remove/replace is legal."""

    def validate(self, request: RoleChangeRequest) -> ValidationResult:
        result = ValidationResult()

        change_type = self._parse(parse_change_type, request.change_type, "change type", result)
        current = self._parse_role(request.current_role, "current", result)
        target = self._parse_role(request.target_role, "target", result)

        if change_type is None:
            return result

        if change_type is ChangeType.REMOVE:
            if request.current_role is None:
                result.add_error("Cannot remove role: devotee has no current role")
            return result

        if request.target_role is None:
            result.add_error(f"Target role is required for {change_type.value}")

        if request.current_role is None:
            if change_type in (ChangeType.PROMOTE, ChangeType.DEMOTE):
                verb = change_type.value.lower()
                result.add_error(f"Cannot {verb}: devotee has no current role")
            elif target is not None:
                result.add_warning(f"Assigning new role {target.value} to devotee")
            return result

        # Unknown roles were already reported; nothing more to compare
        if current is None or target is None:
            return result

        policy = ROLE_HIERARCHY[current]

        if change_type is ChangeType.PROMOTE:
            if target not in (policy.can_promote_to or ()):
                result.add_error(f"Cannot promote from {current.value} to {target.value}")

        elif change_type is ChangeType.DEMOTE:
            if target not in (policy.can_demote_to or ()):
                result.add_error(f"Cannot demote from {current.value} to {target.value}")

        elif change_type is ChangeType.REPLACE:
            # Any target is accepted; a change of level is flagged, not refused
            if ROLE_HIERARCHY[target].level != policy.level:
                result.add_warning(
                    f"Replacement changes hierarchy level: {current.value} "
                    f"(level {policy.level}) to {target.value} (level {ROLE_HIERARCHY[target].level})"
                )

        if not result.is_valid:
            logger.debug(f"Rejected {change_type.value} for devotee {request.member_id}: {result.errors}")
        return result

    @staticmethod
    def _parse(parser, value, label: str, result: ValidationResult):
        try:
            return parser(value)
        except ValueError:
            result.add_error(f"Invalid {label}: {value}")
            return None

    def _parse_role(self, value, label: str, result: ValidationResult) -> Optional[HierarchyRole]:
        if value is None:
            return None
        return self._parse(parse_role, value, f"{label} role", result)
