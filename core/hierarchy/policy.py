"""
Senapoti hierarchy policy table.

4-level leadership chain: Mala -> Maha Chakra -> Chakra -> Upa Chakra Senapoti.

The table is fixed at import time and exposed read-only. Roles are a closed
enum: callers holding raw strings go through parse_role(), which rejects
anything outside the table instead of coercing it.
"""
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

# The Mala Senapoti's supervisor is the district supervisor account, not a devotee
DISTRICT_SUPERVISOR = "DISTRICT_SUPERVISOR"


class HierarchyRole(str, Enum):
    MALA_SENAPOTI = "MALA_SENAPOTI"
    MAHA_CHAKRA_SENAPOTI = "MAHA_CHAKRA_SENAPOTI"
    CHAKRA_SENAPOTI = "CHAKRA_SENAPOTI"
    UPA_CHAKRA_SENAPOTI = "UPA_CHAKRA_SENAPOTI"


class ChangeType(str, Enum):
    PROMOTE = "PROMOTE"
    DEMOTE = "DEMOTE"
    REMOVE = "REMOVE"
    REPLACE = "REPLACE"


@dataclass(frozen=True)
class RolePolicy:
    """One row of the hierarchy table."""
    level: int
    reports_to: str
    can_promote_to: Optional[tuple[HierarchyRole, ...]]
    can_demote_to: Optional[tuple[HierarchyRole, ...]]
    manages: tuple[HierarchyRole, ...]


_R = HierarchyRole

ROLE_HIERARCHY: Mapping[HierarchyRole, RolePolicy] = MappingProxyType({
    _R.MALA_SENAPOTI: RolePolicy(
        level=1,
        reports_to=DISTRICT_SUPERVISOR,
        can_promote_to=None,  # top of the senapoti chain
        can_demote_to=(_R.MAHA_CHAKRA_SENAPOTI, _R.CHAKRA_SENAPOTI, _R.UPA_CHAKRA_SENAPOTI),
        manages=(_R.MAHA_CHAKRA_SENAPOTI,),
    ),
    _R.MAHA_CHAKRA_SENAPOTI: RolePolicy(
        level=2,
        reports_to=_R.MALA_SENAPOTI.value,
        can_promote_to=(_R.MALA_SENAPOTI,),
        can_demote_to=(_R.CHAKRA_SENAPOTI, _R.UPA_CHAKRA_SENAPOTI),
        manages=(_R.CHAKRA_SENAPOTI,),
    ),
    _R.CHAKRA_SENAPOTI: RolePolicy(
        level=3,
        reports_to=_R.MAHA_CHAKRA_SENAPOTI.value,
        can_promote_to=(_R.MAHA_CHAKRA_SENAPOTI,),
        can_demote_to=(_R.UPA_CHAKRA_SENAPOTI,),
        manages=(_R.UPA_CHAKRA_SENAPOTI,),
    ),
    _R.UPA_CHAKRA_SENAPOTI: RolePolicy(
        level=4,
        reports_to=_R.CHAKRA_SENAPOTI.value,
        can_promote_to=(_R.CHAKRA_SENAPOTI,),
        can_demote_to=None,  # a further demotion is a removal
        manages=(),
    ),
})


# =============================================================================
# Parsing
# =============================================================================

def parse_role(value: Union[str, HierarchyRole]) -> HierarchyRole:
    """Return the HierarchyRole for `value`.

    Raises:
        ValueError: `value` is not one of the four senapoti roles
    """
    if isinstance(value, HierarchyRole):
        return value
    try:
        return HierarchyRole(value)
    except ValueError:
        raise ValueError(f"Unknown hierarchy role: {value!r}") from None


def parse_change_type(value: Union[str, ChangeType]) -> ChangeType:
    """Return the ChangeType for `value` (ValueError when unknown)."""
    if isinstance(value, ChangeType):
        return value
    try:
        return ChangeType(value)
    except ValueError:
        raise ValueError(f"Unknown change type: {value!r}") from None


# =============================================================================
# Lookups
# =============================================================================

def get_policy(role: Union[str, HierarchyRole]) -> RolePolicy:
    return ROLE_HIERARCHY[parse_role(role)]


def expected_supervisor_role(role: Union[str, HierarchyRole]) -> str:
    """Role a member holding `role` reports to (may be DISTRICT_SUPERVISOR)."""
    return get_policy(role).reports_to


def subordinate_roles(role: Union[str, HierarchyRole]) -> tuple[HierarchyRole, ...]:
    return get_policy(role).manages


def valid_target_roles(
    current_role: Optional[Union[str, HierarchyRole]],
    change_type: Union[str, ChangeType],
) -> list[HierarchyRole]:
    """Roles a member may move to for the given change type."""
    change_type = parse_change_type(change_type)

    if change_type is ChangeType.REMOVE:
        return []

    if current_role is None:
        # Fresh assignment: any role, but only through REPLACE
        return list(HierarchyRole) if change_type is ChangeType.REPLACE else []

    policy = get_policy(current_role)
    if change_type is ChangeType.PROMOTE:
        return list(policy.can_promote_to or ())
    if change_type is ChangeType.DEMOTE:
        return list(policy.can_demote_to or ())
    return list(HierarchyRole)


def policy_table() -> list[dict]:
    """The table as plain dicts, ordered by level (for API responses)."""
    return [
        {
            "role": role.value,
            "level": policy.level,
            "reports_to": policy.reports_to,
            "can_promote_to": [r.value for r in policy.can_promote_to] if policy.can_promote_to else None,
            "can_demote_to": [r.value for r in policy.can_demote_to] if policy.can_demote_to else None,
            "manages": [r.value for r in policy.manages],
        }
        for role, policy in sorted(ROLE_HIERARCHY.items(), key=lambda item: item[1].level)
    ]
