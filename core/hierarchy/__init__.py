"""
Senapoti leadership hierarchy.

Pure pieces (no database):
- policy: the role table and enums
- transitions: promote/demote/remove/replace legality
- cycles: circular reporting detection over a ReportingGraph
- transfers: when a change orphans subordinates

Store-backed pieces:
- members: MemberStore
- service: HierarchyService (validate + commit in one transaction)
"""
from .cycles import CircularReferenceDetector, ReportingGraph, SnapshotGraph
from .members import MemberStore
from .policy import (
    DISTRICT_SUPERVISOR,
    ROLE_HIERARCHY,
    ChangeType,
    HierarchyRole,
    RolePolicy,
    expected_supervisor_role,
    get_policy,
    parse_change_type,
    parse_role,
    policy_table,
    subordinate_roles,
    valid_target_roles,
)
from .service import HierarchyService
from .transfers import SubordinateTransferPlanner
from .transitions import TransitionValidator
from .types import HierarchyMember, RoleChangeRequest, ValidationResult

__all__ = [
    "CircularReferenceDetector",
    "ReportingGraph",
    "SnapshotGraph",
    "MemberStore",
    "DISTRICT_SUPERVISOR",
    "ROLE_HIERARCHY",
    "ChangeType",
    "HierarchyRole",
    "RolePolicy",
    "expected_supervisor_role",
    "get_policy",
    "parse_change_type",
    "parse_role",
    "policy_table",
    "subordinate_roles",
    "valid_target_roles",
    "HierarchyService",
    "SubordinateTransferPlanner",
    "TransitionValidator",
    "HierarchyMember",
    "RoleChangeRequest",
    "ValidationResult",
]
