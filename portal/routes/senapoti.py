"""
Senapoti leadership hierarchy endpoints.

Read endpoints are open to any authenticated user within their district
scope. Mutations (role changes, subordinate transfers) are open to ADMIN,
OFFICE and DISTRICT_SUPERVISOR; supervisors may only touch devotees in
their own districts.

Hierarchy rule violations are answered with 400 {errors, warnings}.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.hierarchy import (
    RoleChangeRequest,
    parse_change_type,
    parse_role,
    policy_table,
    valid_target_roles,
)
from portal.auth.decorators import district_scoped, role_required
from portal.auth.types import PortalRole

logger = logging.getLogger(__name__)

senapoti_bp = Blueprint('senapoti', __name__, url_prefix='/api/senapoti')

MUTATING_ROLES = (PortalRole.ADMIN, PortalRole.OFFICE, PortalRole.DISTRICT_SUPERVISOR)
MAX_REASON_LENGTH = 500


# =============================================================================
# Helpers
# =============================================================================

def _store():
    return current_app.extensions["member_store"]


def _service():
    return current_app.extensions["hierarchy_service"]


def _scoped_member(devotee_id):
    """Load a devotee the caller may act on (404 / 403 otherwise)."""
    member = _store().get_member(devotee_id)
    if member is None:
        raise NotFoundError(f"Devotee {devotee_id} not found")
    if not g.query_constraint.allows(member.district_code):
        raise AuthorizationError("Access denied: devotee is outside your districts")
    return member


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


def _optional_int(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def _reason(data: dict) -> str:
    reason = data.get("reason") or ""
    if not isinstance(reason, str):
        raise ValidationError("reason must be a string")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason exceeds {MAX_REASON_LENGTH} characters")
    return reason


def _rejected(result):
    return jsonify({"errors": result.errors, "warnings": result.warnings}), 400


def _change_request(member, data: dict) -> tuple[RoleChangeRequest, dict]:
    """Build a RoleChangeRequest plus the edge arguments from a JSON body."""
    change_type = data.get("change_type")
    if not isinstance(change_type, str):
        raise ValidationError("change_type is required")

    target_role = data.get("target_role")
    if target_role is not None and not isinstance(target_role, str):
        raise ValidationError("target_role must be a string")

    # Clients may send the role they saw; the service refuses a stale one
    current_role = data.get("current_role", member.leadership_role)

    new_reporting_to_id = _optional_int(data, "new_reporting_to_id")
    subordinate_supervisor_id = _optional_int(data, "subordinate_supervisor_id")
    for other_id in (new_reporting_to_id, subordinate_supervisor_id):
        if other_id is not None and _store().get_member(other_id) is not None:
            _scoped_member(other_id)

    change = RoleChangeRequest(
        member_id=member.id,
        change_type=change_type,
        current_role=current_role,
        target_role=target_role,
        reason=_reason(data),
        changed_by=g.principal.id,
    )
    return change, {
        "new_reporting_to_id": new_reporting_to_id,
        "subordinate_supervisor_id": subordinate_supervisor_id,
    }


# =============================================================================
# Policy
# =============================================================================

@senapoti_bp.route('/roles', methods=['GET'])
@role_required(*MUTATING_ROLES)
def get_roles():
    """The hierarchy policy table, top level first."""
    return jsonify({"roles": policy_table()})


@senapoti_bp.route('/valid-targets', methods=['GET'])
@role_required(*MUTATING_ROLES)
def get_valid_targets():
    """Roles reachable from current_role with change_type."""
    current_role = request.args.get('current_role') or None
    change_type = request.args.get('change_type')
    if not change_type:
        raise ValidationError("change_type is required")
    try:
        targets = valid_target_roles(
            parse_role(current_role) if current_role else None,
            parse_change_type(change_type),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from None
    return jsonify({"valid_targets": [r.value for r in targets]})


# =============================================================================
# Role changes
# =============================================================================

@senapoti_bp.route('/validate', methods=['POST'])
@role_required(*MUTATING_ROLES)
@district_scoped
def validate_role_change():
    """Dry-run a role change; nothing is written."""
    data = _json_body()
    devotee_id = _optional_int(data, "devotee_id")
    if devotee_id is None:
        raise ValidationError("devotee_id is required")

    member = _scoped_member(devotee_id)
    change, edges = _change_request(member, data)
    result = _service().validate_change(change, districts=g.query_constraint.districts, **edges)
    return jsonify(result.to_dict())


@senapoti_bp.route('/devotees/<int:devotee_id>/role-change', methods=['POST'])
@role_required(*MUTATING_ROLES)
@district_scoped
def change_role(devotee_id):
    """Validate and commit a promote/demote/remove/replace."""
    member = _scoped_member(devotee_id)
    change, edges = _change_request(member, _json_body())

    result = _service().apply_change(change, districts=g.query_constraint.districts, **edges)
    if not result.is_valid:
        return _rejected(result)

    updated = _store().get_member(devotee_id)
    return jsonify({
        "message": "Role change applied",
        "devotee": updated.to_dict(),
        "warnings": result.warnings,
    })


@senapoti_bp.route('/transfer-subordinates', methods=['POST'])
@role_required(*MUTATING_ROLES)
@district_scoped
def transfer_subordinates():
    """Move direct reports from one supervisor to another."""
    data = _json_body()
    from_id = _optional_int(data, "from_devotee_id")
    to_id = _optional_int(data, "to_devotee_id")
    if from_id is None or to_id is None:
        raise ValidationError("from_devotee_id and to_devotee_id are required")

    subordinate_ids = data.get("subordinate_ids")
    if subordinate_ids is not None and (
        not isinstance(subordinate_ids, list)
        or not all(isinstance(i, int) and not isinstance(i, bool) for i in subordinate_ids)
    ):
        raise ValidationError("subordinate_ids must be a list of integers")

    _scoped_member(from_id)
    if _store().get_member(to_id) is not None:
        _scoped_member(to_id)

    result = _service().transfer_subordinates(
        from_id, to_id, subordinate_ids, _reason(data), g.principal.id,
        districts=g.query_constraint.districts,
    )
    if not result.is_valid:
        return _rejected(result)
    return jsonify({"message": "Subordinates transferred", "warnings": result.warnings})


# =============================================================================
# Reads
# =============================================================================

@senapoti_bp.route('/devotees/<int:devotee_id>/subordinates', methods=['GET'])
@district_scoped
def get_subordinates(devotee_id):
    """Direct reports, or the whole subtree with ?all=true."""
    _scoped_member(devotee_id)
    # Reporting edges may cross districts; only in-scope rows are returned
    districts = g.query_constraint.effective_districts()
    if request.args.get('all', '').lower() == 'true':
        subtree = _store().all_subordinates(devotee_id, districts=districts)
        return jsonify({"subordinates": [dict(m.to_dict(), depth=d) for m, d in subtree]})
    direct = _store().direct_subordinates(devotee_id, districts=districts)
    return jsonify({"subordinates": [m.to_dict() for m in direct]})


@senapoti_bp.route('/available-supervisors', methods=['GET'])
@district_scoped
def get_available_supervisors():
    """Devotees a holder of target_role in a district could report to.

    Query params:
        district: district code (required, must be within the caller's scope)
        target_role: the role being assigned
        exclude_id: devotee being changed, left out of the candidates
    """
    district_code = request.args.get('district')
    target_role = request.args.get('target_role')
    if not district_code or not target_role:
        raise ValidationError("district and target_role are required")
    if not g.query_constraint.allows(district_code):
        raise AuthorizationError("Access denied: district is outside your districts")

    exclude_id = request.args.get('exclude_id', type=int)
    try:
        supervisors = _store().available_supervisors(district_code, target_role, exclude_id)
    except ValueError as e:
        raise ValidationError(str(e)) from None
    return jsonify({"supervisors": supervisors})


@senapoti_bp.route('/devotees/<int:devotee_id>/history', methods=['GET'])
@district_scoped
def get_history(devotee_id):
    """Role change history, newest first."""
    _scoped_member(devotee_id)
    return jsonify({"history": _store().role_history(devotee_id)})


@senapoti_bp.route('/district/<district_code>', methods=['GET'])
@district_scoped
def get_district_hierarchy(district_code):
    """Leaders of one district grouped by role."""
    if not g.query_constraint.allows(district_code):
        raise AuthorizationError("Access denied: district is outside your districts")
    return jsonify({
        "district_code": district_code,
        "hierarchy": _store().district_hierarchy(district_code),
    })
