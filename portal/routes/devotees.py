"""
Devotee read endpoints, filtered by the caller's district scope.
"""

from flask import Blueprint, current_app, g, jsonify, request

from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.hierarchy import parse_role
from portal.auth.decorators import district_scoped

devotees_bp = Blueprint('devotees', __name__, url_prefix='/api/devotees')


@devotees_bp.route('', methods=['GET'])
@district_scoped
def list_devotees():
    """List devotees visible to the caller.

    Query params:
        district: district code filter (ignored for district supervisors,
            who always see exactly their own districts)
        role: senapoti role filter
    """
    requested = request.args.get('district')
    districts = g.query_constraint.effective_districts([requested] if requested else None)

    role = request.args.get('role')
    if role:
        try:
            role = parse_role(role)
        except ValueError as e:
            raise ValidationError(str(e)) from None

    members = current_app.extensions["member_store"].list_members(
        districts=districts, role=role or None
    )
    return jsonify({"devotees": [m.to_dict() for m in members]})


@devotees_bp.route('/<int:devotee_id>', methods=['GET'])
@district_scoped
def get_devotee(devotee_id):
    """Single devotee; 403 when it lies outside the caller's districts."""
    member = current_app.extensions["member_store"].get_member(devotee_id)
    if member is None:
        raise NotFoundError(f"Devotee {devotee_id} not found")
    if not g.query_constraint.allows(member.district_code):
        raise AuthorizationError("Access denied: devotee is outside your districts")
    return jsonify({"devotee": member.to_dict()})
