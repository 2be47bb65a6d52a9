import logging
from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError
from agency_ops.models import db, TeamMember, WorkResource
from agency_ops.models.team_member import TEAM_MEMBER_STATUSES
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.utils.error_handling import (
    handle_validation_error,
    handle_database_error,
    handle_not_found_error,
    validate_required_fields,
    validate_json_body,
    handle_exception
)
from agency_ops.utils.validation import parse_amount, parse_choice, parse_skills

logger = logging.getLogger(__name__)

team_bp = Blueprint('team', __name__)


@team_bp.route('/team-members', methods=['POST'])
@invalidate_cache_on_change('team_members')
def create_team_member():
    """Add a team member."""
    try:
        data = request.get_json(silent=True)

        validation_error = validate_required_fields(data, ['name'])
        if validation_error:
            return validation_error

        hourly_rate = parse_amount(data.get('hourly_rate'), 'hourly_rate', allow_none=True)
        member = TeamMember(
            name=str(data['name']).strip(),
            email=data.get('email') or None,
            role=data.get('role') or None,
            skills=parse_skills(data.get('skills')),
            hourly_rate=hourly_rate if hourly_rate is not None else 0,
            status=parse_choice(data.get('status'), TEAM_MEMBER_STATUSES, 'status', 'active'),
            created_by=data.get('created_by')
        )
        db.session.add(member)
        db.session.commit()

        logger.info(f"Created team member {member.id}")
        return jsonify({
            'message': 'Team member created successfully',
            'team_member': member.to_dict()
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return handle_database_error(e, "team member creation")
    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "team member creation")


@team_bp.route('/team-members', methods=['GET'])
@cache_response('team_members')
def get_team_members():
    """List team members ordered by name."""
    try:
        query = TeamMember.query

        status = request.args.get('status')
        if status and status != 'all':
            query = query.filter(TeamMember.status == status)

        members = query.order_by(TeamMember.name.asc()).all()
        return jsonify({
            'team_members': [member.to_dict() for member in members],
            'count': len(members)
        }), 200
    except Exception as e:
        return handle_exception(e, "team member listing")


@team_bp.route('/team-members/<member_id>', methods=['GET'])
@cache_response('team_members', key_args=['member_id'])
def get_team_member(member_id):
    try:
        member = db.session.get(TeamMember, member_id)
        if not member:
            return handle_not_found_error("Team member", member_id)

        return jsonify({
            'team_member': member.to_dict()
        }), 200
    except Exception as e:
        return handle_exception(e, "team member retrieval")


@team_bp.route('/team-members/<member_id>', methods=['PUT'])
@invalidate_cache_on_change('team_members')
def update_team_member(member_id):
    """Update a team member."""
    try:
        member = db.session.get(TeamMember, member_id)
        if not member:
            return handle_not_found_error("Team member", member_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        if 'name' in data:
            if not data['name'] or not str(data['name']).strip():
                return handle_validation_error("name can not be empty")
            member.name = str(data['name']).strip()
        if 'email' in data:
            member.email = data['email'] or None
        if 'role' in data:
            member.role = data['role'] or None
        if 'skills' in data:
            member.skills = parse_skills(data['skills'])
        if 'hourly_rate' in data:
            hourly_rate = parse_amount(data['hourly_rate'], 'hourly_rate', allow_none=True)
            member.hourly_rate = hourly_rate if hourly_rate is not None else 0
        if 'status' in data:
            member.status = parse_choice(data['status'], TEAM_MEMBER_STATUSES, 'status', member.status)

        db.session.commit()

        return jsonify({
            'message': 'Team member updated successfully',
            'team_member': member.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "team member update")


@team_bp.route('/team-members/<member_id>', methods=['DELETE'])
@invalidate_cache_on_change('team_members')
def delete_team_member(member_id):
    """Delete a team member; their tasks and work resources keep no reference."""
    try:
        member = db.session.get(TeamMember, member_id)
        if not member:
            return handle_not_found_error("Team member", member_id)

        # Tasks are unassigned through the backref; resources only hold a plain link
        for resource in WorkResource.query.filter_by(team_member_id=member.id).all():
            resource.team_member_id = None

        db.session.delete(member)
        db.session.commit()

        logger.info(f"Deleted team member {member_id}")
        return jsonify({
            'message': 'Team member deleted successfully'
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "team member deletion")
