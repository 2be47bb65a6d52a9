"""
Resources attached to a work: team members or outside vendors, with a rate.
"""

from flask import request, jsonify
from agency_ops.models import db, Work, WorkResource, TeamMember
from agency_ops.routes.work import work_bp
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.utils.error_handling import (
    handle_validation_error,
    handle_not_found_error,
    validate_required_fields,
    validate_json_body,
    handle_exception
)
from agency_ops.utils.validation import parse_amount
import logging

logger = logging.getLogger(__name__)


def _get_resource(work_id, resource_id):
    resource = db.session.get(WorkResource, resource_id)
    if not resource or resource.work_id != work_id:
        return None
    return resource


def _resolve_team_member(value):
    if not value:
        return None
    if not db.session.get(TeamMember, value):
        raise ValueError(f"Team member {value} not found")
    return value


@work_bp.route('/works/<work_id>/resources', methods=['GET'])
@cache_response('works', key_args=['work_id'])
def list_work_resources(work_id):
    try:
        work = db.session.get(Work, work_id)
        if not work:
            return handle_not_found_error("Work", work_id)

        return jsonify({
            'work_id': work_id,
            'resources': [resource.to_dict() for resource in work.resources]
        }), 200
    except Exception as e:
        return handle_exception(e, "resource listing")


@work_bp.route('/works/<work_id>/resources', methods=['POST'])
@invalidate_cache_on_change('works')
def create_work_resource(work_id):
    """Attach a resource to a work."""
    try:
        if not db.session.get(Work, work_id):
            return handle_not_found_error("Work", work_id)

        data = request.get_json(silent=True)
        validation_error = validate_required_fields(data, ['name'])
        if validation_error:
            return validation_error

        resource = WorkResource(
            work_id=work_id,
            team_member_id=_resolve_team_member(data.get('team_member_id')),
            name=str(data['name']).strip(),
            role=data.get('role') or None,
            contact_info=data.get('contact_info') or None,
            rate=parse_amount(data.get('rate'), 'rate', allow_none=True),
            notes=data.get('notes') or None
        )
        db.session.add(resource)
        db.session.commit()

        return jsonify({
            'message': 'Resource created successfully',
            'resource': resource.to_dict()
        }), 201

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "resource creation")


@work_bp.route('/works/<work_id>/resources/<resource_id>', methods=['PUT'])
@invalidate_cache_on_change('works')
def update_work_resource(work_id, resource_id):
    try:
        resource = _get_resource(work_id, resource_id)
        if not resource:
            return handle_not_found_error("Resource", resource_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        if 'name' in data:
            if not data['name'] or not str(data['name']).strip():
                return handle_validation_error("name can not be empty")
            resource.name = str(data['name']).strip()
        if 'team_member_id' in data:
            resource.team_member_id = _resolve_team_member(data['team_member_id'])
        if 'role' in data:
            resource.role = data['role'] or None
        if 'contact_info' in data:
            resource.contact_info = data['contact_info'] or None
        if 'rate' in data:
            resource.rate = parse_amount(data['rate'], 'rate', allow_none=True)
        if 'notes' in data:
            resource.notes = data['notes'] or None

        db.session.commit()

        return jsonify({
            'message': 'Resource updated successfully',
            'resource': resource.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "resource update")


@work_bp.route('/works/<work_id>/resources/<resource_id>', methods=['DELETE'])
@invalidate_cache_on_change('works')
def delete_work_resource(work_id, resource_id):
    """Remove a resource; its expenses stay on the work without a resource."""
    try:
        resource = _get_resource(work_id, resource_id)
        if not resource:
            return handle_not_found_error("Resource", resource_id)

        for expense in resource.work.expenses:
            if expense.resource_id == resource.id:
                expense.resource_id = None

        db.session.delete(resource)
        db.session.commit()

        logger.info(f"Deleted resource {resource_id} from work {work_id}")
        return jsonify({
            'message': 'Resource deleted successfully'
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "resource deletion")
