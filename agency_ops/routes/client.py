import logging
from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError
from agency_ops.models import db, Client, Idea
from agency_ops.models.client import CLIENT_STATUSES, CLIENT_TEXT_FIELDS, CLIENT_JSON_FIELDS
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.services.client_fields import (
    repair_client_fields,
    validate_json_field,
    checklist_progress
)
from agency_ops.utils.error_handling import (
    handle_validation_error,
    handle_database_error,
    handle_not_found_error,
    validate_required_fields,
    validate_json_body,
    handle_exception
)
from agency_ops.utils.validation import parse_choice

logger = logging.getLogger(__name__)

client_bp = Blueprint('client', __name__)

SORTABLE_FIELDS = {
    'created_at': Client.created_at,
    'name': Client.name,
    'status': Client.status,
}


def _serialize_repaired(client):
    data, repaired_fields = repair_client_fields(client.to_dict())
    data['repaired_fields'] = repaired_fields
    data['onboarding_progress'] = checklist_progress(data['onboarding_checklist'])
    return data


def _apply_field(client, field, value):
    """Set one client column, validating it on the way in."""
    if field in CLIENT_JSON_FIELDS:
        setattr(client, field, validate_json_field(field, value))
    elif field == 'status':
        client.status = parse_choice(value, CLIENT_STATUSES, 'status', 'active')
    elif field == 'name':
        if not value or not str(value).strip():
            raise ValueError("name can not be empty")
        client.name = str(value).strip()
    elif field in CLIENT_TEXT_FIELDS:
        setattr(client, field, value)
    else:
        raise ValueError(f"Unknown client field '{field}'")


@client_bp.route('/clients', methods=['POST'])
@invalidate_cache_on_change('clients')
def create_client():
    """Create a new client from a name and email."""
    try:
        data = request.get_json(silent=True)

        validation_error = validate_required_fields(data, ['name'])
        if validation_error:
            return validation_error

        client = Client(
            name=str(data['name']).strip(),
            email=data.get('email') or None,
            status='active'
        )
        db.session.add(client)
        db.session.commit()

        logger.info(f"Created client {client.id}")
        return jsonify({
            'message': 'Client created successfully',
            'client': client.to_dict()
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return handle_database_error(e, "client creation")
    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "client creation")


@client_bp.route('/clients', methods=['GET'])
@cache_response('clients')
def get_clients():
    """List clients with optional status filter, name search and sorting."""
    try:
        query = Client.query

        status = request.args.get('status')
        if status and status != 'all':
            query = query.filter(Client.status == status)

        search = request.args.get('q')
        if search:
            query = query.filter(Client.name.ilike(f"%{search}%"))

        sort = request.args.get('sort', 'created_at')
        if sort not in SORTABLE_FIELDS:
            return handle_validation_error(
                f"Invalid sort field '{sort}'",
                {'allowed': sorted(SORTABLE_FIELDS)}
            )
        column = SORTABLE_FIELDS[sort]
        order = request.args.get('order', 'desc').lower()
        query = query.order_by(column.asc() if order == 'asc' else column.desc())

        clients = query.all()
        return jsonify({
            'clients': [client.to_dict() for client in clients],
            'count': len(clients)
        }), 200

    except Exception as e:
        return handle_exception(e, "client listing")


@client_bp.route('/clients/<client_id>', methods=['GET'])
@cache_response('clients', key_args=['client_id'])
def get_client(client_id):
    """Get a client with its structured fields repaired for display."""
    try:
        client = db.session.get(Client, client_id)
        if not client:
            return handle_not_found_error("Client", client_id)

        return jsonify({
            'client': _serialize_repaired(client)
        }), 200
    except Exception as e:
        return handle_exception(e, "client retrieval")


@client_bp.route('/clients/<client_id>', methods=['PUT'])
@invalidate_cache_on_change('clients')
def update_client(client_id):
    """Update any subset of a client's columns."""
    try:
        client = db.session.get(Client, client_id)
        if not client:
            return handle_not_found_error("Client", client_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        for field, value in data.items():
            if field in ('id', 'created_at', 'repaired_fields', 'onboarding_progress'):
                continue
            _apply_field(client, field, value)

        db.session.commit()

        return jsonify({
            'message': 'Client updated successfully',
            'client': _serialize_repaired(client)
        }), 200

    except IntegrityError as e:
        db.session.rollback()
        return handle_database_error(e, "client update")
    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "client update")


@client_bp.route('/clients/<client_id>/fields/<field>', methods=['PATCH'])
@invalidate_cache_on_change('clients')
def patch_client_field(client_id, field):
    """Update a single client column from {"value": ...}."""
    try:
        client = db.session.get(Client, client_id)
        if not client:
            return handle_not_found_error("Client", client_id)

        data = request.get_json(silent=True)
        if not isinstance(data, dict) or 'value' not in data:
            return handle_validation_error("Request body must contain 'value'")

        _apply_field(client, field, data['value'])
        db.session.commit()

        return jsonify({
            'message': f'Client {field} updated successfully',
            'client': _serialize_repaired(client)
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "client field update")


@client_bp.route('/clients/<client_id>', methods=['DELETE'])
@invalidate_cache_on_change('clients')
def delete_client(client_id):
    """Delete a client."""
    try:
        client = db.session.get(Client, client_id)
        if not client:
            return handle_not_found_error("Client", client_id)

        db.session.delete(client)
        db.session.commit()

        logger.info(f"Deleted client {client_id}")
        return jsonify({
            'message': 'Client deleted successfully'
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "client deletion")


@client_bp.route('/clients/<client_id>/ideas', methods=['GET'])
def get_client_ideas(client_id):
    """List ideas recorded for a client."""
    try:
        client = db.session.get(Client, client_id)
        if not client:
            return handle_not_found_error("Client", client_id)

        ideas = Idea.query.filter_by(client_id=client_id).order_by(Idea.created_at.desc()).all()
        return jsonify({
            'ideas': [idea.to_dict() for idea in ideas]
        }), 200
    except Exception as e:
        return handle_exception(e, "idea listing")


@client_bp.route('/clients/<client_id>/ideas', methods=['POST'])
def create_client_idea(client_id):
    """Record an idea for a client."""
    try:
        client = db.session.get(Client, client_id)
        if not client:
            return handle_not_found_error("Client", client_id)

        data = request.get_json(silent=True)
        validation_error = validate_required_fields(data, ['idea'])
        if validation_error:
            return validation_error

        idea = Idea(client_id=client_id, idea=data['idea'], created_by=data.get('created_by'))
        db.session.add(idea)
        db.session.commit()

        return jsonify({
            'message': 'Idea created successfully',
            'idea': idea.to_dict()
        }), 201
    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "idea creation")


@client_bp.route('/ideas/<idea_id>', methods=['DELETE'])
def delete_idea(idea_id):
    """Delete an idea."""
    try:
        idea = db.session.get(Idea, idea_id)
        if not idea:
            return handle_not_found_error("Idea", idea_id)

        db.session.delete(idea)
        db.session.commit()

        return jsonify({
            'message': 'Idea deleted successfully'
        }), 200
    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "idea deletion")
