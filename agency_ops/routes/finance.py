import logging
from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError
from agency_ops.models import db, Finance, Client
from agency_ops.models.finance import FINANCE_TYPES, FINANCE_STATUSES
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.services.finance_summary import summarize_finances
from agency_ops.utils.error_handling import (
    handle_validation_error,
    handle_database_error,
    handle_not_found_error,
    validate_required_fields,
    validate_json_body,
    handle_exception
)
from agency_ops.utils.validation import parse_amount, parse_choice, parse_date

logger = logging.getLogger(__name__)

finance_bp = Blueprint('finance', __name__)


def _filtered_query():
    query = Finance.query
    for field in ('client_id', 'type', 'status'):
        value = request.args.get(field)
        if value and value != 'all':
            query = query.filter(getattr(Finance, field) == value)
    return query


def _require_client(client_id):
    if not db.session.get(Client, client_id):
        raise ValueError(f"Client {client_id} does not exist")
    return client_id


@finance_bp.route('/finances', methods=['POST'])
@invalidate_cache_on_change('finances')
def create_finance():
    """Record an invoice, payment or expense for a client."""
    try:
        data = request.get_json(silent=True)

        validation_error = validate_required_fields(data, ['client_id', 'amount', 'type'])
        if validation_error:
            return validation_error

        record = Finance(
            client_id=_require_client(data['client_id']),
            amount=parse_amount(data['amount']),
            type=parse_choice(data['type'], FINANCE_TYPES, 'type'),
            status=parse_choice(data.get('status'), FINANCE_STATUSES, 'status', 'pending'),
            due_date=parse_date(data.get('due_date'), 'due_date'),
            description=data.get('description'),
            created_by=data.get('created_by')
        )
        db.session.add(record)
        db.session.commit()

        logger.info(f"Created {record.type} {record.id} for client {record.client_id}")
        return jsonify({
            'message': 'Finance record created successfully',
            'finance': record.to_dict()
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return handle_database_error(e, "finance creation")
    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "finance creation")


@finance_bp.route('/finances', methods=['GET'])
@cache_response('finances')
def get_finances():
    """List finance records with client names and the summary tiles."""
    try:
        records = _filtered_query().order_by(Finance.created_at.desc()).all()
        return jsonify({
            'finances': [record.to_dict() for record in records],
            'summary': summarize_finances(records),
            'count': len(records)
        }), 200
    except Exception as e:
        return handle_exception(e, "finance listing")


@finance_bp.route('/finances/summary', methods=['GET'])
@cache_response('finances')
def get_finance_summary():
    """Summary tiles, optionally scoped to one client."""
    try:
        client_id = request.args.get('client_id')
        if client_id and not db.session.get(Client, client_id):
            return handle_not_found_error("Client", client_id)

        records = _filtered_query().all()
        return jsonify({
            'client_id': client_id,
            'summary': summarize_finances(records)
        }), 200
    except Exception as e:
        return handle_exception(e, "finance summary")


@finance_bp.route('/finances/<finance_id>', methods=['GET'])
@cache_response('finances', key_args=['finance_id'])
def get_finance(finance_id):
    """Get a specific finance record."""
    try:
        record = db.session.get(Finance, finance_id)
        if not record:
            return handle_not_found_error("Finance record", finance_id)

        return jsonify({
            'finance': record.to_dict()
        }), 200
    except Exception as e:
        return handle_exception(e, "finance retrieval")


@finance_bp.route('/finances/<finance_id>', methods=['PUT'])
@invalidate_cache_on_change('finances')
def update_finance(finance_id):
    """Update a finance record."""
    try:
        record = db.session.get(Finance, finance_id)
        if not record:
            return handle_not_found_error("Finance record", finance_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        if 'client_id' in data:
            if not data['client_id']:
                return handle_validation_error("client_id is required")
            record.client_id = _require_client(data['client_id'])
        if 'amount' in data:
            record.amount = parse_amount(data['amount'])
        if 'type' in data:
            record.type = parse_choice(data['type'], FINANCE_TYPES, 'type', record.type)
        if 'status' in data:
            record.status = parse_choice(data['status'], FINANCE_STATUSES, 'status', record.status)
        if 'due_date' in data:
            record.due_date = parse_date(data['due_date'], 'due_date')
        if 'description' in data:
            record.description = data['description']

        db.session.commit()

        return jsonify({
            'message': 'Finance record updated successfully',
            'finance': record.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "finance update")


@finance_bp.route('/finances/<finance_id>', methods=['DELETE'])
@invalidate_cache_on_change('finances')
def delete_finance(finance_id):
    """Delete a finance record."""
    try:
        record = db.session.get(Finance, finance_id)
        if not record:
            return handle_not_found_error("Finance record", finance_id)

        db.session.delete(record)
        db.session.commit()

        return jsonify({
            'message': 'Finance record deleted successfully'
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "finance deletion")
