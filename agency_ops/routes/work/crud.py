"""
Basic CRUD operations for works.

This module contains the core work endpoints:
- Create work
- List works
- Get work details (with resources, expenses and documents)
- Update work
- Delete work (cascades to its child rows)
- Budget report and reconciliation
"""

from flask import request, jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from agency_ops.models import db, Work, Client
from agency_ops.models.work import WORK_STATUSES
from agency_ops.routes.work import work_bp
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.services.work_budget import budget_report, reconcile_budget
from agency_ops.utils.error_handling import (
    handle_validation_error,
    handle_database_error,
    handle_not_found_error,
    handle_business_logic_error,
    validate_required_fields,
    validate_json_body,
    handle_exception
)
from agency_ops.utils.validation import parse_amount, parse_choice, parse_date
import logging

logger = logging.getLogger(__name__)


def _resolve_client(client_id):
    if not client_id:
        return None
    if not db.session.get(Client, client_id):
        raise ValueError(f"Client {client_id} does not exist")
    return client_id


def _set_total_budget(work, value):
    """Change total_budget while keeping the amount already spent."""
    new_total = parse_amount(value, 'total_budget', allow_none=True)
    if new_total is None:
        work.total_budget = None
        work.remaining_budget = None
        return

    if work.total_budget is None or work.remaining_budget is None:
        spent = sum(float(e.amount or 0) for e in work.expenses)
    else:
        spent = float(work.total_budget) - float(work.remaining_budget)
    work.total_budget = new_total
    work.remaining_budget = round(new_total - spent, 2)


def _work_detail(work):
    data = work.to_dict()
    data['resources'] = [resource.to_dict() for resource in work.resources]
    data['expenses'] = [expense.to_dict() for expense in work.expenses]
    data['documents'] = [document.to_dict() for document in work.documents]
    return data


@work_bp.route('/works', methods=['POST'])
@invalidate_cache_on_change('works')
def create_work():
    """Create a new work; remaining budget starts at the total budget."""
    try:
        data = request.get_json(silent=True)

        validation_error = validate_required_fields(data, ['title'])
        if validation_error:
            return validation_error

        total_budget = parse_amount(data.get('total_budget'), 'total_budget', allow_none=True)
        work = Work(
            title=str(data['title']).strip(),
            description=data.get('description') or None,
            client_id=_resolve_client(data.get('client_id')),
            status=parse_choice(data.get('status'), WORK_STATUSES, 'status', 'planned'),
            start_date=parse_date(data.get('start_date'), 'start_date'),
            deadline=parse_date(data.get('deadline'), 'deadline'),
            completion_date=parse_date(data.get('completion_date'), 'completion_date'),
            total_budget=total_budget,
            remaining_budget=total_budget
        )

        db.session.add(work)
        db.session.commit()

        logger.info(f"Created work {work.id} with budget {total_budget}")
        return jsonify({
            'message': 'Work created successfully',
            'work': work.to_dict()
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return handle_database_error(e, "work creation")
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating work: {str(e)}")
        return handle_exception(e, "work creation")


@work_bp.route('/works', methods=['GET'])
@cache_response('works')
def list_works():
    """List works with their client names, newest first."""
    try:
        query = Work.query

        status = request.args.get('status')
        if status and status != 'all':
            query = query.filter(Work.status == status)

        client_id = request.args.get('client_id')
        if client_id:
            query = query.filter(Work.client_id == client_id)

        works = query.order_by(Work.created_at.desc()).all()
        return jsonify({
            'works': [work.to_dict() for work in works],
            'count': len(works)
        }), 200

    except Exception as e:
        return handle_exception(e, "work listing")


@work_bp.route('/works/<work_id>', methods=['GET'])
@cache_response('works', key_args=['work_id'])
def get_work(work_id):
    """Get a work with its resources, expenses and documents."""
    try:
        work = db.session.get(Work, work_id)
        if not work:
            return handle_not_found_error("Work", work_id)

        return jsonify({
            'work': _work_detail(work)
        }), 200

    except Exception as e:
        return handle_exception(e, "work retrieval")


@work_bp.route('/works/<work_id>', methods=['PUT'])
@invalidate_cache_on_change('works')
def update_work(work_id):
    """Update a work."""
    try:
        work = db.session.get(Work, work_id)
        if not work:
            return handle_not_found_error("Work", work_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        if 'title' in data:
            if not data['title'] or not str(data['title']).strip():
                return handle_validation_error("title can not be empty")
            work.title = str(data['title']).strip()
        if 'description' in data:
            work.description = data['description'] or None
        if 'client_id' in data:
            work.client_id = _resolve_client(data['client_id'])
        if 'status' in data:
            work.status = parse_choice(data['status'], WORK_STATUSES, 'status', work.status)
        for field in ('start_date', 'deadline', 'completion_date'):
            if field in data:
                setattr(work, field, parse_date(data[field], field))
        if 'total_budget' in data:
            _set_total_budget(work, data['total_budget'])
        if 'remaining_budget' in data:
            work.remaining_budget = parse_amount(data['remaining_budget'], 'remaining_budget', allow_none=True)

        db.session.commit()

        return jsonify({
            'message': 'Work updated successfully',
            'work': work.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "work update")


@work_bp.route('/works/<work_id>', methods=['DELETE'])
@invalidate_cache_on_change('works')
def delete_work(work_id):
    """Delete a work together with its resources, expenses and documents."""
    try:
        work = db.session.get(Work, work_id)
        if not work:
            return handle_not_found_error("Work", work_id)

        db.session.delete(work)
        db.session.commit()

        logger.info(f"Deleted work {work_id}")
        return jsonify({
            'message': 'Work deleted successfully'
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "work deletion")


@work_bp.route('/works/<work_id>/budget', methods=['GET'])
@cache_response('works', key_args=['work_id'])
def get_work_budget(work_id):
    """Spent, remaining and utilization figures plus spending breakdowns."""
    try:
        work = db.session.get(Work, work_id)
        if not work:
            return handle_not_found_error("Work", work_id)

        return jsonify({
            'budget': budget_report(work)
        }), 200

    except Exception as e:
        return handle_exception(e, "budget report")


@work_bp.route('/works/<work_id>/budget/reconcile', methods=['POST'])
@invalidate_cache_on_change('works')
def reconcile_work_budget(work_id):
    """Recompute the remaining budget from the stored expenses."""
    try:
        if not db.session.get(Work, work_id):
            return handle_not_found_error("Work", work_id)

        work = reconcile_budget(work_id)
        return jsonify({
            'message': 'Budget reconciled successfully',
            'budget': budget_report(work)
        }), 200

    except SQLAlchemyError as e:
        logger.error(f"Budget reconciliation failed for work {work_id}: {str(e)}")
        return handle_business_logic_error('BUDGET_UPDATE_FAILED', "Failed to reconcile the work budget")
    except Exception as e:
        return handle_exception(e, "budget reconciliation")
