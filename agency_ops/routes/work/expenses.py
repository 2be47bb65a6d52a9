"""
Expense endpoints for works.

Every write goes through services.work_budget so the expense row and the
work's remaining budget are committed together.
"""

from flask import request, jsonify
from sqlalchemy.exc import SQLAlchemyError
from agency_ops.models import db, Work
from agency_ops.routes.work import work_bp
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.services.work_budget import add_expense, update_expense, delete_expense
from agency_ops.utils.error_handling import (
    handle_not_found_error,
    handle_business_logic_error,
    validate_json_body,
    handle_exception
)
import logging

logger = logging.getLogger(__name__)


def _budget_failure(error, operation):
    logger.error(f"Budget update failed during {operation}: {str(error)}")
    return handle_business_logic_error(
        'BUDGET_UPDATE_FAILED',
        f"Failed to update the work budget during {operation}; no changes were saved"
    )


@work_bp.route('/works/<work_id>/expenses', methods=['GET'])
@cache_response('works', key_args=['work_id'])
def list_work_expenses(work_id):
    """List a work's expenses, most recent first."""
    try:
        work = db.session.get(Work, work_id)
        if not work:
            return handle_not_found_error("Work", work_id)

        return jsonify({
            'work_id': work_id,
            'expenses': [expense.to_dict() for expense in work.expenses]
        }), 200
    except Exception as e:
        return handle_exception(e, "expense listing")


@work_bp.route('/works/<work_id>/expenses', methods=['POST'])
@invalidate_cache_on_change('works')
def create_work_expense(work_id):
    try:
        if not db.session.get(Work, work_id):
            return handle_not_found_error("Work", work_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        expense = add_expense(work_id, data)
        work = db.session.get(Work, work_id)

        return jsonify({
            'message': 'Expense created successfully',
            'expense': expense.to_dict(),
            'remaining_budget': work.remaining_budget
        }), 201

    except SQLAlchemyError as e:
        return _budget_failure(e, "expense creation")
    except Exception as e:
        return handle_exception(e, "expense creation")


@work_bp.route('/works/<work_id>/expenses/<expense_id>', methods=['PUT'])
@invalidate_cache_on_change('works')
def update_work_expense(work_id, expense_id):
    try:
        if not db.session.get(Work, work_id):
            return handle_not_found_error("Work", work_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        expense = update_expense(work_id, expense_id, data)
        work = db.session.get(Work, work_id)

        return jsonify({
            'message': 'Expense updated successfully',
            'expense': expense.to_dict(),
            'remaining_budget': work.remaining_budget
        }), 200

    except LookupError:
        return handle_not_found_error("Expense", expense_id)
    except SQLAlchemyError as e:
        return _budget_failure(e, "expense update")
    except Exception as e:
        return handle_exception(e, "expense update")


@work_bp.route('/works/<work_id>/expenses/<expense_id>', methods=['DELETE'])
@invalidate_cache_on_change('works')
def delete_work_expense(work_id, expense_id):
    """Delete an expense and restore its amount to the remaining budget."""
    try:
        if not db.session.get(Work, work_id):
            return handle_not_found_error("Work", work_id)

        amount = delete_expense(work_id, expense_id)
        work = db.session.get(Work, work_id)

        return jsonify({
            'message': 'Expense deleted successfully',
            'restored_amount': amount,
            'remaining_budget': work.remaining_budget
        }), 200

    except LookupError:
        return handle_not_found_error("Expense", expense_id)
    except SQLAlchemyError as e:
        return _budget_failure(e, "expense deletion")
    except Exception as e:
        return handle_exception(e, "expense deletion")
