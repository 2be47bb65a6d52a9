"""
Budget tracking for works.

``Work.remaining_budget`` is a denormalized counter: total_budget minus the sum
of the work's expenses. Every expense write adjusts it inside the same
database transaction as the expense row itself, so the two can not diverge
when one of the writes fails.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from agency_ops.extensions import db
from agency_ops.models import Work, WorkExpense, WorkResource
from agency_ops.models.work import EXPENSE_TYPES, PAYMENT_STATUSES
from agency_ops.services.client_fields import business_today
from agency_ops.utils.validation import parse_amount, parse_choice, parse_date

logger = logging.getLogger(__name__)


def budget_utilization(total_budget: Optional[float], remaining_budget: Optional[float]) -> float:
    """Spent share of the budget as a percentage clamped to [0, 100]."""
    if total_budget is None:
        return 0.0
    if total_budget == 0:
        return 100.0
    spent = total_budget - (remaining_budget or 0)
    percentage = spent / total_budget * 100
    return round(min(max(percentage, 0.0), 100.0), 2)


def total_spent(total_budget: Optional[float], remaining_budget: Optional[float]) -> float:
    if total_budget is None or remaining_budget is None:
        return 0.0
    return round(total_budget - remaining_budget, 2)


def _share(amount: float, total_budget: Optional[float]) -> float:
    return round(amount / total_budget * 100, 2) if total_budget else 0.0


def spending_by_category(expenses: Iterable[WorkExpense], total_budget: Optional[float]) -> List[Dict[str, Any]]:
    categories = OrderedDict()
    for expense in expenses:
        categories[expense.category] = categories.get(expense.category, 0.0) + float(expense.amount or 0)

    return [
        {'category': category, 'amount': round(amount, 2), 'percentage': _share(amount, total_budget)}
        for category, amount in categories.items()
    ]


def spending_by_resource(expenses: Iterable[WorkExpense], total_budget: Optional[float]) -> List[Dict[str, Any]]:
    resources = OrderedDict()
    for expense in expenses:
        if not expense.resource_id:
            continue
        name = expense.resource.name if expense.resource else 'Unknown'
        resources[name] = resources.get(name, 0.0) + float(expense.amount or 0)

    return [
        {'name': name, 'amount': round(amount, 2), 'percentage': _share(amount, total_budget)}
        for name, amount in resources.items()
    ]


def budget_report(work: Work) -> Dict[str, Any]:
    expenses = list(work.expenses)
    return {
        'work_id': work.id,
        'total_budget': work.total_budget,
        'remaining_budget': work.remaining_budget,
        'total_spent': total_spent(work.total_budget, work.remaining_budget),
        'expense_total': round(sum(float(e.amount or 0) for e in expenses), 2),
        'utilization_percentage': budget_utilization(work.total_budget, work.remaining_budget),
        'spending_by_category': spending_by_category(expenses, work.total_budget),
        'spending_by_resource': spending_by_resource(expenses, work.total_budget)
    }


def _lock_work(work_id: str) -> Work:
    """Reload the work row with a write lock (ignored by SQLite)."""
    return Work.query.filter_by(id=work_id).with_for_update().populate_existing().one()


def _adjust_remaining(work: Work, delta: float):
    if work.remaining_budget is None:
        return
    work.remaining_budget = round(float(work.remaining_budget) + delta, 2)


def _resolve_resource_id(work: Work, resource_id: Any) -> Optional[str]:
    if resource_id in (None, '', 'none'):
        return None
    resource = db.session.get(WorkResource, resource_id)
    if not resource or resource.work_id != work.id:
        raise ValueError(f"Resource {resource_id} does not belong to this work")
    return resource.id


def add_expense(work_id: str, data: Dict[str, Any]) -> WorkExpense:
    """Insert an expense and decrement the work's remaining budget atomically."""
    category = (data.get('category') or '').strip()
    if not category:
        raise ValueError("category is required")
    amount = parse_amount(data.get('amount'))

    try:
        work = _lock_work(work_id)
        expense = WorkExpense(
            work_id=work.id,
            category=category,
            amount=amount,
            description=data.get('description') or None,
            date=parse_date(data.get('date'), 'date') or business_today(),
            resource_id=_resolve_resource_id(work, data.get('resource_id')),
            expense_type=parse_choice(data.get('expense_type'), EXPENSE_TYPES, 'expense_type', 'service'),
            payment_status=parse_choice(data.get('payment_status'), PAYMENT_STATUSES, 'payment_status', 'paid')
        )
        db.session.add(expense)
        _adjust_remaining(work, -amount)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Added expense {expense.id} ({amount}) to work {work_id}; remaining {work.remaining_budget}")
    return expense


def update_expense(work_id: str, expense_id: str, data: Dict[str, Any]) -> WorkExpense:
    """Update an expense; an amount change moves remaining_budget by the difference."""
    try:
        work = _lock_work(work_id)
        expense = db.session.get(WorkExpense, expense_id)
        if not expense or expense.work_id != work.id:
            raise LookupError(f"Expense {expense_id} not found for work {work_id}")

        if 'category' in data:
            category = (data.get('category') or '').strip()
            if not category:
                raise ValueError("category is required")
            expense.category = category
        if 'amount' in data:
            new_amount = parse_amount(data.get('amount'))
            _adjust_remaining(work, float(expense.amount or 0) - new_amount)
            expense.amount = new_amount
        if 'description' in data:
            expense.description = data.get('description') or None
        if 'date' in data:
            expense.date = parse_date(data.get('date'), 'date') or expense.date
        if 'resource_id' in data:
            expense.resource_id = _resolve_resource_id(work, data.get('resource_id'))
        if 'expense_type' in data:
            expense.expense_type = parse_choice(data.get('expense_type'), EXPENSE_TYPES, 'expense_type', 'service')
        if 'payment_status' in data:
            expense.payment_status = parse_choice(data.get('payment_status'), PAYMENT_STATUSES, 'payment_status', 'paid')

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return expense


def delete_expense(work_id: str, expense_id: str) -> float:
    """
    Delete an expense and give its amount back to the remaining budget.

    Returns:
        The deleted expense's amount
    """
    try:
        work = _lock_work(work_id)
        expense = db.session.get(WorkExpense, expense_id)
        if not expense or expense.work_id != work.id:
            raise LookupError(f"Expense {expense_id} not found for work {work_id}")

        amount = float(expense.amount or 0)
        _adjust_remaining(work, amount)
        db.session.delete(expense)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Deleted expense {expense_id} ({amount}) from work {work_id}; remaining {work.remaining_budget}")
    return amount


def reconcile_budget(work_id: str) -> Work:
    """Recompute remaining_budget from total_budget and the stored expenses."""
    try:
        work = _lock_work(work_id)
        if work.total_budget is None:
            work.remaining_budget = None
        else:
            spent = sum(float(e.amount or 0) for e in work.expenses)
            work.remaining_budget = round(float(work.total_budget) - spent, 2)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Reconciled budget for work {work_id}: remaining {work.remaining_budget}")
    return work
