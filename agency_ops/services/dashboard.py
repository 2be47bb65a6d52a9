"""
Dashboard aggregation service.

Builds the read-only dashboard: entity counts, finance tiles, the active
project proxy (distinct clients with any task), recent tasks and upcoming
deadlines. Period-over-period percentages compare against persisted
``DashboardSnapshot`` rows; without a baseline the percentage is None.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

from agency_ops.extensions import db
from agency_ops.models import Client, Task, Finance, DashboardSnapshot
from agency_ops.services.finance_summary import summarize_finances
from agency_ops.services.task_status import TaskStatus, stored_values

logger = logging.getLogger(__name__)

# Served when the database can not be reached at all
MOCK_DASHBOARD = {
    'counts': {
        'clients': 12,
        'tasks': 34,
        'pending_tasks': 9,
        'active_projects': 7
    },
    'finance': {
        'revenue': 48250.0,
        'total_invoiced': 57900.0,
        'total_expenses': 33775.0,
        'pending_invoices': 17370.0
    },
    'percentages': {
        'clients': None,
        'pending_tasks': None,
        'revenue': None,
        'active_projects': None
    },
    'recent_tasks': [
        {'id': 'mock-task-1', 'title': 'Edit launch video', 'status': 'in_progress', 'client_name': 'Sample Client A'},
        {'id': 'mock-task-2', 'title': 'Draft content calendar', 'status': 'pending', 'client_name': 'Sample Client B'},
        {'id': 'mock-task-3', 'title': 'Monthly analytics report', 'status': 'completed', 'client_name': 'Sample Client A'}
    ],
    'upcoming_deadlines': [
        {'id': 'mock-task-2', 'title': 'Draft content calendar', 'status': 'pending', 'client_name': 'Sample Client B'}
    ]
}


def calculate_percentage_change(current: float, previous: Optional[float]) -> Optional[int]:
    """Whole-number percentage change; 0 when the baseline is 0, None without a baseline."""
    if previous is None:
        return None
    if previous == 0:
        return 0
    return int(round((current - previous) / previous * 100))


class DashboardService:
    """Service computing dashboard tiles from the live tables."""

    def __init__(self, comparison_days: int = None, recent_limit: int = None):
        self.comparison_days = comparison_days or current_app.config.get('DASHBOARD_COMPARISON_DAYS', 30)
        self.recent_limit = recent_limit or current_app.config.get('DASHBOARD_RECENT_LIMIT', 5)

    def check_connectivity(self) -> bool:
        try:
            db.session.execute(text('SELECT 1'))
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Dashboard connectivity check failed: {str(e)}")
            return False

    def collect_counts(self) -> Dict[str, int]:
        active_projects = db.session.query(func.count(func.distinct(Task.client_id))).filter(
            Task.client_id.isnot(None)
        ).scalar()
        return {
            'clients': db.session.query(func.count(Client.id)).scalar() or 0,
            'tasks': db.session.query(func.count(Task.id)).scalar() or 0,
            'pending_tasks': db.session.query(func.count(Task.id)).filter(
                Task.status.in_(stored_values(TaskStatus.PENDING))
            ).scalar() or 0,
            'active_projects': active_projects or 0
        }

    def collect_finance(self) -> Dict[str, float]:
        summary = summarize_finances(Finance.query.all())
        return {
            'revenue': summary['total_payments'],
            'total_invoiced': summary['total_invoiced'],
            'total_expenses': summary['total_expenses'],
            'pending_invoices': summary['pending_invoices']
        }

    def recent_tasks(self) -> List[Dict[str, Any]]:
        tasks = Task.query.order_by(Task.created_at.desc()).limit(self.recent_limit).all()
        return [task.to_dict() for task in tasks]

    def upcoming_deadlines(self) -> List[Dict[str, Any]]:
        tasks = Task.query.filter(Task.timer_end.isnot(None)).order_by(
            Task.timer_end.asc()
        ).limit(self.recent_limit).all()
        return [task.to_dict() for task in tasks]

    def baseline_snapshot(self, now: datetime = None) -> Optional[DashboardSnapshot]:
        """Latest snapshot at least ``comparison_days`` old."""
        cutoff = (now or datetime.utcnow()) - timedelta(days=self.comparison_days)
        return DashboardSnapshot.query.filter(
            DashboardSnapshot.captured_at <= cutoff
        ).order_by(DashboardSnapshot.captured_at.desc()).first()

    def percentages(self, counts: Dict[str, int], finance: Dict[str, float],
                    baseline: Optional[DashboardSnapshot]) -> Dict[str, Optional[int]]:
        if baseline is None:
            return {'clients': None, 'pending_tasks': None, 'revenue': None, 'active_projects': None}
        return {
            'clients': calculate_percentage_change(counts['clients'], baseline.client_count),
            'pending_tasks': calculate_percentage_change(counts['pending_tasks'], baseline.pending_task_count),
            'revenue': calculate_percentage_change(finance['revenue'], baseline.revenue),
            'active_projects': calculate_percentage_change(counts['active_projects'], baseline.active_project_count)
        }

    def _section(self, name: str, loader, fallback, warnings: List[str]):
        try:
            return loader()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error loading dashboard {name}: {str(e)}")
            warnings.append(f"{name} could not be loaded")
            return fallback

    def build(self) -> Dict[str, Any]:
        """Assemble the dashboard payload, falling back to mock data when offline."""
        if not self.check_connectivity():
            logger.warning("Database unreachable, serving mock dashboard data")
            payload = dict(MOCK_DASHBOARD)
            payload['is_mock'] = True
            payload['warnings'] = ['Database unreachable; showing sample data']
            payload['baseline_captured_at'] = None
            return payload

        warnings = []
        counts = self._section('counts', self.collect_counts,
                               {'clients': 0, 'tasks': 0, 'pending_tasks': 0, 'active_projects': 0}, warnings)
        finance = self._section('finance', self.collect_finance,
                                {'revenue': 0.0, 'total_invoiced': 0.0, 'total_expenses': 0.0,
                                 'pending_invoices': 0.0}, warnings)
        recent = self._section('recent tasks', self.recent_tasks, [], warnings)
        deadlines = self._section('upcoming deadlines', self.upcoming_deadlines, [], warnings)
        baseline = self._section('baseline snapshot', self.baseline_snapshot, None, warnings)

        return {
            'counts': counts,
            'finance': finance,
            'percentages': self.percentages(counts, finance, baseline),
            'baseline_captured_at': baseline.captured_at.isoformat() if baseline else None,
            'recent_tasks': recent,
            'upcoming_deadlines': deadlines,
            'is_mock': False,
            'warnings': warnings
        }

    def capture_snapshot(self) -> DashboardSnapshot:
        """Persist the current tiles as a future comparison baseline."""
        counts = self.collect_counts()
        finance = self.collect_finance()
        snapshot = DashboardSnapshot(
            client_count=counts['clients'],
            task_count=counts['tasks'],
            pending_task_count=counts['pending_tasks'],
            revenue=finance['revenue'],
            active_project_count=counts['active_projects']
        )
        try:
            db.session.add(snapshot)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        logger.info(f"Captured dashboard snapshot {snapshot.id}")
        return snapshot
