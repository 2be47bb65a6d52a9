"""
Tests for the dashboard aggregation and snapshots.
"""

import json
import pytest
from datetime import datetime, timedelta
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from agency_ops.models import Client, Task, Finance, DashboardSnapshot
from agency_ops.services.dashboard import DashboardService, MOCK_DASHBOARD, calculate_percentage_change

pytestmark = pytest.mark.integration


class TestPercentageChange:
    @pytest.mark.parametrize('current, previous, expected', [
        (12, 10, 20),
        (5, 10, -50),
        (7, 0, 0),
        (0, 0, 0),
        (1, 3, -67),
        (3, None, None),
    ])
    def test_percentage_change(self, current, previous, expected):
        assert calculate_percentage_change(current, previous) == expected


class TestDashboardService:
    """Test the aggregation against the database."""

    def test_zero_records_give_zero_tiles(self, app):
        payload = DashboardService().build()

        assert payload['counts'] == {'clients': 0, 'tasks': 0, 'pending_tasks': 0, 'active_projects': 0}
        assert payload['finance'] == {
            'revenue': 0.0,
            'total_invoiced': 0.0,
            'total_expenses': 0.0,
            'pending_invoices': 0.0
        }
        assert payload['percentages'] == {
            'clients': None, 'pending_tasks': None, 'revenue': None, 'active_projects': None
        }
        assert payload['is_mock'] is False
        assert payload['warnings'] == []

    def test_counts_and_finance(self, db_session):
        acme = Client(name='Acme')
        globex = Client(name='Globex')
        db_session.add_all([acme, globex, Client(name='Idle')])
        db_session.flush()
        db_session.add_all([
            Task(title='a', client_id=acme.id, status='pending'),
            Task(title='b', client_id=acme.id, status='completed'),
            Task(title='c', client_id=globex.id, status='pending'),
            Task(title='d', client_id=None, status='in_progress'),
            Finance(client_id=acme.id, type='payment', status='completed', amount=300.0),
            Finance(client_id=acme.id, type='invoice', status='pending', amount=200.0),
            Finance(client_id=globex.id, type='expense', status='paid', amount=50.0),
        ])
        db_session.commit()

        payload = DashboardService().build()

        assert payload['counts'] == {'clients': 3, 'tasks': 4, 'pending_tasks': 2, 'active_projects': 2}
        assert payload['finance']['revenue'] == pytest.approx(300.0)
        assert payload['finance']['pending_invoices'] == pytest.approx(200.0)
        assert payload['finance']['total_expenses'] == pytest.approx(50.0)

    def test_pending_count_includes_legacy_spelling(self, db_session):
        db_session.add_all([
            Task(title='new style', status='pending'),
            Task(title='old style', status='Pending'),
            Task(title='done', status='Completed'),
        ])
        db_session.commit()

        assert DashboardService().collect_counts()['pending_tasks'] == 2

    def test_recent_tasks_and_deadlines(self, db_session, sample_client):
        now = datetime.utcnow()
        for i in range(7):
            db_session.add(Task(
                title=f'task {i}',
                client_id=sample_client.id,
                status='pending',
                created_at=now - timedelta(hours=i),
                timer_end=now + timedelta(days=7 - i) if i % 2 == 0 else None
            ))
        db_session.commit()

        service = DashboardService()

        assert [t['title'] for t in service.recent_tasks()] == ['task 0', 'task 1', 'task 2', 'task 3', 'task 4']
        assert [t['title'] for t in service.upcoming_deadlines()] == ['task 6', 'task 4', 'task 2', 'task 0']

    def test_percentages_use_old_snapshot_only(self, db_session):
        now = datetime.utcnow()
        db_session.add_all([Client(name=f'c{i}') for i in range(6)])
        db_session.add_all([
            DashboardSnapshot(captured_at=now - timedelta(days=40), client_count=4, pending_task_count=0,
                              revenue=0, active_project_count=0),
            DashboardSnapshot(captured_at=now - timedelta(days=35), client_count=5, pending_task_count=0,
                              revenue=0, active_project_count=0),
            DashboardSnapshot(captured_at=now - timedelta(days=2), client_count=6, pending_task_count=0,
                              revenue=0, active_project_count=0),
        ])
        db_session.commit()

        payload = DashboardService().build()

        assert payload['percentages']['clients'] == 20
        assert payload['percentages']['revenue'] == 0
        assert payload['baseline_captured_at'] is not None

    def test_capture_snapshot(self, db_session, sample_task, sample_finance):
        snapshot = DashboardService().capture_snapshot()

        assert snapshot.client_count == 1
        assert snapshot.pending_task_count == 1
        assert snapshot.active_project_count == 1
        assert DashboardSnapshot.query.count() == 1

    def test_unreachable_database_serves_mock(self, app):
        service = DashboardService()
        with patch.object(service, 'check_connectivity', return_value=False):
            payload = service.build()

        assert payload['is_mock'] is True
        assert payload['counts'] == MOCK_DASHBOARD['counts']
        assert payload['percentages']['clients'] is None
        assert 'is_mock' not in MOCK_DASHBOARD

    def test_failed_section_is_reported(self, app):
        service = DashboardService()
        error = OperationalError('SELECT', {}, Exception('boom'))
        with patch.object(service, 'collect_finance', side_effect=error):
            payload = service.build()

        assert payload['is_mock'] is False
        assert payload['finance']['revenue'] == 0.0
        assert payload['warnings'] == ['finance could not be loaded']


class TestDashboardEndpoints:
    def test_get_dashboard(self, client, sample_task):
        response = client.get('/api/v1/dashboard')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['counts']['tasks'] == 1
        assert data['comparison_days'] == 30
        assert data['recent_tasks'][0]['client_name'] == 'Test Client'

    def test_post_snapshot(self, client, sample_client):
        response = client.post('/api/v1/dashboard/snapshots')

        assert response.status_code == 201
        assert json.loads(response.data)['snapshot']['client_count'] == 1
