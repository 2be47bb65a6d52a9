"""
Tests for the Flask CLI maintenance commands.
"""

import pytest
from agency_ops.models import Task, DashboardSnapshot

pytestmark = pytest.mark.integration


class TestCommands:
    def test_normalize_task_statuses(self, runner, db_session):
        db_session.add_all([
            Task(title='old', status='In Progress'),
            Task(title='new', status='pending'),
        ])
        db_session.commit()

        result = runner.invoke(args=['normalize-task-statuses'])

        assert result.exit_code == 0
        assert 'Normalized 1 task status value(s)' in result.output
        assert sorted(t.status for t in Task.query.all()) == ['in_progress', 'pending']

    def test_capture_dashboard_snapshot(self, runner, sample_client):
        result = runner.invoke(args=['capture-dashboard-snapshot'])

        assert result.exit_code == 0
        assert 'Captured dashboard snapshot' in result.output
        assert DashboardSnapshot.query.one().client_count == 1

    def test_init_db(self, runner):
        result = runner.invoke(args=['init-db'])

        assert result.exit_code == 0
        assert 'Database tables created' in result.output
