"""
Pytest configuration and fixtures for Agency Ops API tests.

This module provides:
- Test database setup and teardown
- Flask test client and CLI runner
- Common test data
"""

import pytest
from datetime import datetime, date, timedelta

from agency_ops.main import create_app
from agency_ops.extensions import db
from agency_ops.models import Client, TeamMember, Task, Finance, Work

# Test configuration
TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test-secret-key',
    'CACHE_ENABLED': False,
    'BUSINESS_TIMEZONE': 'UTC',
    'DASHBOARD_COMPARISON_DAYS': 30,
    'DASHBOARD_RECENT_LIMIT': 5,
    'LOG_LEVEL': 'DEBUG'
}


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    app = create_app('testing')
    app.config.update(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def db_session(app):
    """Database session for tests."""
    yield db.session


@pytest.fixture
def sample_client(db_session):
    """Create a sample client for testing."""
    client = Client(
        name="Test Client",
        email="test@example.com",
        status="active"
    )
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture
def sample_team_member(db_session):
    """Create a sample team member for testing."""
    member = TeamMember(
        name="Alex Editor",
        email="alex@example.com",
        role="Video Editor",
        skills=["editing", "color grading"],
        hourly_rate=45.0,
        status="active"
    )
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture
def sample_task(db_session, sample_client):
    """Create a pending task with a deadline tomorrow."""
    task = Task(
        title="Edit launch video",
        client_id=sample_client.id,
        status="pending",
        timer_end=datetime.utcnow() + timedelta(days=1)
    )
    db_session.add(task)
    db_session.commit()
    return task


@pytest.fixture
def sample_finance(db_session, sample_client):
    """Create a pending invoice for testing."""
    record = Finance(
        client_id=sample_client.id,
        amount=1500.0,
        type="invoice",
        status="pending",
        due_date=date.today() + timedelta(days=14)
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture
def sample_work(db_session, sample_client):
    """Create a work with a 1000 budget and nothing spent."""
    work = Work(
        title="Launch campaign",
        client_id=sample_client.id,
        status="in_progress",
        total_budget=1000.0,
        remaining_budget=1000.0
    )
    db_session.add(work)
    db_session.commit()
    return work
