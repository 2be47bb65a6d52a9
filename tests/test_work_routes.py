"""
Integration tests for works and their resources, expenses and documents.
"""

import json
import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from agency_ops.models import Work, WorkResource, WorkExpense, WorkDocument

pytestmark = pytest.mark.integration


class TestWorkCrud:
    """Test cases for /works."""

    def test_create_sets_remaining_to_total(self, client, sample_client):
        response = client.post('/api/v1/works', json={
            'title': 'Channel relaunch',
            'client_id': sample_client.id,
            'total_budget': 5000,
            'deadline': '2030-06-30'
        })

        assert response.status_code == 201
        work = json.loads(response.data)['work']
        assert work['total_budget'] == pytest.approx(5000.0)
        assert work['remaining_budget'] == pytest.approx(5000.0)
        assert work['status'] == 'planned'
        assert work['client_name'] == 'Test Client'

    def test_create_requires_title(self, client):
        response = client.post('/api/v1/works', json={'total_budget': 10})

        assert response.status_code == 400

    def test_create_with_unknown_client(self, client):
        response = client.post('/api/v1/works', json={'title': 'X', 'client_id': 'missing'})

        assert response.status_code == 400
        assert Work.query.count() == 0

    def test_list_filters(self, client, db_session, sample_work):
        db_session.add(Work(title='Other', status='completed'))
        db_session.commit()

        response = client.get('/api/v1/works?status=in_progress')

        works = json.loads(response.data)['works']
        assert [w['title'] for w in works] == ['Launch campaign']

    def test_get_work_includes_children(self, client, db_session, sample_work):
        db_session.add(WorkDocument(work_id=sample_work.id, title='Brief', url='https://docs.example/brief'))
        db_session.commit()

        response = client.get(f'/api/v1/works/{sample_work.id}')

        work = json.loads(response.data)['work']
        assert work['resources'] == []
        assert work['expenses'] == []
        assert [d['title'] for d in work['documents']] == ['Brief']

    def test_update_total_budget_keeps_spent(self, client, db_session, sample_work):
        sample_work.remaining_budget = 600.0
        db_session.commit()

        response = client.put(f'/api/v1/works/{sample_work.id}', json={'total_budget': 2000})

        work = json.loads(response.data)['work']
        assert work['total_budget'] == pytest.approx(2000.0)
        assert work['remaining_budget'] == pytest.approx(1600.0)

    def test_update_rejects_non_object_body(self, client, sample_work):
        response = client.put(f'/api/v1/works/{sample_work.id}', json=[{'title': 'X'}])

        assert response.status_code == 400
        assert json.loads(response.data)['error']['message'] == 'Request body must be a JSON object'

    def test_delete_cascades_to_children(self, client, db_session, sample_work):
        resource = WorkResource(work_id=sample_work.id, name='Vendor')
        db_session.add(resource)
        db_session.flush()
        db_session.add_all([
            WorkExpense(work_id=sample_work.id, category='Gear', amount=100.0, resource_id=resource.id),
            WorkDocument(work_id=sample_work.id, title='Brief', url='https://docs.example/brief'),
        ])
        db_session.commit()

        response = client.delete(f'/api/v1/works/{sample_work.id}')

        assert response.status_code == 200
        assert Work.query.count() == 0
        assert WorkResource.query.count() == 0
        assert WorkExpense.query.count() == 0
        assert WorkDocument.query.count() == 0


class TestWorkExpenses:
    """Test cases for the expense endpoints and their budget effect."""

    def test_add_expense_decrements_remaining(self, client, sample_work):
        response = client.post(f'/api/v1/works/{sample_work.id}/expenses', json={
            'category': 'Equipment',
            'amount': 250.25
        })

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['remaining_budget'] == pytest.approx(749.75)
        assert data['expense']['expense_type'] == 'service'
        assert data['expense']['payment_status'] == 'paid'
        assert data['expense']['date'] is not None

    def test_update_amount_applies_difference(self, client, sample_work):
        created = json.loads(client.post(f'/api/v1/works/{sample_work.id}/expenses', json={
            'category': 'Travel', 'amount': 100
        }).data)

        response = client.put(
            f"/api/v1/works/{sample_work.id}/expenses/{created['expense']['id']}",
            json={'amount': 40}
        )

        assert response.status_code == 200
        assert json.loads(response.data)['remaining_budget'] == pytest.approx(960.0)

    def test_delete_restores_exact_amount(self, client, sample_work):
        created = json.loads(client.post(f'/api/v1/works/{sample_work.id}/expenses', json={
            'category': 'Talent', 'amount': 333.33
        }).data)
        assert created['remaining_budget'] == pytest.approx(666.67)

        response = client.delete(f"/api/v1/works/{sample_work.id}/expenses/{created['expense']['id']}")

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['restored_amount'] == pytest.approx(333.33)
        assert data['remaining_budget'] == pytest.approx(1000.0)

    def test_expense_requires_category_and_amount(self, client, sample_work):
        response = client.post(f'/api/v1/works/{sample_work.id}/expenses', json={'amount': 10})

        assert response.status_code == 400
        assert WorkExpense.query.count() == 0

    def test_expense_rejects_non_object_body(self, client, db_session, sample_work):
        response = client.post(f'/api/v1/works/{sample_work.id}/expenses', json=[{'category': 'Fees', 'amount': 10}])

        assert response.status_code == 400
        db_session.refresh(sample_work)
        assert sample_work.remaining_budget == pytest.approx(1000.0)

    def test_expense_resource_must_belong_to_work(self, client, db_session, sample_work):
        other = Work(title='Other', total_budget=10.0, remaining_budget=10.0)
        db_session.add(other)
        db_session.flush()
        foreign = WorkResource(work_id=other.id, name='Elsewhere')
        db_session.add(foreign)
        db_session.commit()

        response = client.post(f'/api/v1/works/{sample_work.id}/expenses', json={
            'category': 'Fees', 'amount': 10, 'resource_id': foreign.id
        })

        assert response.status_code == 400
        db_session.refresh(sample_work)
        assert sample_work.remaining_budget == pytest.approx(1000.0)

    def test_unknown_expense_is_not_found(self, client, sample_work):
        response = client.delete(f'/api/v1/works/{sample_work.id}/expenses/missing')

        assert response.status_code == 404

    def test_failed_commit_leaves_budget_untouched(self, client, db_session, sample_work):
        with patch('agency_ops.services.work_budget.db.session.commit',
                   side_effect=OperationalError('COMMIT', {}, Exception('db down'))):
            response = client.post(f'/api/v1/works/{sample_work.id}/expenses', json={
                'category': 'Equipment', 'amount': 50
            })

        assert response.status_code == 500
        assert json.loads(response.data)['error']['code'] == 'BUDGET_UPDATE_FAILED'
        assert WorkExpense.query.count() == 0
        db_session.refresh(sample_work)
        assert sample_work.remaining_budget == pytest.approx(1000.0)


class TestWorkBudget:
    """Test cases for the budget report and reconciliation."""

    def test_budget_report(self, client, db_session, sample_work):
        resource = WorkResource(work_id=sample_work.id, name='Camera crew')
        db_session.add(resource)
        db_session.commit()
        client.post(f'/api/v1/works/{sample_work.id}/expenses', json={
            'category': 'Crew', 'amount': 300, 'resource_id': resource.id
        })
        client.post(f'/api/v1/works/{sample_work.id}/expenses', json={'category': 'Props', 'amount': 100})

        response = client.get(f'/api/v1/works/{sample_work.id}/budget')

        budget = json.loads(response.data)['budget']
        assert budget['total_spent'] == pytest.approx(400.0)
        assert budget['utilization_percentage'] == pytest.approx(40.0)
        categories = {c['category']: c for c in budget['spending_by_category']}
        assert categories['Crew']['percentage'] == pytest.approx(30.0)
        assert budget['spending_by_resource'] == [
            {'name': 'Camera crew', 'amount': 300.0, 'percentage': 30.0}
        ]

    def test_reconcile_repairs_drift(self, client, db_session, sample_work):
        db_session.add(WorkExpense(work_id=sample_work.id, category='Gear', amount=120.0))
        sample_work.remaining_budget = 5.0
        db_session.commit()

        response = client.post(f'/api/v1/works/{sample_work.id}/budget/reconcile')

        assert response.status_code == 200
        assert json.loads(response.data)['budget']['remaining_budget'] == pytest.approx(880.0)

    def test_reconcile_missing_work(self, client):
        response = client.post('/api/v1/works/missing/budget/reconcile')

        assert response.status_code == 404


class TestWorkResourcesAndDocuments:
    """Test cases for resource and document endpoints."""

    def test_resource_lifecycle(self, client, sample_work, sample_team_member):
        created = client.post(f'/api/v1/works/{sample_work.id}/resources', json={
            'name': 'Alex',
            'role': 'Editor',
            'rate': '45',
            'team_member_id': sample_team_member.id
        })
        assert created.status_code == 201
        resource_id = json.loads(created.data)['resource']['id']

        updated = client.put(f'/api/v1/works/{sample_work.id}/resources/{resource_id}', json={'rate': 50})
        assert json.loads(updated.data)['resource']['rate'] == pytest.approx(50.0)

        listed = json.loads(client.get(f'/api/v1/works/{sample_work.id}/resources').data)
        assert [r['name'] for r in listed['resources']] == ['Alex']

        deleted = client.delete(f'/api/v1/works/{sample_work.id}/resources/{resource_id}')
        assert deleted.status_code == 200
        assert WorkResource.query.count() == 0

    def test_deleting_resource_keeps_its_expenses(self, client, db_session, sample_work):
        resource = WorkResource(work_id=sample_work.id, name='Vendor')
        db_session.add(resource)
        db_session.flush()
        expense = WorkExpense(work_id=sample_work.id, category='Fees', amount=10.0, resource_id=resource.id)
        db_session.add(expense)
        db_session.commit()
        expense_id = expense.id

        client.delete(f'/api/v1/works/{sample_work.id}/resources/{resource.id}')

        assert db_session.get(WorkExpense, expense_id).resource_id is None

    def test_resource_of_other_work_is_not_found(self, client, db_session, sample_work):
        other = Work(title='Other')
        db_session.add(other)
        db_session.flush()
        resource = WorkResource(work_id=other.id, name='Elsewhere')
        db_session.add(resource)
        db_session.commit()

        response = client.put(f'/api/v1/works/{sample_work.id}/resources/{resource.id}', json={'name': 'X'})

        assert response.status_code == 404

    def test_document_requires_title_and_url(self, client, sample_work):
        response = client.post(f'/api/v1/works/{sample_work.id}/documents', json={'title': 'Brief'})

        assert response.status_code == 400
        assert json.loads(response.data)['error']['details']['missing_fields'] == ['url']

    def test_document_type_is_validated(self, client, sample_work):
        response = client.post(f'/api/v1/works/{sample_work.id}/documents', json={
            'title': 'Brief', 'url': 'https://docs.example', 'document_type': 'fax'
        })

        assert response.status_code == 400

    def test_document_update_and_delete(self, client, sample_work):
        created = json.loads(client.post(f'/api/v1/works/{sample_work.id}/documents', json={
            'title': 'Brief', 'url': 'https://docs.example', 'document_type': 'google_doc'
        }).data)
        document_id = created['document']['id']

        updated = client.put(f'/api/v1/works/{sample_work.id}/documents/{document_id}', json={'title': 'Final brief'})
        assert json.loads(updated.data)['document']['title'] == 'Final brief'

        deleted = client.delete(f'/api/v1/works/{sample_work.id}/documents/{document_id}')
        assert deleted.status_code == 200
        assert WorkDocument.query.count() == 0
