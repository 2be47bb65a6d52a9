"""
Unit tests for repairing and validating the structured client columns.
"""

import json
import re
import pytest
from datetime import date

from agency_ops.services.client_fields import (
    DEFAULT_CHECKLIST_TITLES,
    repair_field,
    repair_client_fields,
    validate_json_field,
    checklist_progress,
    business_today
)

TODAY = date(2024, 3, 1)

pytestmark = pytest.mark.unit


class TestRepairField:
    """Test read-side repair of each JSON column."""

    @pytest.mark.parametrize('stored', [
        None,
        'garbage{',
        '"just a string"',
        42,
        ['not', 'an', 'object'],
        json.dumps([1, 2, 3]),
    ])
    def test_malformed_budget_repairs_to_object(self, stored):
        budget, changed = repair_field('budget', stored, TODAY)

        assert changed is True
        assert isinstance(budget['total'], (int, float))
        assert isinstance(budget['currency'], str)
        assert isinstance(budget['breakdown'], list)

    def test_partial_budget_is_upgraded(self):
        budget, changed = repair_field('budget', {'total': '1200.5', 'breakdown': 'oops'}, TODAY)

        assert changed is True
        assert budget == {'total': 1200.5, 'currency': 'USD', 'breakdown': [], 'notes': ''}

    def test_budget_stored_as_json_text(self):
        stored = json.dumps({'total': 10, 'currency': 'EUR', 'breakdown': [{'category': 'Ads', 'amount': '4'}]})

        budget, _ = repair_field('budget', stored, TODAY)

        assert budget['currency'] == 'EUR'
        assert budget['breakdown'] == [{'category': 'Ads', 'amount': 4.0}]

    def test_default_checklist(self):
        checklist, changed = repair_field('onboarding_checklist', None, TODAY)

        assert changed is True
        assert [item['title'] for item in checklist] == list(DEFAULT_CHECKLIST_TITLES)
        assert all(item['completed'] is False for item in checklist)

    def test_default_timeline_is_relative_to_today(self):
        timeline, _ = repair_field('timeline', 'not a list', TODAY)

        assert [event['date'] for event in timeline] == ['2024-03-08', '2024-03-15', '2024-03-17']
        assert all(event['status'] == 'pending' for event in timeline)

    def test_well_formed_value_is_unchanged(self):
        folder = {'path': '/clients/acme', 'links': ['https://drive.example/x'], 'notes': ''}

        repaired, changed = repair_field('video_folder', folder, TODAY)

        assert repaired == folder
        assert changed is False

    def test_list_items_are_filtered_and_filled(self):
        people, _ = repair_field('hired_people', [{'name': 'Ana', 'rate': '20'}, 'junk'], TODAY)

        assert people == [{
            'id': '1',
            'name': 'Ana',
            'role': '',
            'team_member_id': None,
            'external': True,
            'rate': 20.0,
            'notes': ''
        }]

    def test_tracking_metrics_are_numeric(self):
        results, _ = repair_field('tracking_results', [{'title': 'Week 1', 'metrics': {'views': '1500'}}], TODAY)

        assert results[0]['metrics'] == {'views': 1500.0, 'engagement': 0, 'followers': 0, 'conversions': 0}

    def test_unknown_keys_survive_repair(self):
        stored = {'total': 10, 'breakdown': [{'id': 'b1', 'category': 'Ads', 'amount': 4, 'vendor': 'Meta'}]}

        budget, _ = repair_field('budget', stored, TODAY)

        assert budget['breakdown'] == [{'id': 'b1', 'category': 'Ads', 'amount': 4, 'vendor': 'Meta'}]

    def test_non_finite_numbers_fall_back_on_read(self):
        stored = {
            'total': float('nan'),
            'breakdown': [{'category': 'Ads', 'amount': float('inf')}],
            'forecast': float('-inf')
        }

        budget, changed = repair_field('budget', stored, TODAY)

        assert changed is True
        assert budget['total'] == 0
        assert budget['breakdown'][0]['amount'] == 0
        assert budget['forecast'] is None
        json.dumps(budget, allow_nan=False)


class TestRepairClientFields:
    """Test repairing a whole serialized client."""

    def test_reports_repaired_fields(self):
        data = {
            'id': 'c1',
            'name': 'Acme',
            'budget': {'total': 0, 'currency': 'USD', 'breakdown': [], 'notes': ''},
            'onboarding_checklist': [],
            'timeline': [],
            'tracking_results': [],
            'hired_people': [],
            'video_folder': None,
        }

        repaired, fields = repair_client_fields(data, TODAY)

        assert fields == ['video_folder']
        assert repaired['name'] == 'Acme'
        assert data['video_folder'] is None


class TestValidateJsonField:
    """Test write-side validation."""

    def test_none_clears_the_field(self):
        assert validate_json_field('budget', None) is None

    def test_json_text_is_parsed(self):
        assert validate_json_field('timeline', '[]') == []

    @pytest.mark.parametrize('field, value', [
        ('budget', []),
        ('timeline', {'a': 1}),
        ('video_folder', 'not json'),
        ('unknown', []),
    ])
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            validate_json_field(field, value)

    def test_unknown_keys_are_stored(self):
        value = {
            'total': 1200,
            'currency': 'USD',
            'breakdown': [{'id': 'b1', 'category': 'Ads', 'amount': 100, 'description': 'Meta ads'}],
            'approved_by': 'Dana'
        }

        stored = validate_json_field('budget', value)

        assert stored['breakdown'] == [{'id': 'b1', 'category': 'Ads', 'amount': 100, 'description': 'Meta ads'}]
        assert stored['approved_by'] == 'Dana'
        assert stored['notes'] == ''

    def test_numeric_text_is_converted(self):
        stored = validate_json_field('hired_people', [{'name': 'Ana', 'rate': '20.5'}])

        assert stored[0]['rate'] == 20.5
        assert stored[0]['external'] is True

    @pytest.mark.parametrize('field, value, message', [
        ('budget', {'total': 'twelve hundred'}, 'budget.total'),
        ('budget', {'total': True}, 'budget.total'),
        ('budget', {'total': 'NaN'}, 'budget.total'),
        ('budget', {'total': float('inf')}, 'budget.total'),
        ('budget', {'breakdown': 'oops'}, 'budget.breakdown'),
        ('budget', {'breakdown': [{'category': 'Ads', 'amount': 'lots'}]}, 'budget.breakdown[0].amount'),
        ('budget', {'forecast': float('nan')}, 'budget.forecast'),
        ('onboarding_checklist', [{'title': 'Kickoff', 'completed': 'yes'}], 'onboarding_checklist[0].completed'),
        ('timeline', [{'title': 5}], 'timeline[0].title'),
        ('tracking_results', [{'metrics': {'views': 'many'}}], 'tracking_results[0].metrics.views'),
        ('hired_people', ['Ana'], 'hired_people[0]'),
        ('video_folder', {'links': [1]}, 'video_folder.links[0]'),
    ])
    def test_rejects_wrongly_typed_keys(self, field, value, message):
        with pytest.raises(ValueError, match=re.escape(message)):
            validate_json_field(field, value)


class TestChecklistProgress:
    def test_progress(self):
        assert checklist_progress([]) == 0.0
        assert checklist_progress(None) == 0.0
        assert checklist_progress([{'completed': True}, {'completed': False}, {}]) == pytest.approx(33.33)


class TestBusinessToday:
    def test_uses_configured_timezone(self, app):
        app.config['BUSINESS_TIMEZONE'] = 'Pacific/Kiritimati'

        assert isinstance(business_today(), date)

    def test_unknown_timezone_falls_back_to_utc(self, app):
        app.config['BUSINESS_TIMEZONE'] = 'Mars/Olympus_Mons'

        assert isinstance(business_today(), date)
