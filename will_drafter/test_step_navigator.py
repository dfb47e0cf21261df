"""
Tests for wizard navigation: validation gating, best-effort saves and progress.
"""

from unittest import mock

import pytest

from will_drafter import entity_store
from will_drafter.context_builder import normalize_family_details
from will_drafter.entity_store import DraftUnavailable
from will_drafter.step_navigator import (
    Step, StepNavigator, STEP_ORDER, DASHBOARD, SAVE_FAILED_MESSAGE, progress
)


USER = 'user-1'


class FailingStore:
    """Store whose every write fails."""

    def put_section(self, user_id, section, payload):
        raise DraftUnavailable('down')


class TestStep:
    def test_order(self):
        assert [s.label for s in STEP_ORDER] == [
            'Personal Info', 'Family', 'Assets', 'Beneficiaries',
            'Allocation', 'Executor', 'Review',
        ]

    @pytest.mark.parametrize('value', ['asset_allocation', 'assetAllocation', Step.ASSET_ALLOCATION])
    def test_parse(self, value):
        assert Step.parse(value) is Step.ASSET_ALLOCATION

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            Step.parse('payment')

    def test_review_has_no_section(self):
        assert Step.REVIEW.section is None


class TestNext:
    def test_invalid_step_does_not_move_or_save(self, app):
        navigator = StepNavigator(USER)
        result = navigator.next({'fullName': 'R'})
        assert result.moved is False
        assert result.target == 'personal_info'
        assert not result.errors.is_valid
        assert navigator.current is Step.PERSONAL_INFO
        assert entity_store.load_sections(USER) == {}

    def test_valid_step_saves_and_advances(self, app, personal_info):
        navigator = StepNavigator(USER)
        result = navigator.next(personal_info)
        assert result.moved is True
        assert result.saved is True
        assert result.target == 'family_details'
        assert entity_store.get_section(USER, 'personalInfo')['fullName'] == 'Ravi Kumar'

    def test_empty_list_step_advances(self, app):
        result = StepNavigator(USER, current=Step.ASSETS).next({'assets': []})
        assert result.moved is True
        assert result.target == 'beneficiaries'

    def test_review_is_the_last_step(self, app):
        navigator = StepNavigator(USER, current=Step.REVIEW)
        result = navigator.next()
        assert result.moved is False
        assert navigator.current is Step.REVIEW

    def test_family_spouse_cleared_on_save(self, app):
        StepNavigator(USER, current=Step.FAMILY_DETAILS).next(
            {'maritalStatus': 'unmarried', 'spouseName': 'Asha Rao', 'children': []}
        )
        assert entity_store.get_section(USER, 'familyDetails')['spouseName'] == ''


class TestBestEffortMoves:
    def test_previous_saves_without_validation(self, app):
        navigator = StepNavigator(USER, current=Step.FAMILY_DETAILS)
        result = navigator.previous({'maritalStatus': 'married', 'spouseName': ''})
        assert result.moved is True
        assert result.target == 'personal_info'
        assert entity_store.get_section(USER, 'familyDetails')['maritalStatus'] == 'married'

    def test_previous_on_first_step_stays(self, app):
        result = StepNavigator(USER).previous({'fullName': 'R'})
        assert result.moved is False
        assert result.target == 'personal_info'

    def test_go_to_any_step(self, app):
        navigator = StepNavigator(USER, current=Step.PERSONAL_INFO)
        result = navigator.go_to('executor', {'fullName': 'R'})
        assert result.target == 'executor'
        assert navigator.current is Step.EXECUTOR
        assert entity_store.get_section(USER, 'personalInfo')['fullName'] == 'R'

    def test_save_and_exit(self, app):
        result = StepNavigator(USER, current=Step.EXECUTOR).save_and_exit({'city': 'Pune'})
        assert result.target == DASHBOARD
        assert result.message == 'Progress saved.'
        assert entity_store.get_section(USER, 'executor')['city'] == 'Pune'

    def test_no_payload_keeps_stored_list(self, app):
        entity_store.add_item(USER, 'assets', {'type': 'Other'})
        StepNavigator(USER, current=Step.ASSETS).save_and_exit({})
        assert len(entity_store.list_items(USER, 'assets')) == 1

    def test_save_failure_reported_but_move_happens(self, app):
        navigator = StepNavigator(USER, current=Step.EXECUTOR, store=FailingStore())
        result = navigator.previous({'city': 'Pune'})
        assert result.moved is True
        assert result.saved is False
        assert result.message == SAVE_FAILED_MESSAGE

    def test_save_failure_on_exit(self, app):
        with mock.patch.object(entity_store, 'put_section', side_effect=DraftUnavailable('down')):
            result = StepNavigator(USER, current=Step.EXECUTOR).save_and_exit({'city': 'Pune'})
        assert result.target == DASHBOARD
        assert result.saved is False


class TestNormalizeFamilyDetails:
    @pytest.mark.parametrize('status', ['unmarried', 'divorced', 'widowed', ''])
    def test_spouse_cleared_unless_married(self, status):
        payload = normalize_family_details({'maritalStatus': status, 'spouseName': 'Asha'})
        assert payload['spouseName'] == ''

    def test_married_keeps_spouse(self):
        payload = {'maritalStatus': 'married', 'spouseName': 'Asha'}
        assert normalize_family_details(payload) == payload

    def test_input_not_modified(self):
        payload = {'maritalStatus': 'divorced', 'spouseName': 'Asha'}
        normalize_family_details(payload)
        assert payload['spouseName'] == 'Asha'


class TestProgress:
    def test_empty_draft(self):
        steps = progress({}, 'assets')
        assert [s['completed'] for s in steps] == [False] * 7
        assert [s['step'] for s in steps if s['current']] == ['assets']

    def test_completed_steps(self, jane_doe_draft):
        steps = {s['step']: s['completed'] for s in progress(jane_doe_draft, Step.REVIEW)}
        assert steps == {
            'personal_info': True,
            'family_details': True,
            'assets': True,
            'beneficiaries': True,
            'asset_allocation': True,
            'executor': True,
            'review': False,
        }
