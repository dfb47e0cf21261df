"""
Unit tests for validation module.
"""

import re
from datetime import date

import pytest
from will_drafter.context_builder import coerce_percentage
from will_drafter.validation import (
    ValidationResult, validate_percentage, validate_email, validate_dob, validate_string, validate_pattern,
    validate_personal_info, validate_family_details, validate_asset, validate_assets,
    validate_beneficiaries, validate_allocations, validate_asset_allocation,
    validate_executor, validate_step
)


class TestValidationResult:
    def test_initially_valid(self):
        result = ValidationResult()
        assert result.is_valid is True
        assert len(result.errors) == 0

    def test_add_error(self):
        result = ValidationResult()
        result.add_error('field', 'message', 'code')
        assert result.is_valid is False
        assert result.errors[0].field == 'field'
        assert result.errors[0].code == 'code'

    def test_to_dict(self):
        result = ValidationResult()
        result.add_error('field', 'message', 'code', 'personalInfo')
        d = result.to_dict()
        assert d['ok'] is False
        assert d['errors'][0]['section'] == 'personalInfo'

    def test_merge(self):
        first = ValidationResult()
        second = ValidationResult()
        second.add_error('x', 'bad', 'invalid')
        first.merge(second)
        assert first.is_valid is False
        assert first.get_errors_by_field() == {'x': ['bad']}


class TestPercentageValidation:
    def test_valid_percentage(self):
        result = ValidationResult()
        assert validate_percentage(50, 'field', result) is True

    def test_numeric_string_accepted(self):
        result = ValidationResult()
        assert validate_percentage('33.5', 'field', result) is True

    def test_zero_rejected(self):
        result = ValidationResult()
        assert validate_percentage(0, 'field', result) is False
        assert result.errors[0].code == 'min_value'

    def test_hundred_accepted(self):
        result = ValidationResult()
        assert validate_percentage(100, 'field', result) is True

    def test_above_hundred_rejected(self):
        result = ValidationResult()
        assert validate_percentage(100.5, 'field', result) is False

    def test_non_numeric_rejected(self):
        result = ValidationResult()
        assert validate_percentage('half', 'field', result) is False
        assert result.errors[0].code == 'type'

    def test_boolean_rejected(self):
        result = ValidationResult()
        assert validate_percentage(True, 'field', result) is False

    @pytest.mark.parametrize('value', ['nan', 'NaN', 'inf', '-Infinity', float('nan'), float('inf'), 10 ** 400])
    def test_non_finite_rejected(self, value):
        result = ValidationResult()
        assert validate_percentage(value, 'field', result) is False
        assert result.errors[0].code == 'type'

    def test_coerce_non_finite(self):
        assert coerce_percentage(float('nan')) is None
        assert coerce_percentage(' inf ') is None
        assert coerce_percentage(' 12.5 ') == 12.5


class TestFieldValidators:
    def test_email(self):
        result = ValidationResult()
        assert validate_email('a@b.in', 'email', result) is True
        assert validate_email('not-an-email', 'email', result) is False

    def test_dob_minor_rejected(self):
        result = ValidationResult()
        assert validate_dob('2015-01-01', 'dob', result, today=date(2026, 1, 1)) is False
        assert result.errors[0].code == 'min_age'

    def test_dob_invalid_format(self):
        result = ValidationResult()
        assert validate_dob('31/12/1980', 'dob', result) is False
        assert result.errors[0].code == 'format'

    @pytest.mark.parametrize('value', [['Ravi Kumar'], {'name': 'Ravi Kumar'}, 42])
    def test_string_rejects_non_text(self, value):
        result = ValidationResult()
        assert validate_string(value, 'fullName', result) is False
        assert result.errors[0].code == 'type'

    def test_email_rejects_list(self):
        result = ValidationResult()
        assert validate_email(['a@b.in'], 'email', result) is False
        assert result.errors[0].code == 'type'

    def test_pattern_rejects_list(self):
        result = ValidationResult()
        assert validate_pattern(['123456789012'], 'aadhar', re.compile(r'^\d{12}$'), 'Bad', result) is False
        assert result.errors[0].code == 'type'

    def test_pattern_matches_whole_number(self):
        result = ValidationResult()
        assert validate_pattern(123456789012, 'aadhar', re.compile(r'^\d{12}$'), 'Bad', result) is True


class TestPersonalInfo:
    def test_valid(self, personal_info):
        assert validate_personal_info(personal_info).is_valid

    def test_aadhar_must_be_twelve_digits(self, personal_info):
        personal_info['aadhar'] = '12345'
        result = validate_personal_info(personal_info)
        assert 'aadhar' in result.get_errors_by_field()

    def test_mobile_must_be_ten_digits(self, personal_info):
        personal_info['mobile'] = '98765-43210'
        result = validate_personal_info(personal_info)
        assert 'mobile' in result.get_errors_by_field()

    def test_short_address(self, personal_info):
        personal_info['address'] = 'Delhi'
        result = validate_personal_info(personal_info)
        assert 'address' in result.get_errors_by_field()

    def test_empty_payload_reports_every_field(self):
        result = validate_personal_info({})
        fields = result.get_errors_by_field()
        for name in ('gender', 'fullName', 'dob', 'aadhar', 'email', 'mobile'):
            assert name in fields


class TestFamilyDetails:
    def test_married_requires_spouse(self):
        result = validate_family_details({'maritalStatus': 'married', 'spouseName': ''})
        assert 'spouseName' in result.get_errors_by_field()

    def test_unmarried_ignores_spouse(self):
        result = validate_family_details({'maritalStatus': 'unmarried'})
        assert result.is_valid

    def test_child_name_length(self):
        result = validate_family_details({
            'maritalStatus': 'widowed',
            'children': [{'name': 'Asha'}, {'name': 'A'}],
        })
        assert list(result.get_errors_by_field()) == ['children[1].name']

    def test_unknown_status(self):
        result = validate_family_details({'maritalStatus': 'engaged'})
        assert result.errors[0].code == 'enum'


class TestAssets:
    def test_bank_account_valid(self, jane_doe_draft):
        asset = jane_doe_draft['assets']['assets'][0]
        assert validate_asset(asset).is_valid

    def test_variant_fields_required(self):
        result = validate_asset({'type': 'Vehicle', 'details': {'description': 'Family car'}})
        fields = result.get_errors_by_field()
        assert 'details.vehicleType' in fields
        assert 'details.makeModel' in fields
        assert 'details.registrationNumber' in fields

    def test_other_variant_fields_ignored(self):
        result = validate_asset({
            'type': 'Jewelry/Valuables',
            'details': {
                'description': 'Gold necklace',
                'itemName': 'Necklace',
                'identifyingMarks': '22 carat with ruby pendant',
                'bankName': '',
            },
        })
        assert result.is_valid

    def test_value_must_be_digits(self):
        result = validate_asset({
            'type': 'Other',
            'details': {
                'description': 'Art collection',
                'value': '5 lakh',
                'otherType': 'Paintings',
                'otherDetails': 'Three oil paintings in the study',
            },
        })
        assert list(result.get_errors_by_field()) == ['details.value']

    def test_unknown_type(self):
        result = validate_asset({'type': 'Crypto', 'details': {}})
        assert result.errors[0].field == 'type'

    def test_assets_list_prefixes_paths(self):
        result = validate_assets({'assets': [{'type': 'Crypto'}]})
        assert result.errors[0].field == 'assets[0].type'


class TestBeneficiaries:
    def test_valid(self, jane_doe_draft):
        assert validate_beneficiaries(jane_doe_draft['beneficiaries']).is_valid

    def test_relationship_required(self):
        result = validate_beneficiaries({'beneficiaries': [{'name': 'Jane Doe'}]})
        assert 'beneficiaries[0].relationship' in result.get_errors_by_field()


class TestAllocations:
    def test_valid(self, jane_doe_draft):
        assert validate_allocations(jane_doe_draft['assetAllocation']).is_valid

    def test_total_of_hundred_accepted(self):
        result = validate_allocations({'allocations': [
            {'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 60},
            {'assetId': 'a1', 'beneficiaryId': 'b2', 'percentage': 40},
        ]})
        assert result.is_valid

    def test_total_of_hundred_and_one_rejected(self):
        result = validate_allocations({'allocations': [
            {'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 60},
            {'assetId': 'a1', 'beneficiaryId': 'b2', 'percentage': 41},
        ]})
        assert not result.is_valid
        assert [e.code for e in result.errors] == ['over_allocated']

    def test_totals_are_per_asset(self):
        result = validate_allocations({'allocations': [
            {'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 80},
            {'assetId': 'a2', 'beneficiaryId': 'b1', 'percentage': 80},
        ]})
        assert result.is_valid

    def test_fractional_shares_summing_to_hundred(self):
        result = validate_allocations({'allocations': [
            {'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 33.33},
            {'assetId': 'a1', 'beneficiaryId': 'b2', 'percentage': 33.33},
            {'assetId': 'a1', 'beneficiaryId': 'b3', 'percentage': 33.34},
        ]})
        assert result.is_valid

    def test_unknown_asset_reference(self):
        result = validate_allocations(
            {'allocations': [{'assetId': 'gone', 'beneficiaryId': 'b1', 'percentage': 10}]},
            asset_ids=['a1']
        )
        assert result.errors[0].code == 'unknown_reference'

    def test_nan_share_does_not_hide_over_allocation(self):
        result = validate_allocations({'allocations': [
            {'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 60},
            {'assetId': 'a1', 'beneficiaryId': 'b2', 'percentage': 'nan'},
            {'assetId': 'a1', 'beneficiaryId': 'b3', 'percentage': 60},
        ]})
        assert not result.is_valid
        codes = [e.code for e in result.errors]
        assert 'type' in codes
        assert 'over_allocated' in codes

    def test_list_asset_id_rejected(self):
        result = validate_allocations({'allocations': [
            {'assetId': ['a1'], 'beneficiaryId': 'b1', 'percentage': 60},
        ]}, asset_ids=['a1'])
        assert [(e.field, e.code) for e in result.errors] == [('allocations[0].assetId', 'type')]


class TestAssetAllocationModal:
    def test_same_total_rule_as_wizard_step(self):
        result = validate_asset_allocation({'assetId': 'a1', 'allocations': [
            {'beneficiaryId': 'b1', 'percentage': 60},
            {'beneficiaryId': 'b2', 'percentage': 41},
        ]})
        assert [e.code for e in result.errors] == ['over_allocated']

    def test_counts_existing_allocations_of_the_asset(self):
        existing = [
            {'id': 'x1', 'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 70},
            {'id': 'x2', 'assetId': 'a2', 'beneficiaryId': 'b1', 'percentage': 90},
        ]
        result = validate_asset_allocation(
            {'assetId': 'a1', 'allocations': [{'beneficiaryId': 'b2', 'percentage': 31}]},
            existing_allocations=existing
        )
        assert not result.is_valid

    def test_replaced_rows_not_double_counted(self):
        existing = [{'id': 'x1', 'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 70}]
        result = validate_asset_allocation(
            {'assetId': 'a1', 'allocations': [{'id': 'x1', 'beneficiaryId': 'b1', 'percentage': 100}]},
            existing_allocations=existing
        )
        assert result.is_valid

    def test_requires_at_least_one_share(self):
        result = validate_asset_allocation({'assetId': 'a1', 'allocations': []})
        assert result.errors[0].code == 'required'

    def test_nan_share_rejected(self):
        existing = [{'id': 'x1', 'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 90}]
        result = validate_asset_allocation(
            {'assetId': 'a1', 'allocations': [{'beneficiaryId': 'b2', 'percentage': 'NaN'}]},
            existing_allocations=existing
        )
        assert not result.is_valid
        assert result.errors[0].code == 'type'

    def test_list_asset_id_rejected(self):
        existing = [{'id': 'x1', 'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 90}]
        result = validate_asset_allocation(
            {'assetId': ['a1'], 'allocations': [{'id': ['x1'], 'beneficiaryId': 'b2', 'percentage': 10}]},
            existing_allocations=existing
        )
        assert [e.code for e in result.errors] == ['type']


class TestExecutor:
    def test_valid(self, executor_section):
        assert validate_executor(executor_section).is_valid

    def test_second_executor_required_when_flag_set(self, executor_section):
        executor_section['addSecondExecutor'] = True
        result = validate_executor(executor_section)
        assert result.errors[0].field == 'secondExecutor'

    def test_second_executor_validated(self, executor_section):
        executor_section['addSecondExecutor'] = True
        executor_section['secondExecutor'] = dict(executor_section['primaryExecutor'], aadhar='1')
        result = validate_executor(executor_section)
        assert list(result.get_errors_by_field()) == ['secondExecutor.aadhar']


class TestValidateStep:
    def test_dispatches_by_section(self, personal_info):
        assert validate_step('personalInfo', personal_info).is_valid
        assert not validate_step('familyDetails', {}).is_valid

    def test_unknown_section(self):
        result = validate_step('pets', {})
        assert result.errors[0].code == 'unknown_section'

    @pytest.mark.parametrize('section', ['assets', 'beneficiaries', 'assetAllocation'])
    def test_empty_list_sections_are_valid(self, section):
        assert validate_step(section, {}).is_valid
