"""
Tests for reference resolution: slugs, implicit beneficiaries and names.
"""

import pytest

from will_drafter.context_builder import FamilyDetails, Child
from will_drafter.reference_resolver import (
    slugify, spouse_beneficiary_id, child_beneficiary_id,
    implicit_beneficiaries, combined_beneficiaries,
    resolve_asset_name, resolve_beneficiary_name, build_review_summary,
    UNKNOWN_ASSET, UNKNOWN_BENEFICIARY
)


MARRIED_FAMILY = {
    'maritalStatus': 'married',
    'spouseName': 'Asha Rao',
    'children': [{'name': 'Kiran  Rao'}],
}


class TestSlugs:
    @pytest.mark.parametrize('name, slug', [
        ('Asha Rao', 'asha-rao'),
        ('Asha   Rao', 'asha-rao'),
        ('ASHA\tRao', 'asha-rao'),
        ('Asha', 'asha'),
        ('', ''),
        (None, ''),
    ])
    def test_slugify(self, name, slug):
        assert slugify(name) == slug

    def test_ids_are_reproducible(self):
        assert spouse_beneficiary_id('Asha Rao') == spouse_beneficiary_id('Asha Rao')
        assert spouse_beneficiary_id('Asha Rao') == 'spouse-asha-rao'
        assert child_beneficiary_id('Kiran  Rao') == 'child-kiran-rao'


class TestImplicitBeneficiaries:
    def test_spouse_and_children(self):
        options = implicit_beneficiaries(MARRIED_FAMILY)
        assert [(o.id, o.name) for o in options] == [
            ('spouse-asha-rao', 'Asha Rao (Spouse)'),
            ('child-kiran-rao', 'Kiran  Rao (Child)'),
        ]
        assert all(o.implicit for o in options)

    def test_no_spouse_unless_married(self):
        family = dict(MARRIED_FAMILY, maritalStatus='divorced')
        ids = [o.id for o in implicit_beneficiaries(family)]
        assert ids == ['child-kiran-rao']

    def test_unnamed_children_skipped(self):
        family = FamilyDetails(marital_status='unmarried', children=[Child(name=''), Child(name='Meera')])
        assert [o.id for o in implicit_beneficiaries(family)] == ['child-meera']

    def test_combined_explicit_first_and_deduplicated(self):
        explicit = [
            {'id': 'b1', 'name': 'Jane Doe'},
            {'id': 'spouse-asha-rao', 'name': 'Asha (entered by hand)'},
        ]
        options = combined_beneficiaries(explicit, MARRIED_FAMILY)
        assert [o.id for o in options] == ['b1', 'spouse-asha-rao', 'child-kiran-rao']
        assert options[1].name == 'Asha (entered by hand)'


class TestResolution:
    def test_spouse_resolves(self):
        assert resolve_beneficiary_name('spouse-asha-rao', [], MARRIED_FAMILY) == 'Asha Rao (Spouse)'

    def test_child_resolves(self):
        assert resolve_beneficiary_name('child-kiran-rao', [], MARRIED_FAMILY) == 'Kiran  Rao (Child)'

    def test_explicit_list_checked_first(self):
        explicit = [{'id': 'spouse-asha-rao', 'name': 'Override'}]
        assert resolve_beneficiary_name('spouse-asha-rao', explicit, MARRIED_FAMILY) == 'Override'

    def test_unknown_beneficiary(self):
        assert resolve_beneficiary_name('b404', [{'id': 'b1', 'name': 'Jane'}], {}) == UNKNOWN_BENEFICIARY
        assert resolve_beneficiary_name(None, None, None) == UNKNOWN_BENEFICIARY

    def test_asset_name(self):
        assets = [{'id': 'a1', 'type': 'Other', 'details': {'description': 'Painting'}}]
        assert resolve_asset_name('a1', assets) == 'Painting'
        assert resolve_asset_name('a2', assets) == UNKNOWN_ASSET
        assert resolve_asset_name('a1', None) == UNKNOWN_ASSET


class TestReviewSummary:
    def test_jane_doe_summary(self, jane_doe_draft):
        summary = build_review_summary(jane_doe_draft)
        asset = summary['assets'][0]
        assert asset['description'] == 'SBI savings account'
        assert asset['value'] == '₹5,00,000'
        assert asset['allocations'][0]['beneficiaryName'] == 'Jane Doe'
        assert asset['allocations'][0]['share'] == '60%'
        assert asset['allocatedPercentage'] == 60
        assert asset['residuePercentage'] == 40
        assert summary['unallocatedAssets'] == []

    def test_dangling_and_unallocated(self, jane_doe_draft):
        jane_doe_draft['assets']['assets'].append(
            {'id': 'a2', 'type': 'Other', 'details': {'description': 'Watch'}}
        )
        jane_doe_draft['assetAllocation']['allocations'].append(
            {'id': 'al2', 'assetId': 'deleted', 'beneficiaryId': 'b1', 'percentage': 10}
        )
        summary = build_review_summary(jane_doe_draft)
        assert summary['unallocatedAssets'] == ['a2']
        assert summary['danglingAllocations'][0]['assetName'] == UNKNOWN_ASSET

    def test_empty_draft(self):
        summary = build_review_summary({})
        assert summary['assets'] == []
        assert summary['beneficiaryOptions'] == []
