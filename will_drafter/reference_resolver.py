"""
Reference Resolver Module

Turns allocation references (asset ids and beneficiary ids) into display
names. The spouse and the children are implicit beneficiaries: they are not
stored as beneficiary records, their ids are computed from the family
details with slugify(), so the same id is produced by the allocation step,
the review summary and the document renderer.

Every function here accepts either typed entities from context_builder or
the raw draft dictionaries, and none of them raise on missing references.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from will_drafter.context_builder import (
    Asset, Beneficiary, FamilyDetails, Allocation,
    build_context
)
from will_drafter.utils import format_currency, format_percentage


UNKNOWN_ASSET = 'Unknown Asset'
UNKNOWN_BENEFICIARY = 'Unknown Beneficiary'

SPOUSE_ID_PREFIX = 'spouse-'
CHILD_ID_PREFIX = 'child-'

WHITESPACE_PATTERN = re.compile(r'\s+')


@dataclass
class BeneficiaryOption:
    """A selectable beneficiary, explicit or implicit."""
    id: str
    name: str
    implicit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'implicit': self.implicit}


def slugify(name: Optional[str]) -> str:
    """
    Lowercase a name and replace each whitespace run with one hyphen.

    >>> slugify('Asha  Rao')
    'asha-rao'
    """
    if not name:
        return ''
    return WHITESPACE_PATTERN.sub('-', str(name)).lower()


def spouse_beneficiary_id(spouse_name: Optional[str]) -> str:
    return f'{SPOUSE_ID_PREFIX}{slugify(spouse_name)}'


def child_beneficiary_id(child_name: Optional[str]) -> str:
    return f'{CHILD_ID_PREFIX}{slugify(child_name)}'


def _family(family_details: Union[FamilyDetails, Dict[str, Any], None]) -> FamilyDetails:
    if isinstance(family_details, FamilyDetails):
        return family_details
    return FamilyDetails.from_dict(family_details or {})


def _assets(assets: Optional[List[Any]]) -> List[Asset]:
    return [a if isinstance(a, Asset) else Asset.from_dict(a) for a in (assets or [])]


def _beneficiaries(beneficiaries: Optional[List[Any]]) -> List[Beneficiary]:
    return [
        b if isinstance(b, Beneficiary) else Beneficiary.from_dict(b)
        for b in (beneficiaries or [])
    ]


def implicit_beneficiaries(family_details: Union[FamilyDetails, Dict[str, Any], None]) -> List[BeneficiaryOption]:
    """
    Compute the spouse and children as beneficiary options.

    The spouse is only offered while the testator is married and the
    spouse is named; children are offered when named.
    """
    family = _family(family_details)
    options = []

    if family.is_married and family.spouse_name:
        options.append(BeneficiaryOption(
            id=spouse_beneficiary_id(family.spouse_name),
            name=f'{family.spouse_name} (Spouse)',
            implicit=True
        ))

    for child in family.children:
        if child.name:
            options.append(BeneficiaryOption(
                id=child_beneficiary_id(child.name),
                name=f'{child.name} (Child)',
                implicit=True
            ))

    return options


def combined_beneficiaries(beneficiaries: Optional[List[Any]],
                           family_details: Union[FamilyDetails, Dict[str, Any], None]) -> List[BeneficiaryOption]:
    """
    Explicit beneficiaries followed by implicit ones, unique by id.

    Args:
        beneficiaries: Explicit beneficiary records
        family_details: Family details used to compute spouse/children

    Returns:
        Beneficiary options in selection order
    """
    options: Dict[str, BeneficiaryOption] = {}
    for b in _beneficiaries(beneficiaries):
        if b.id:
            options[b.id] = BeneficiaryOption(id=b.id, name=b.name)
    for option in implicit_beneficiaries(family_details):
        options.setdefault(option.id, option)
    return list(options.values())


def resolve_asset_name(asset_id: Optional[str], assets: Optional[List[Any]]) -> str:
    """
    Look up the description of an asset.

    Returns:
        The asset description, or UNKNOWN_ASSET if absent or unnamed
    """
    for asset in _assets(assets):
        if asset.id and asset.id == asset_id:
            return asset.description or UNKNOWN_ASSET
    return UNKNOWN_ASSET


def resolve_beneficiary_name(beneficiary_id: Optional[str],
                             beneficiaries: Optional[List[Any]],
                             family_details: Union[FamilyDetails, Dict[str, Any], None]) -> str:
    """
    Resolve a beneficiary id to a display name.

    Order: explicit beneficiaries, then the spouse id, then each child id.

    Returns:
        The display name, or UNKNOWN_BENEFICIARY if nothing matches
    """
    if not beneficiary_id:
        return UNKNOWN_BENEFICIARY

    for b in _beneficiaries(beneficiaries):
        if b.id == beneficiary_id:
            return b.name

    family = _family(family_details)

    if family.spouse_name and beneficiary_id == spouse_beneficiary_id(family.spouse_name):
        return f'{family.spouse_name} (Spouse)'

    for child in family.children:
        if child.name and beneficiary_id == child_beneficiary_id(child.name):
            return f'{child.name} (Child)'

    return UNKNOWN_BENEFICIARY


def group_allocations_by_asset(allocations: Optional[List[Any]]) -> Dict[str, List[Allocation]]:
    """Group allocations by asset id, preserving order; rows without an asset are skipped."""
    grouped: Dict[str, List[Allocation]] = {}
    for raw in allocations or []:
        allocation = raw if isinstance(raw, Allocation) else Allocation.from_dict(raw)
        if not allocation.asset_id:
            continue
        grouped.setdefault(allocation.asset_id, []).append(allocation)
    return grouped


def build_review_summary(draft: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the per-asset allocation summary shown on the review step.

    Uses the same resolvers as the document renderer, so names shown for
    review match the generated document.

    Args:
        draft: Draft dictionary

    Returns:
        Dict with one entry per asset and the list of unallocated assets
    """
    context = build_context(draft)
    grouped = group_allocations_by_asset(context.allocations)

    assets_summary = []
    for asset in context.assets:
        rows = grouped.get(asset.id, [])
        allocated = sum(a.percentage or 0 for a in rows)
        assets_summary.append({
            'assetId': asset.id,
            'type': asset.type,
            'description': asset.description or UNKNOWN_ASSET,
            'value': format_currency(asset.value),
            'allocations': [
                {
                    'id': a.id,
                    'beneficiaryId': a.beneficiary_id,
                    'beneficiaryName': resolve_beneficiary_name(
                        a.beneficiary_id, context.beneficiaries, context.family_details
                    ),
                    'percentage': a.percentage,
                    'share': format_percentage(a.percentage),
                }
                for a in rows
            ],
            'allocatedPercentage': allocated,
            'residuePercentage': max(0.0, 100.0 - allocated),
        })

    known_ids = {asset.id for asset in context.assets}
    dangling = [
        {'id': a.id, 'assetId': a.asset_id, 'assetName': UNKNOWN_ASSET}
        for a in context.allocations if a.asset_id not in known_ids
    ]

    return {
        'testator': context.personal_info.full_name,
        'assets': assets_summary,
        'unallocatedAssets': [
            entry['assetId'] for entry in assets_summary if not entry['allocations']
        ],
        'danglingAllocations': dangling,
        'beneficiaryOptions': [
            option.to_dict()
            for option in combined_beneficiaries(context.beneficiaries, context.family_details)
        ],
    }
