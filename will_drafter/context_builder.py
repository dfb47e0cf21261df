"""
Context Builder Module

Transforms a raw draft (as stored and edited by the wizard) into typed
entities with derived flags. All derived flags are computed in one place only.

Draft payloads use the wizard's camelCase keys; the entities here use
snake_case attributes and convert back with to_dict().
"""

import math
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Any, Optional, Tuple


# Section names, in wizard order
SECTION_PERSONAL_INFO = 'personalInfo'
SECTION_FAMILY_DETAILS = 'familyDetails'
SECTION_ASSETS = 'assets'
SECTION_BENEFICIARIES = 'beneficiaries'
SECTION_ASSET_ALLOCATION = 'assetAllocation'
SECTION_EXECUTOR = 'executor'

SINGLETON_SECTIONS = [SECTION_PERSONAL_INFO, SECTION_FAMILY_DETAILS, SECTION_EXECUTOR]

# List sections and the key holding their items inside the section payload
LIST_SECTIONS: Dict[str, str] = {
    SECTION_ASSETS: 'assets',
    SECTION_BENEFICIARIES: 'beneficiaries',
    SECTION_ASSET_ALLOCATION: 'allocations',
}

ALL_SECTIONS = [
    SECTION_PERSONAL_INFO,
    SECTION_FAMILY_DETAILS,
    SECTION_ASSETS,
    SECTION_BENEFICIARIES,
    SECTION_ASSET_ALLOCATION,
    SECTION_EXECUTOR,
]

# Asset discriminants
ASSET_BANK_ACCOUNT = 'Bank Account'
ASSET_REAL_ESTATE = 'Real Estate'
ASSET_VEHICLE = 'Vehicle'
ASSET_INVESTMENTS = 'Stocks/Investments'
ASSET_INSURANCE = 'Insurance Policy'
ASSET_VALUABLES = 'Jewelry/Valuables'
ASSET_OTHER = 'Other'

ASSET_TYPES = [
    ASSET_BANK_ACCOUNT,
    ASSET_REAL_ESTATE,
    ASSET_VEHICLE,
    ASSET_INVESTMENTS,
    ASSET_INSURANCE,
    ASSET_VALUABLES,
    ASSET_OTHER,
]


def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def section_items(draft: Dict[str, Any], section: str) -> List[Dict[str, Any]]:
    """Return the item list of a list section, tolerating missing pieces."""
    items = _as_list(_as_dict(draft.get(section)).get(LIST_SECTIONS[section]))
    return [item for item in items if isinstance(item, dict)]


def normalize_family_details(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Clear spouseName unless the testator is married."""
    payload = dict(payload or {})
    if payload.get('maritalStatus') != 'married':
        payload['spouseName'] = ''
    return payload


@dataclass
class AssetDetails:
    """Fields shared by every asset kind."""
    description: str = ''
    value: str = ''

    # (payload key, attribute) pairs; variants extend this
    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ('description', 'description'),
        ('value', 'value'),
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AssetDetails':
        data = _as_dict(data)
        return cls(**{attr: _text(data.get(key)) for key, attr in cls.FIELDS})

    def to_dict(self) -> Dict[str, str]:
        return {key: getattr(self, attr) for key, attr in self.FIELDS}


@dataclass
class BankAccountDetails(AssetDetails):
    bank_name: str = ''
    account_type: str = ''
    account_number: str = ''
    branch_address: str = ''

    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = AssetDetails.FIELDS + (
        ('bankName', 'bank_name'),
        ('accountType', 'account_type'),
        ('accountNumber', 'account_number'),
        ('branchAddress', 'branch_address'),
    )


@dataclass
class RealEstateDetails(AssetDetails):
    property_type: str = ''
    property_address: str = ''
    survey_number: str = ''
    area: str = ''

    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = AssetDetails.FIELDS + (
        ('propertyType', 'property_type'),
        ('propertyAddress', 'property_address'),
        ('surveyNumber', 'survey_number'),
        ('area', 'area'),
    )


@dataclass
class VehicleDetails(AssetDetails):
    vehicle_type: str = ''
    make_model: str = ''
    registration_number: str = ''
    chassis_number: str = ''

    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = AssetDetails.FIELDS + (
        ('vehicleType', 'vehicle_type'),
        ('makeModel', 'make_model'),
        ('registrationNumber', 'registration_number'),
        ('chassisNumber', 'chassis_number'),
    )


@dataclass
class InvestmentDetails(AssetDetails):
    broker_name: str = ''
    demat_account_number: str = ''
    shares_description: str = ''

    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = AssetDetails.FIELDS + (
        ('brokerName', 'broker_name'),
        ('dematAccountNumber', 'demat_account_number'),
        ('sharesDescription', 'shares_description'),
    )


@dataclass
class InsuranceDetails(AssetDetails):
    insurer: str = ''
    policy_number: str = ''
    sum_assured: str = ''
    nominee_name: str = ''

    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = AssetDetails.FIELDS + (
        ('insurer', 'insurer'),
        ('policyNumber', 'policy_number'),
        ('sumAssured', 'sum_assured'),
        ('nomineeName', 'nominee_name'),
    )


@dataclass
class ValuablesDetails(AssetDetails):
    item_name: str = ''
    identifying_marks: str = ''

    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = AssetDetails.FIELDS + (
        ('itemName', 'item_name'),
        ('identifyingMarks', 'identifying_marks'),
    )


@dataclass
class OtherAssetDetails(AssetDetails):
    other_type: str = ''
    other_details: str = ''

    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = AssetDetails.FIELDS + (
        ('otherType', 'other_type'),
        ('otherDetails', 'other_details'),
    )


ASSET_DETAIL_CLASSES = {
    ASSET_BANK_ACCOUNT: BankAccountDetails,
    ASSET_REAL_ESTATE: RealEstateDetails,
    ASSET_VEHICLE: VehicleDetails,
    ASSET_INVESTMENTS: InvestmentDetails,
    ASSET_INSURANCE: InsuranceDetails,
    ASSET_VALUABLES: ValuablesDetails,
    ASSET_OTHER: OtherAssetDetails,
}


@dataclass
class Asset:
    """An asset; details is the variant selected by type."""
    id: str = ''
    type: str = ''
    details: AssetDetails = field(default_factory=AssetDetails)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Asset':
        data = _as_dict(data)
        asset_type = _text(data.get('type'))
        details_data = dict(_as_dict(data.get('details')))
        # Older drafts kept description/value beside the details
        for key in ('description', 'value'):
            if not details_data.get(key) and data.get(key):
                details_data[key] = data.get(key)
        details_cls = ASSET_DETAIL_CLASSES.get(asset_type, AssetDetails)
        return cls(
            id=_text(data.get('id')),
            type=asset_type,
            details=details_cls.from_dict(details_data)
        )

    @property
    def description(self) -> str:
        return self.details.description

    @property
    def value(self) -> str:
        return self.details.value

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'type': self.type, 'details': self.details.to_dict()}


@dataclass
class PersonalInfo:
    """The testator."""
    gender: str = ''
    full_name: str = ''
    dob: Any = None
    father_husband_name: str = ''
    religion: str = ''
    aadhar: str = ''
    occupation: str = ''
    address: str = ''
    email: str = ''
    mobile: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PersonalInfo':
        data = _as_dict(data)
        return cls(
            gender=_text(data.get('gender')),
            full_name=_text(data.get('fullName')),
            dob=data.get('dob'),
            father_husband_name=_text(data.get('fatherHusbandName')),
            religion=_text(data.get('religion')),
            aadhar=_text(data.get('aadhar')),
            occupation=_text(data.get('occupation')),
            address=_text(data.get('address')),
            email=_text(data.get('email')),
            mobile=_text(data.get('mobile'))
        )


@dataclass
class Child:
    name: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Child':
        return cls(name=_text(_as_dict(data).get('name')))


@dataclass
class FamilyDetails:
    """Marital status, spouse and children of the testator."""
    marital_status: str = ''
    spouse_name: str = ''
    children: List[Child] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FamilyDetails':
        data = _as_dict(data)
        return cls(
            marital_status=_text(data.get('maritalStatus')),
            spouse_name=_text(data.get('spouseName')),
            children=[Child.from_dict(c) for c in _as_list(data.get('children'))]
        )

    @property
    def is_married(self) -> bool:
        return self.marital_status == 'married'


@dataclass
class Beneficiary:
    id: str = ''
    name: str = ''
    relationship: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Beneficiary':
        data = _as_dict(data)
        return cls(
            id=_text(data.get('id')),
            name=_text(data.get('name')),
            relationship=_text(data.get('relationship'))
        )


@dataclass
class Allocation:
    id: str = ''
    asset_id: str = ''
    beneficiary_id: str = ''
    percentage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Allocation':
        data = _as_dict(data)
        return cls(
            id=_text(data.get('id')),
            asset_id=_text(data.get('assetId')),
            beneficiary_id=_text(data.get('beneficiaryId')),
            percentage=coerce_percentage(data.get('percentage'))
        )


def coerce_percentage(value: Any) -> Optional[float]:
    """
    Coerce a percentage input (number or numeric string) to float.

    NaN and infinities give None, like any other non-number.
    """
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


@dataclass
class ExecutorPerson:
    full_name: str = ''
    father_name: str = ''
    aadhar: str = ''
    address: str = ''
    email: str = ''
    mobile: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecutorPerson':
        data = _as_dict(data)
        return cls(
            full_name=_text(data.get('fullName')),
            father_name=_text(data.get('fatherName')),
            aadhar=_text(data.get('aadhar')),
            address=_text(data.get('address')),
            email=_text(data.get('email')),
            mobile=_text(data.get('mobile'))
        )


@dataclass
class ExecutorSection:
    """Executor appointment, instructions and place of signing."""
    primary_executor: ExecutorPerson = field(default_factory=ExecutorPerson)
    add_second_executor: bool = False
    second_executor: Optional[ExecutorPerson] = None
    special_instructions: str = ''
    city: str = ''
    state: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecutorSection':
        data = _as_dict(data)
        second = data.get('secondExecutor')
        return cls(
            primary_executor=ExecutorPerson.from_dict(data.get('primaryExecutor')),
            add_second_executor=data.get('addSecondExecutor') is True,
            second_executor=ExecutorPerson.from_dict(second) if isinstance(second, dict) else None,
            special_instructions=str(data.get('specialInstructions') or ''),
            city=_text(data.get('city')),
            state=_text(data.get('state'))
        )


@dataclass
class WillContext:
    """
    Complete context object for document rendering.
    Contains all typed entities and derived flags.
    """
    personal_info: PersonalInfo = field(default_factory=PersonalInfo)
    family_details: FamilyDetails = field(default_factory=FamilyDetails)
    assets: List[Asset] = field(default_factory=list)
    beneficiaries: List[Beneficiary] = field(default_factory=list)
    allocations: List[Allocation] = field(default_factory=list)
    executor: ExecutorSection = field(default_factory=ExecutorSection)

    # Finalized-will metadata, when editing a saved version
    version: Optional[int] = None
    created_at: Any = None

    # Derived flags (computed in build_context)
    has_executor: bool = False
    has_second_executor: bool = False
    has_disposition: bool = False
    has_special_instructions: bool = False
    has_signing_place: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for debugging."""
        return {
            'testator': self.personal_info.full_name,
            'derived_flags': {
                'has_executor': self.has_executor,
                'has_second_executor': self.has_second_executor,
                'has_disposition': self.has_disposition,
                'has_special_instructions': self.has_special_instructions,
                'has_signing_place': self.has_signing_place,
            },
            'counts': {
                'assets': len(self.assets),
                'beneficiaries': len(self.beneficiaries),
                'allocations': len(self.allocations),
            }
        }


def build_context(draft: Dict[str, Any]) -> WillContext:
    """
    Build the will context from a (possibly partial) draft.

    This is the single source of truth for all derived flags.

    Args:
        draft: Draft dictionary keyed by section name

    Returns:
        WillContext with typed entities and derived flags
    """
    from will_drafter.reference_resolver import implicit_beneficiaries

    draft = _as_dict(draft)
    context = WillContext()

    context.personal_info = PersonalInfo.from_dict(draft.get(SECTION_PERSONAL_INFO))
    context.family_details = FamilyDetails.from_dict(draft.get(SECTION_FAMILY_DETAILS))
    context.assets = [Asset.from_dict(a) for a in section_items(draft, SECTION_ASSETS)]
    context.beneficiaries = [
        Beneficiary.from_dict(b) for b in section_items(draft, SECTION_BENEFICIARIES)
    ]

    # Rows without an asset are unfinished form rows
    context.allocations = [
        allocation for allocation in (
            Allocation.from_dict(a) for a in section_items(draft, SECTION_ASSET_ALLOCATION)
        )
        if allocation.asset_id
    ]

    context.executor = ExecutorSection.from_dict(draft.get(SECTION_EXECUTOR))

    version = draft.get('version')
    context.version = version if isinstance(version, int) and not isinstance(version, bool) else None
    context.created_at = draft.get('createdAt')

    # Derived flags
    executor = context.executor
    context.has_executor = bool(executor.primary_executor.full_name)
    context.has_second_executor = bool(
        executor.add_second_executor
        and executor.second_executor is not None
        and executor.second_executor.full_name
    )

    has_any_beneficiary = bool(context.beneficiaries) or bool(
        implicit_beneficiaries(context.family_details)
    )
    context.has_disposition = bool(context.assets) and has_any_beneficiary and bool(context.allocations)
    context.has_special_instructions = bool(executor.special_instructions.strip())
    context.has_signing_place = bool(executor.city and executor.state)

    return context
