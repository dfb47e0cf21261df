"""
Field-level validation for each wizard step.

Validation Rules Documentation:
===============================

1. PERSONAL INFORMATION
   - gender: required enum (male, female, other)
   - fullName, fatherHusbandName, occupation: required, min 2 chars
   - dob: required, valid date, testator must be 18+
   - religion: required
   - aadhar: exactly 12 digits
   - address: required, min 10 chars
   - email: valid format; mobile: exactly 10 digits

2. FAMILY DETAILS
   - maritalStatus: required enum (married, unmarried, divorced, widowed)
   - spouseName: required (min 2) only when married
   - children: optional list, each name min 2 chars

3. ASSETS
   - type: one of seven kinds; details validated against that kind only
   - description: min 3 chars; value: digits only, optional

4. BENEFICIARIES
   - name and relationship: min 2 chars

5. ASSET ALLOCATION
   - assetId and beneficiaryId: required
   - percentage: number in (0, 100]
   - For every asset, percentages must total at most 100
   - The wizard step and the single-asset editor apply the same total rule

6. EXECUTOR
   - primaryExecutor: fullName, fatherName (min 2), aadhar (12 digits),
     address (min 10), email, mobile (10 digits)
   - secondExecutor: same rules, required when addSecondExecutor is set
"""

import re
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import date

from will_drafter.context_builder import (
    ASSET_TYPES, ASSET_BANK_ACCOUNT, ASSET_REAL_ESTATE, ASSET_VEHICLE,
    ASSET_INVESTMENTS, ASSET_INSURANCE, ASSET_VALUABLES, ASSET_OTHER,
    SECTION_PERSONAL_INFO, SECTION_FAMILY_DETAILS, SECTION_ASSETS,
    SECTION_BENEFICIARIES, SECTION_ASSET_ALLOCATION, SECTION_EXECUTOR,
    LIST_SECTIONS, coerce_percentage
)
from will_drafter.utils import parse_date


@dataclass
class ValidationError:
    """Represents a single validation error with precise field path."""
    field: str
    message: str
    code: str
    section: str = ''  # For grouping errors by section


@dataclass
class ValidationResult:
    """Container for validation results."""
    errors: List[ValidationError] = field(default_factory=list)
    is_valid: bool = True

    def add_error(self, field: str, message: str, code: str = 'invalid', section: str = ''):
        """Add a validation error."""
        self.errors.append(ValidationError(field, message, code, section))
        self.is_valid = False

    def merge(self, other: 'ValidationResult'):
        """Fold another result's errors into this one."""
        for error in other.errors:
            self.add_error(error.field, error.message, error.code, error.section)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            'ok': self.is_valid,
            'errors': [
                {'field': e.field, 'message': e.message, 'code': e.code, 'section': e.section}
                for e in self.errors
            ],
        }

    def get_errors_by_field(self) -> Dict[str, List[str]]:
        """Group error messages by field path for inline display."""
        by_field: Dict[str, List[str]] = {}
        for error in self.errors:
            by_field.setdefault(error.field, []).append(error.message)
        return by_field


# Constants for validation
MIN_NAME_LENGTH = 2
MIN_ADDRESS_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 3
MAX_NAME_LENGTH = 100
MAX_TEXT_LENGTH = 2000
MAX_PERCENTAGE = 100.0
MIN_TESTATOR_AGE = 18

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
AADHAR_PATTERN = re.compile(r'^\d{12}$')
MOBILE_PATTERN = re.compile(r'^\d{10}$')
DIGITS_PATTERN = re.compile(r'^\d+$')
HTML_TAG_PATTERN = re.compile(r'<[^>]+>')

# Enums - strictly enforced
GENDERS = ['male', 'female', 'other']
MARITAL_STATUSES = ['married', 'unmarried', 'divorced', 'widowed']
BANK_ACCOUNT_TYPES = ['Savings', 'Current', 'Fixed Deposit (FD)', 'Recurring Deposit (RD)']
PROPERTY_TYPES = [
    'Flat/Apartment', 'Independent House', 'Agricultural Land',
    'Non-Agricultural Land', 'Commercial Property'
]
VEHICLE_TYPES = ['Car', 'Motorcycle', 'Scooter', 'Other']


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == '')


def validate_string(value: Any, field_name: str, result: ValidationResult,
                    required: bool = True, min_length: int = 0,
                    max_length: int = MAX_NAME_LENGTH, message: str = None,
                    section: str = '') -> bool:
    """Validate a string field. Lists, dicts and numbers are rejected."""
    if _is_blank(value):
        if required:
            result.add_error(field_name, message or 'This field is required', 'required', section)
        return False

    if not isinstance(value, str):
        result.add_error(field_name, 'Must be text', 'type', section)
        return False

    str_value = value.strip()

    if len(str_value) < min_length:
        result.add_error(
            field_name,
            message or f'Must be at least {min_length} characters',
            'min_length', section
        )
        return False

    if len(str_value) > max_length:
        result.add_error(field_name, f'Maximum {max_length} characters allowed', 'max_length', section)
        return False

    if HTML_TAG_PATTERN.search(str_value):
        result.add_error(field_name, 'HTML tags are not allowed', 'invalid_chars', section)
        return False

    return True


def validate_pattern(value: Any, field_name: str, pattern: re.Pattern, message: str,
                     result: ValidationResult, required: bool = True, section: str = '') -> bool:
    """Validate a string field against a regex; whole numbers are matched as digits."""
    if _is_blank(value):
        if required:
            result.add_error(field_name, message, 'required', section)
        return False

    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        result.add_error(field_name, 'Must be text', 'type', section)
        return False

    if not pattern.match(value.strip()):
        result.add_error(field_name, message, 'format', section)
        return False

    return True


def validate_email(value: Any, field_name: str, result: ValidationResult,
                   required: bool = True, section: str = '') -> bool:
    """Validate an email address."""
    if _is_blank(value):
        if required:
            result.add_error(field_name, 'This field is required', 'required', section)
        return False

    if not isinstance(value, str):
        result.add_error(field_name, 'Must be text', 'type', section)
        return False

    str_value = value.strip()

    if len(str_value) > 254:
        result.add_error(field_name, 'Email address is too long', 'max_length', section)
        return False

    if not EMAIL_PATTERN.match(str_value):
        result.add_error(field_name, 'Invalid email address.', 'format', section)
        return False

    return True


def validate_enum(value: Any, field_name: str, allowed: List[str],
                  result: ValidationResult, required: bool = True,
                  message: str = None, section: str = '') -> bool:
    """Validate an enum field with strict matching."""
    if value is None or str(value).strip() == '':
        if required:
            result.add_error(field_name, message or 'This field is required', 'required', section)
        return False

    if str(value).strip() not in allowed:
        result.add_error(field_name, f'Must be one of: {", ".join(allowed)}', 'enum', section)
        return False

    return True


def validate_dob(value: Any, field_name: str, result: ValidationResult,
                 today: Optional[date] = None, section: str = '') -> bool:
    """Validate a date of birth: a real date, not in the future, 18+ years ago."""
    if value is None or value == '':
        result.add_error(field_name, 'A date of birth is required.', 'required', section)
        return False

    dob = parse_date(value)
    if dob is None:
        result.add_error(field_name, 'Please enter a valid date (YYYY-MM-DD)', 'format', section)
        return False

    today = today or date.today()
    age = today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))
    if age < MIN_TESTATOR_AGE:
        result.add_error(field_name, f'Must be at least {MIN_TESTATOR_AGE} years old', 'min_age', section)
        return False

    return True


def validate_percentage(value: Any, field_name: str, result: ValidationResult,
                        section: str = '') -> bool:
    """Validate a share: a number greater than 0 and at most 100."""
    if value is None or value == '':
        result.add_error(field_name, 'Percentage is required.', 'required', section)
        return False

    num = coerce_percentage(value)
    if num is None:
        result.add_error(field_name, 'Must be a valid number', 'type', section)
        return False

    if num <= 0:
        result.add_error(field_name, 'Percentage must be greater than 0.', 'min_value', section)
        return False

    if num > MAX_PERCENTAGE:
        result.add_error(field_name, 'Percentage cannot exceed 100.', 'max_value', section)
        return False

    return True


# =============================================================================
# Step validators
# =============================================================================

def validate_personal_info(data: Dict[str, Any], today: Optional[date] = None) -> ValidationResult:
    """Validate the personal information step."""
    result = ValidationResult()
    section = SECTION_PERSONAL_INFO
    data = data if isinstance(data, dict) else {}

    validate_enum(data.get('gender'), 'gender', GENDERS, result,
                  message='Please select a gender.', section=section)
    validate_string(data.get('fullName'), 'fullName', result, min_length=MIN_NAME_LENGTH,
                    message='Full name must be at least 2 characters.', section=section)
    validate_dob(data.get('dob'), 'dob', result, today=today, section=section)
    validate_string(data.get('fatherHusbandName'), 'fatherHusbandName', result,
                    min_length=MIN_NAME_LENGTH, message='This field is required.', section=section)
    validate_string(data.get('religion'), 'religion', result,
                    message='Please select a religion.', section=section)
    validate_pattern(data.get('aadhar'), 'aadhar', AADHAR_PATTERN,
                     'Please enter a valid 12-digit Aadhar number.', result, section=section)
    validate_string(data.get('occupation'), 'occupation', result, min_length=MIN_NAME_LENGTH,
                    message='Occupation is required.', section=section)
    validate_string(data.get('address'), 'address', result, min_length=MIN_ADDRESS_LENGTH,
                    max_length=MAX_TEXT_LENGTH,
                    message='Address must be at least 10 characters.', section=section)
    validate_email(data.get('email'), 'email', result, section=section)
    validate_pattern(data.get('mobile'), 'mobile', MOBILE_PATTERN,
                     'Please enter a valid 10-digit mobile number.', result, section=section)

    return result


def validate_family_details(data: Dict[str, Any]) -> ValidationResult:
    """Validate the family details step."""
    result = ValidationResult()
    section = SECTION_FAMILY_DETAILS
    data = data if isinstance(data, dict) else {}

    validate_enum(data.get('maritalStatus'), 'maritalStatus', MARITAL_STATUSES, result,
                  message='Please select your marital status.', section=section)

    if data.get('maritalStatus') == 'married':
        validate_string(data.get('spouseName'), 'spouseName', result, min_length=MIN_NAME_LENGTH,
                        message="Spouse's name is required and must be at least 2 characters.",
                        section=section)

    children = data.get('children') or []
    if not isinstance(children, list):
        result.add_error('children', 'Children must be a list', 'type', section)
        return result

    for i, child in enumerate(children):
        name = child.get('name') if isinstance(child, dict) else None
        validate_string(name, f'children[{i}].name', result, min_length=MIN_NAME_LENGTH,
                        message="Child's name must be at least 2 characters.", section=section)

    return result


# Required variant fields: (payload key, min length or pattern, message)
ASSET_DETAIL_RULES = {
    ASSET_BANK_ACCOUNT: [
        ('bankName', 2, 'Bank name is required.'),
        ('accountType', BANK_ACCOUNT_TYPES, 'Please select an account type.'),
        ('accountNumber', 4, 'Account number is required.'),
    ],
    ASSET_REAL_ESTATE: [
        ('propertyType', PROPERTY_TYPES, 'Please select a property type.'),
        ('propertyAddress', 10, 'Property address is required.'),
    ],
    ASSET_VEHICLE: [
        ('vehicleType', VEHICLE_TYPES, 'Please select a vehicle type.'),
        ('makeModel', 2, 'Make and model are required.'),
        ('registrationNumber', 4, 'Registration number is required.'),
    ],
    ASSET_INVESTMENTS: [
        ('brokerName', 2, 'Broker/Firm name is required.'),
        ('sharesDescription', 5, 'Description of holdings is required.'),
    ],
    ASSET_INSURANCE: [
        ('insurer', 2, 'Insurance company name is required.'),
        ('policyNumber', 4, 'Policy number is required.'),
        ('sumAssured', DIGITS_PATTERN, 'Sum assured must be a number.'),
    ],
    ASSET_VALUABLES: [
        ('itemName', 2, 'Item name is required.'),
        ('identifyingMarks', 10, 'Please provide a detailed description.'),
    ],
    ASSET_OTHER: [
        ('otherType', 2, 'Asset type is required.'),
        ('otherDetails', 10, 'Please provide details.'),
    ],
}


def validate_asset(data: Dict[str, Any], field_prefix: str = '') -> ValidationResult:
    """
    Validate one asset against the rules of its own type.

    Fields belonging to other asset types are ignored.
    """
    result = ValidationResult()
    section = SECTION_ASSETS
    data = data if isinstance(data, dict) else {}
    details = data.get('details') if isinstance(data.get('details'), dict) else {}

    if not validate_enum(data.get('type'), f'{field_prefix}type', ASSET_TYPES, result,
                         message='Please select an asset type.', section=section):
        return result

    validate_string(details.get('description'), f'{field_prefix}details.description', result,
                    min_length=MIN_DESCRIPTION_LENGTH, max_length=MAX_TEXT_LENGTH,
                    message='Description must be at least 3 characters.', section=section)
    validate_pattern(details.get('value'), f'{field_prefix}details.value', DIGITS_PATTERN,
                     'Value must be a number.', result, required=False, section=section)

    for key, rule, message in ASSET_DETAIL_RULES[data['type'].strip()]:
        path = f'{field_prefix}details.{key}'
        value = details.get(key)
        if isinstance(rule, int):
            validate_string(value, path, result, min_length=rule, max_length=MAX_TEXT_LENGTH,
                            message=message, section=section)
        elif isinstance(rule, list):
            validate_enum(value, path, rule, result, message=message, section=section)
        else:
            validate_pattern(value, path, rule, message, result, section=section)

    return result


def validate_assets(data: Dict[str, Any]) -> ValidationResult:
    """Validate the assets step (a section payload holding an 'assets' list)."""
    result = ValidationResult()
    items = _items(data, SECTION_ASSETS, result)
    for i, asset in enumerate(items):
        result.merge(validate_asset(asset, field_prefix=f'assets[{i}].'))
    return result


def validate_beneficiary(data: Dict[str, Any], field_prefix: str = '') -> ValidationResult:
    """Validate one explicit beneficiary."""
    result = ValidationResult()
    section = SECTION_BENEFICIARIES
    data = data if isinstance(data, dict) else {}

    validate_string(data.get('name'), f'{field_prefix}name', result, min_length=MIN_NAME_LENGTH,
                    message='Name must be at least 2 characters.', section=section)
    validate_string(data.get('relationship'), f'{field_prefix}relationship', result,
                    min_length=MIN_NAME_LENGTH, message='Relationship is required.', section=section)

    return result


def validate_beneficiaries(data: Dict[str, Any]) -> ValidationResult:
    """Validate the beneficiaries step."""
    result = ValidationResult()
    items = _items(data, SECTION_BENEFICIARIES, result)
    for i, beneficiary in enumerate(items):
        result.merge(validate_beneficiary(beneficiary, field_prefix=f'beneficiaries[{i}].'))
    return result


def _check_allocation_totals(allocations: List[Dict[str, Any]], result: ValidationResult,
                             field_name: str, section: str) -> Dict[str, float]:
    """Sum valid percentages per asset and flag any asset above 100%."""
    totals: Dict[str, float] = {}
    for allocation in allocations:
        asset_id = allocation.get('assetId')
        percentage = coerce_percentage(allocation.get('percentage'))
        if not asset_id or not isinstance(asset_id, str) or percentage is None:
            continue
        totals[asset_id] = totals.get(asset_id, 0.0) + percentage

    for asset_id, total in totals.items():
        # Rounded to absorb float error from fractional shares
        if round(total, 6) > MAX_PERCENTAGE:
            result.add_error(
                field_name,
                f'Total allocation cannot exceed 100% (asset {asset_id} is at {total:g}%).',
                'over_allocated', section
            )

    return totals


def validate_allocations(data: Dict[str, Any],
                         asset_ids: Optional[List[str]] = None) -> ValidationResult:
    """
    Validate the asset allocation step.

    Args:
        data: Section payload holding an 'allocations' list
        asset_ids: Known asset ids; when given, unknown references are errors

    Returns:
        ValidationResult
    """
    result = ValidationResult()
    section = SECTION_ASSET_ALLOCATION
    items = _items(data, SECTION_ASSET_ALLOCATION, result)

    for i, allocation in enumerate(items):
        prefix = f'allocations[{i}].'
        if not validate_string(allocation.get('assetId'), f'{prefix}assetId', result,
                               message='Please select an asset to allocate.', section=section):
            pass
        elif asset_ids is not None and allocation.get('assetId') not in asset_ids:
            result.add_error(f'{prefix}assetId', 'Selected asset no longer exists.', 'unknown_reference', section)
        validate_string(allocation.get('beneficiaryId'), f'{prefix}beneficiaryId', result,
                        message='Beneficiary is required.', section=section)
        validate_percentage(allocation.get('percentage'), f'{prefix}percentage', result, section=section)

    _check_allocation_totals(items, result, 'allocations', section)
    return result


def validate_asset_allocation(data: Dict[str, Any],
                              existing_allocations: Optional[List[Dict[str, Any]]] = None) -> ValidationResult:
    """
    Validate the single-asset allocation editor.

    The editor submits one asset id with a list of beneficiary shares. The
    shares are checked together with allocations already saved for that
    asset (excluding the rows being replaced), so the per-asset total rule
    is the same as in validate_allocations.

    Args:
        data: {'assetId': str, 'allocations': [{'id'?, 'beneficiaryId', 'percentage'}]}
        existing_allocations: All saved allocations of the draft

    Returns:
        ValidationResult
    """
    result = ValidationResult()
    section = SECTION_ASSET_ALLOCATION
    data = data if isinstance(data, dict) else {}
    asset_id = data.get('assetId')

    validate_string(asset_id, 'assetId', result,
                    message='Please select an asset to allocate.', section=section)

    shares = data.get('allocations')
    if not isinstance(shares, list) or not shares:
        result.add_error('allocations', 'Add at least one beneficiary share.', 'required', section)
        return result

    for i, share in enumerate(shares):
        share = share if isinstance(share, dict) else {}
        prefix = f'allocations[{i}].'
        validate_string(share.get('beneficiaryId'), f'{prefix}beneficiaryId', result,
                        message='Beneficiary is required.', section=section)
        validate_percentage(share.get('percentage'), f'{prefix}percentage', result, section=section)

    replaced_ids = {s.get('id') for s in shares if isinstance(s, dict) and isinstance(s.get('id'), str)}
    others = [
        a for a in (existing_allocations or [])
        if a.get('assetId') == asset_id and a.get('id') not in replaced_ids
    ]
    combined = others + [
        {'assetId': asset_id, 'percentage': s.get('percentage')}
        for s in shares if isinstance(s, dict)
    ]
    _check_allocation_totals(combined, result, 'allocations', section)
    return result


def _validate_executor_person(data: Any, prefix: str, result: ValidationResult, section: str):
    data = data if isinstance(data, dict) else {}
    validate_string(data.get('fullName'), f'{prefix}.fullName', result, min_length=MIN_NAME_LENGTH,
                    message='Full name is required.', section=section)
    validate_string(data.get('fatherName'), f'{prefix}.fatherName', result, min_length=MIN_NAME_LENGTH,
                    message="Father's name is required.", section=section)
    validate_pattern(data.get('aadhar'), f'{prefix}.aadhar', AADHAR_PATTERN,
                     'Enter a valid 12-digit Aadhar.', result, section=section)
    validate_string(data.get('address'), f'{prefix}.address', result, min_length=MIN_ADDRESS_LENGTH,
                    max_length=MAX_TEXT_LENGTH, message='Address is required.', section=section)
    validate_email(data.get('email'), f'{prefix}.email', result, section=section)
    validate_pattern(data.get('mobile'), f'{prefix}.mobile', MOBILE_PATTERN,
                     'Enter a valid 10-digit mobile number.', result, section=section)


def validate_executor(data: Dict[str, Any]) -> ValidationResult:
    """Validate the executor step."""
    result = ValidationResult()
    section = SECTION_EXECUTOR
    data = data if isinstance(data, dict) else {}

    _validate_executor_person(data.get('primaryExecutor'), 'primaryExecutor', result, section)

    if data.get('addSecondExecutor') is True:
        if not isinstance(data.get('secondExecutor'), dict):
            result.add_error(
                'secondExecutor',
                'Second executor details are required when the box is checked.',
                'required', section
            )
        else:
            _validate_executor_person(data['secondExecutor'], 'secondExecutor', result, section)

    validate_string(data.get('specialInstructions'), 'specialInstructions', result,
                    required=False, max_length=MAX_TEXT_LENGTH, section=section)

    return result


def _items(data: Any, section: str, result: ValidationResult) -> List[Dict[str, Any]]:
    key = LIST_SECTIONS[section]
    data = data if isinstance(data, dict) else {}
    items = data.get(key, [])
    if not isinstance(items, list):
        result.add_error(key, f'{key} must be a list', 'type', section)
        return []
    return [item if isinstance(item, dict) else {} for item in items]


STEP_VALIDATORS = {
    SECTION_PERSONAL_INFO: validate_personal_info,
    SECTION_FAMILY_DETAILS: validate_family_details,
    SECTION_ASSETS: validate_assets,
    SECTION_BENEFICIARIES: validate_beneficiaries,
    SECTION_ASSET_ALLOCATION: validate_allocations,
    SECTION_EXECUTOR: validate_executor,
}


def validate_step(section: str, payload: Dict[str, Any]) -> ValidationResult:
    """
    Validate the payload of one wizard step by its section name.

    Args:
        section: One of the six draft section names
        payload: The section payload

    Returns:
        ValidationResult
    """
    validator = STEP_VALIDATORS.get(section)
    if validator is None:
        result = ValidationResult()
        result.add_error('section', f'Unknown section: {section}', 'unknown_section')
        return result
    return validator(payload)
