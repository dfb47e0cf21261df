"""
Entity Store Module

Per-user persistence of the working draft. Singleton sections (personal
info, family details, executor) are stored as one JSON row each; list
sections (assets, beneficiaries, allocations) as one row per item with a
generated id that stays stable across edits.

Every database failure is rolled back, logged and re-raised as
DraftUnavailable so the HTTP layer can fall back to an empty draft.
"""

import copy
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from will_drafter import db
from will_drafter.context_builder import (
    SINGLETON_SECTIONS, LIST_SECTIONS, ALL_SECTIONS,
    SECTION_PERSONAL_INFO, SECTION_FAMILY_DETAILS, SECTION_EXECUTOR,
    normalize_family_details
)
from will_drafter.models import DraftSection, DraftListItem, generate_id


class DraftUnavailable(Exception):
    """Raised when the draft store cannot be read or written."""


class UnknownSection(ValueError):
    """Raised for a section name that is not part of a draft."""


_BLANK_EXECUTOR_PERSON = {
    'fullName': '',
    'fatherName': '',
    'aadhar': '',
    'address': '',
    'email': '',
    'mobile': '',
}

_SECTION_DEFAULTS: Dict[str, Dict[str, Any]] = {
    SECTION_PERSONAL_INFO: {
        'gender': '',
        'fullName': '',
        'dob': None,
        'fatherHusbandName': '',
        'religion': '',
        'aadhar': '',
        'occupation': '',
        'address': '',
        'email': '',
        'mobile': '',
    },
    SECTION_FAMILY_DETAILS: {
        'maritalStatus': '',
        'spouseName': '',
        'children': [],
    },
    SECTION_EXECUTOR: {
        'primaryExecutor': _BLANK_EXECUTOR_PERSON,
        'addSecondExecutor': False,
        'secondExecutor': _BLANK_EXECUTOR_PERSON,
        'specialInstructions': '',
        'city': '',
        'state': '',
    },
}


def section_default(section: str) -> Dict[str, Any]:
    """Return a fresh copy of the default payload for a section."""
    _check_section(section)
    if section in LIST_SECTIONS:
        return {LIST_SECTIONS[section]: []}
    return copy.deepcopy(_SECTION_DEFAULTS[section])


def initial_data() -> Dict[str, Any]:
    """
    Build a fully populated empty draft.

    Returns:
        Draft dictionary with every section present and blank
    """
    return {section: section_default(section) for section in ALL_SECTIONS}


def _check_section(section: str):
    if section not in ALL_SECTIONS:
        raise UnknownSection(f'Unknown draft section: {section}')


def _check_list_section(section: str):
    if section not in LIST_SECTIONS:
        raise UnknownSection(f'Not a list section: {section}')


def _fail(operation: str, user_id: str, error: Exception):
    db.session.rollback()
    current_app.logger.error(f'Draft store {operation} failed for user {user_id}: {str(error)}')
    raise DraftUnavailable(f'Could not {operation} draft') from error


# =============================================================================
# Singleton sections
# =============================================================================

def get_section(user_id: str, section: str) -> Dict[str, Any]:
    """
    Read one section of a user's draft.

    Args:
        user_id: Owner of the draft
        section: Section name

    Returns:
        The stored payload, or the section default when nothing is stored
    """
    _check_section(section)
    if section in LIST_SECTIONS:
        return {LIST_SECTIONS[section]: list_items(user_id, section)}

    try:
        row = DraftSection.query.filter_by(user_id=user_id, section=section).first()
    except SQLAlchemyError as e:
        _fail('read', user_id, e)

    if row is None:
        return section_default(section)
    return row.get_payload()


def put_section(user_id: str, section: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upsert a singleton section with a top-level merge.

    Keys present in payload replace the stored keys; stored keys absent
    from payload are kept. A family details record is normalized after
    the merge, so spouseName survives only while maritalStatus is married.
    For list sections the payload's item list replaces the stored list.

    Returns:
        The payload now stored
    """
    _check_section(section)
    payload = payload if isinstance(payload, dict) else {}

    if section in LIST_SECTIONS:
        items = replace_list(user_id, section, payload.get(LIST_SECTIONS[section]) or [])
        return {LIST_SECTIONS[section]: items}

    try:
        row = DraftSection.query.filter_by(user_id=user_id, section=section).first()
        if row is None:
            row = DraftSection(user_id=user_id, section=section)
            db.session.add(row)
            merged = dict(payload)
        else:
            merged = row.get_payload()
            merged.update(payload)
        if section == SECTION_FAMILY_DETAILS:
            merged = normalize_family_details(merged)
        row.set_payload(merged)
        db.session.commit()
    except SQLAlchemyError as e:
        _fail('save', user_id, e)

    return merged


# =============================================================================
# List sections
# =============================================================================

def _item_query(user_id: str, section: str):
    return DraftListItem.query.filter_by(user_id=user_id, section=section)


def list_items(user_id: str, section: str) -> List[Dict[str, Any]]:
    """Return the items of a list section in insertion order, each with its id."""
    _check_list_section(section)
    try:
        rows = _item_query(user_id, section) \
            .order_by(DraftListItem.position.asc(), DraftListItem.created_at.asc()) \
            .all()
    except SQLAlchemyError as e:
        _fail('read', user_id, e)
    return [row.get_payload() for row in rows]


def add_item(user_id: str, section: str, payload: Dict[str, Any]) -> str:
    """
    Append an item to a list section.

    Returns:
        The generated item id
    """
    _check_list_section(section)
    try:
        position = _item_query(user_id, section).count()
        item = DraftListItem(id=generate_id(), user_id=user_id, section=section, position=position)
        item.set_payload(payload or {})
        db.session.add(item)
        db.session.commit()
    except SQLAlchemyError as e:
        _fail('save', user_id, e)
    return item.id


def update_item(user_id: str, section: str, item_id: str, payload: Dict[str, Any]) -> bool:
    """
    Replace the payload of one list item, keeping its id and position.

    Returns:
        False if the item does not exist for this user
    """
    _check_list_section(section)
    try:
        item = _item_query(user_id, section).filter_by(id=item_id).first()
        if item is None:
            return False
        item.set_payload(payload or {})
        db.session.commit()
    except SQLAlchemyError as e:
        _fail('save', user_id, e)
    return True


def remove_item(user_id: str, section: str, item_id: str) -> bool:
    """
    Delete one list item.

    Returns:
        False if the item does not exist for this user
    """
    _check_list_section(section)
    try:
        item = _item_query(user_id, section).filter_by(id=item_id).first()
        if item is None:
            return False
        db.session.delete(item)
        db.session.commit()
    except SQLAlchemyError as e:
        _fail('delete', user_id, e)
    return True


def replace_list(user_id: str, section: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Replace every item of a list section with the given items.

    The delete and the inserts share one transaction, so on failure the
    previous list is left untouched. Items carrying an id keep it; others
    get a generated one.

    Returns:
        The stored items, each with its id
    """
    _check_list_section(section)
    stored = []
    try:
        for row in _item_query(user_id, section).all():
            db.session.delete(row)
        db.session.flush()
        for position, payload in enumerate(items or []):
            payload = payload if isinstance(payload, dict) else {}
            item = DraftListItem(
                id=payload.get('id') or generate_id(),
                user_id=user_id,
                section=section,
                position=position
            )
            item.set_payload(payload)
            db.session.add(item)
            stored.append(item)
        db.session.commit()
    except SQLAlchemyError as e:
        _fail('save', user_id, e)
    return [item.get_payload() for item in stored]


# =============================================================================
# Whole draft
# =============================================================================

def load_sections(user_id: str) -> Dict[str, Any]:
    """
    Assemble every stored section of a user's draft.

    Only sections that have stored data are included; callers merge the
    result over initial_data().
    """
    draft: Dict[str, Any] = {}
    try:
        for row in DraftSection.query.filter_by(user_id=user_id).all():
            if row.section in SINGLETON_SECTIONS:
                draft[row.section] = row.get_payload()
            elif row.section in ('version', 'createdAt'):
                draft[row.section] = row.get_payload().get('value')

        rows = DraftListItem.query.filter_by(user_id=user_id) \
            .order_by(DraftListItem.position.asc(), DraftListItem.created_at.asc()) \
            .all()
    except SQLAlchemyError as e:
        _fail('read', user_id, e)

    for row in rows:
        if row.section not in LIST_SECTIONS:
            continue
        key = LIST_SECTIONS[row.section]
        draft.setdefault(row.section, {key: []})[key].append(row.get_payload())

    return draft


def put_metadata(user_id: str, version: Optional[int], created_at: Any):
    """Record which finalized version the working draft is an edit of."""
    try:
        stale = DraftSection.query.filter(
            DraftSection.user_id == user_id,
            DraftSection.section.in_(('version', 'createdAt'))
        ).all()
        for row in stale:
            db.session.delete(row)
        db.session.flush()
        for name, value in (('version', version), ('createdAt', created_at)):
            if value is None:
                continue
            row = DraftSection(user_id=user_id, section=name)
            row.set_payload({'value': value})
            db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as e:
        _fail('save', user_id, e)


def clear(user_id: str):
    """Delete every section and item of a user's draft."""
    try:
        for model in (DraftSection, DraftListItem):
            for row in model.query.filter_by(user_id=user_id).all():
                db.session.delete(row)
        db.session.commit()
    except SQLAlchemyError as e:
        _fail('delete', user_id, e)
