"""
Draft Lifecycle Module

Moves a will between its states: a working draft edited step by step, a
finalized versioned snapshot, and back into a working draft for editing.
Operations that the user triggers directly return a LifecycleResult
carrying a user-facing message instead of raising.
"""

import copy
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from will_drafter import db, entity_store
from will_drafter.audit_logger import (
    log_action, log_will_finalized, log_will_updated,
    log_draft_saved, log_draft_deleted, AuditAction, AuditCategory
)
from will_drafter.context_builder import ALL_SECTIONS, LIST_SECTIONS, SINGLETON_SECTIONS
from will_drafter.entity_store import DraftUnavailable
from will_drafter.models import FinalizedWill, generate_id


NOT_AUTHENTICATED = 'User is not authenticated.'
SAVE_FAILED = 'Could not save will. Please try again later.'
UPDATE_FAILED = 'Could not update will.'
WILL_SAVED = 'Will saved successfully.'
WILL_UPDATED = 'Will updated successfully.'


@dataclass
class LifecycleResult:
    success: bool
    message: str
    will_id: Optional[str] = None
    version: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.success,
            'message': self.message,
            'willId': self.will_id,
            'version': self.version,
        }


def deep_merge(target: Any, source: Any) -> Any:
    """
    Merge source into a copy of target.

    Dicts are merged key by key, recursively. Any other source value
    (lists and scalars included) replaces the target value.

    >>> deep_merge({'a': {'b': 1, 'c': 2}}, {'a': {'b': 3}})
    {'a': {'b': 3, 'c': 2}}
    """
    if not (isinstance(target, dict) and isinstance(source, dict)):
        return copy.deepcopy(source)

    merged = copy.deepcopy(target)
    for key, value in source.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def will_snapshot(draft: Dict[str, Any]) -> Dict[str, Any]:
    """The part of a draft kept in a finalized will: its six sections."""
    draft = draft if isinstance(draft, dict) else {}
    return {section: copy.deepcopy(draft[section]) for section in ALL_SECTIONS if section in draft}


# =============================================================================
# Working draft
# =============================================================================

def get_draft(user_id: str) -> Dict[str, Any]:
    """
    Load the working draft over the blank defaults.

    Falls back to the blank draft when the store is unavailable.
    """
    try:
        stored = entity_store.load_sections(user_id)
    except DraftUnavailable:
        current_app.logger.warning(f'Serving blank draft to {user_id}: store unavailable')
        return entity_store.initial_data()
    return deep_merge(entity_store.initial_data(), stored)


def update_draft(user_id: str, draft: Dict[str, Any]) -> List[str]:
    """
    Save every section present in draft.

    Singleton sections are merged into the stored payload; list sections
    replace the stored list.

    Returns:
        Names of the sections saved

    Raises:
        DraftUnavailable: if the store fails
    """
    saved = []
    for section in ALL_SECTIONS:
        if section not in (draft or {}):
            continue
        payload = draft[section] if isinstance(draft[section], dict) else {}
        if section in SINGLETON_SECTIONS:
            entity_store.put_section(user_id, section, payload)
        else:
            entity_store.replace_list(user_id, section, payload.get(LIST_SECTIONS[section]) or [])
        saved.append(section)

    if saved:
        log_draft_saved(user_id, saved)
    return saved


def delete_draft(user_id: str):
    """Remove the working draft. Raises DraftUnavailable on failure."""
    entity_store.clear(user_id)
    log_draft_deleted(user_id)


# =============================================================================
# Finalized wills
# =============================================================================

def finalize(user_id: Optional[str], draft: Dict[str, Any]) -> LifecycleResult:
    """
    Store the draft as the user's next will version.

    The version is the number of wills the user already has plus one.
    Clearing the working draft is left to the caller.
    """
    if not user_id:
        return LifecycleResult(success=False, message=NOT_AUTHENTICATED)

    try:
        existing = FinalizedWill.query.filter_by(user_id=user_id).count()
        will = FinalizedWill(
            id=generate_id(),
            user_id=user_id,
            version=existing + 1,
            created_at=datetime.utcnow()
        )
        will.set_will_data(will_snapshot(draft))
        db.session.add(will)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f'Finalize failed for user {user_id}: {str(e)}')
        log_action(
            action=AuditAction.WILL_FINALIZE_FAILED,
            action_category=AuditCategory.CREATE,
            resource_type='will',
            actor_id=user_id,
            success=False,
            error_message=str(e)
        )
        return LifecycleResult(success=False, message=SAVE_FAILED)

    log_will_finalized(user_id, will.id, will.version)
    current_app.logger.info(f'Will {will.id} v{will.version} finalized for {user_id}')
    return LifecycleResult(success=True, message=WILL_SAVED, will_id=will.id, version=will.version)


def update(user_id: Optional[str], will_id: str, draft: Dict[str, Any]) -> LifecycleResult:
    """
    Replace the data of an existing will owned by the user.

    A missing will and a will owned by someone else give the same failure,
    so callers cannot probe for other users' will ids. Only the will data
    and updated_at change; id, owner, version and created_at are kept.
    """
    if not user_id:
        return LifecycleResult(success=False, message=NOT_AUTHENTICATED)

    try:
        will = db.session.get(FinalizedWill, will_id)
        if will is None or will.user_id != user_id:
            log_will_updated(user_id, will_id, success=False, error='not found or not owner')
            return LifecycleResult(success=False, message=UPDATE_FAILED)

        will.set_will_data(will_snapshot(draft))
        will.updated_at = datetime.utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f'Update of will {will_id} failed: {str(e)}')
        return LifecycleResult(success=False, message=UPDATE_FAILED)

    log_will_updated(user_id, will_id, success=True)
    return LifecycleResult(success=True, message=WILL_UPDATED, will_id=will.id, version=will.version)


def get_will(user_id: str, will_id: str) -> Optional[FinalizedWill]:
    """Return the will if it exists and belongs to the user."""
    will = db.session.get(FinalizedWill, will_id)
    if will is None or will.user_id != user_id:
        return None
    return will


def list_wills(user_id: str) -> List[Dict[str, Any]]:
    """The user's finalized wills, newest version first."""
    wills = FinalizedWill.query.filter_by(user_id=user_id) \
                               .order_by(FinalizedWill.version.desc()) \
                               .all()
    return [will.to_dict() for will in wills]


def will_as_draft(will: FinalizedWill) -> Dict[str, Any]:
    """A finalized will in draft shape, carrying its version and creation time."""
    draft = deep_merge(entity_store.initial_data(), will.get_will_data())
    draft['version'] = will.version
    draft['createdAt'] = will.created_at.isoformat() if will.created_at else None
    return draft


def load_will_for_editing(user_id: str, will_id: str) -> LifecycleResult:
    """
    Copy a finalized will into the working draft.

    The working draft is replaced and remembers the version it was loaded
    from, so the review step can show which version is being edited.
    """
    will = get_will(user_id, will_id)
    if will is None:
        return LifecycleResult(success=False, message=UPDATE_FAILED)

    draft = will_as_draft(will)
    try:
        entity_store.clear(user_id)
        update_draft(user_id, draft)
        entity_store.put_metadata(user_id, draft['version'], draft['createdAt'])
    except DraftUnavailable:
        return LifecycleResult(success=False, message='Could not load will for editing.')

    log_action(
        action=AuditAction.DRAFT_LOADED_FROM_WILL,
        action_category=AuditCategory.READ,
        resource_type='will',
        resource_id=will_id,
        actor_id=user_id,
        details={'version': will.version}
    )
    return LifecycleResult(
        success=True,
        message=f'Editing Will Version {will.version}',
        will_id=will.id,
        version=will.version
    )
