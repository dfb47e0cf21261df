"""
Audit logging module for an immutable audit trail.

Draft saves, deletions, finalizations and updates are logged with an
integrity hash. This module is append-only.
"""

import json
from datetime import datetime
from typing import Dict, Any, Optional
from flask import current_app

from will_drafter import db
from will_drafter.models import AuditLog


class AuditAction:
    """Constants for audit actions."""
    # Draft actions
    DRAFT_SAVED = 'draft_saved'
    DRAFT_DELETED = 'draft_deleted'
    DRAFT_LOADED_FROM_WILL = 'draft_loaded_from_will'

    # Will actions
    WILL_FINALIZED = 'will_finalized'
    WILL_FINALIZE_FAILED = 'will_finalize_failed'
    WILL_UPDATED = 'will_updated'
    WILL_UPDATE_DENIED = 'will_update_denied'


class AuditCategory:
    """Constants for audit action categories."""
    CREATE = 'create'
    READ = 'read'
    UPDATE = 'update'
    DELETE = 'delete'
    AUTH = 'auth'


def log_action(
    action: str,
    action_category: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
    error_message: Optional[str] = None
) -> Optional[AuditLog]:
    """
    Log an action to the audit trail.

    Args:
        action: The action performed (use AuditAction constants)
        action_category: Category of action (use AuditCategory constants)
        resource_type: Type of resource affected
        resource_id: Identifier of the resource
        actor_id: The user performing the action
        details: Additional structured details
        success: Whether the action succeeded
        error_message: Error message if action failed

    Returns:
        The created AuditLog record, or None if logging failed
    """
    try:
        audit_log = AuditLog(
            timestamp=datetime.utcnow(),
            action=action,
            action_category=action_category,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            actor_id=actor_id,
            details_json=json.dumps(details, sort_keys=True) if details else None,
            success=success,
            error_message=error_message,
        )

        # Compute integrity hash
        audit_log.integrity_hash = audit_log.compute_integrity_hash()

        db.session.add(audit_log)
        db.session.commit()

        return audit_log

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to create audit log: {str(e)}')
        # Audit logging should not break functionality
        return None


def log_will_finalized(user_id: str, will_id: str, version: int) -> Optional[AuditLog]:
    """Log creation of a finalized will."""
    return log_action(
        action=AuditAction.WILL_FINALIZED,
        action_category=AuditCategory.CREATE,
        resource_type='will',
        resource_id=will_id,
        actor_id=user_id,
        details={'version': version}
    )


def log_will_updated(user_id: str, will_id: str, success: bool, error: str = None) -> Optional[AuditLog]:
    """Log an update attempt on a finalized will."""
    return log_action(
        action=AuditAction.WILL_UPDATED if success else AuditAction.WILL_UPDATE_DENIED,
        action_category=AuditCategory.UPDATE if success else AuditCategory.AUTH,
        resource_type='will',
        resource_id=will_id,
        actor_id=user_id,
        success=success,
        error_message=error
    )


def log_draft_saved(user_id: str, sections: list) -> Optional[AuditLog]:
    """Log a draft save."""
    return log_action(
        action=AuditAction.DRAFT_SAVED,
        action_category=AuditCategory.UPDATE,
        resource_type='draft',
        resource_id=user_id,
        actor_id=user_id,
        details={'sections': sorted(sections)}
    )


def log_draft_deleted(user_id: str) -> Optional[AuditLog]:
    """Log a draft deletion."""
    return log_action(
        action=AuditAction.DRAFT_DELETED,
        action_category=AuditCategory.DELETE,
        resource_type='draft',
        resource_id=user_id,
        actor_id=user_id
    )


def verify_audit_integrity() -> tuple:
    """
    Verify integrity of all audit log records.

    Returns:
        Tuple of (valid_count, invalid_count, invalid_ids)
    """
    logs = AuditLog.query.all()
    valid_count = 0
    invalid_count = 0
    invalid_ids = []

    for log in logs:
        if log.verify_integrity():
            valid_count += 1
        else:
            invalid_count += 1
            invalid_ids.append(log.id)

    return valid_count, invalid_count, invalid_ids


def get_audit_trail_for_user(user_id: str) -> list:
    """
    Get the audit trail of a single user, oldest first.

    Args:
        user_id: The user id

    Returns:
        List of audit log dictionaries
    """
    logs = AuditLog.query.filter_by(actor_id=user_id) \
                         .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc()) \
                         .all()
    return [log.to_dict() for log in logs]
