"""
Database models for the Will Drafter application.

Drafts are stored per user and per section:
- Singleton sections (personal info, family details, executor) as one row each
- List sections (assets, beneficiaries, allocations) as one row per item
- Finalized wills as immutable, versioned snapshots
"""

import json
import uuid
import hashlib
from datetime import datetime
from will_drafter import db


def generate_id() -> str:
    """Generate an opaque, stable identifier for a record."""
    return uuid.uuid4().hex


class DraftSection(db.Model):
    """
    One singleton section of a user's working draft.
    """
    __tablename__ = 'draft_sections'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'section', name='uq_draft_section_user'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    section = db.Column(db.String(50), nullable=False)
    payload_json = db.Column(db.Text, nullable=False, default='{}')

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<DraftSection {self.section} for {self.user_id}>'

    def get_payload(self):
        """Deserialize the JSON payload."""
        return json.loads(self.payload_json) if self.payload_json else {}

    def set_payload(self, payload):
        """Serialize the payload to JSON with stable ordering."""
        self.payload_json = json.dumps(payload, sort_keys=True, default=str)
        self.updated_at = datetime.utcnow()


class DraftListItem(db.Model):
    """
    One item (asset, beneficiary or allocation) of a user's working draft.
    """
    __tablename__ = 'draft_list_items'

    # Item ids are unique per user and section; a will loaded for editing keeps its ids
    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(128), primary_key=True)
    section = db.Column(db.String(50), primary_key=True)
    position = db.Column(db.Integer, default=0, nullable=False)
    payload_json = db.Column(db.Text, nullable=False, default='{}')

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<DraftListItem {self.section}/{self.id}>'

    def get_payload(self):
        """Deserialize the payload and attach the item id."""
        data = json.loads(self.payload_json) if self.payload_json else {}
        data['id'] = self.id
        return data

    def set_payload(self, payload):
        """Serialize the payload; the id lives in its own column."""
        data = {k: v for k, v in payload.items() if k not in ('id', 'userId')}
        self.payload_json = json.dumps(data, sort_keys=True, default=str)
        self.updated_at = datetime.utcnow()


class FinalizedWill(db.Model):
    """
    An immutable snapshot of a draft taken at finalize time.

    Only will_data and updated_at may change after creation.
    """
    __tablename__ = 'finalized_wills'

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)

    will_data_json = db.Column(db.Text, nullable=False)

    def __repr__(self):
        return f'<FinalizedWill {self.id} v{self.version} for {self.user_id}>'

    def to_dict(self, include_data: bool = False):
        """Convert the will to a dictionary for API responses."""
        result = {
            'willId': self.id,
            'userId': self.user_id,
            'version': self.version,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_data:
            result['willData'] = self.get_will_data()
        return result

    def get_will_data(self):
        """Deserialize the will snapshot."""
        return json.loads(self.will_data_json)

    def set_will_data(self, will_data):
        """Serialize the will snapshot with stable ordering."""
        self.will_data_json = json.dumps(will_data, sort_keys=True, default=str)


class AuditLog(db.Model):
    """
    Immutable audit trail for draft and will actions.

    This table is append-only. Records are never modified or deleted.
    """
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)

    # When the action occurred
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Who performed the action
    actor_id = db.Column(db.String(128), nullable=True)  # user id, or None for system

    # What was done
    action = db.Column(db.String(50), nullable=False)  # 'will_finalized', 'draft_saved', etc.
    action_category = db.Column(db.String(20), nullable=False)  # 'create', 'update', 'delete', ...

    # What was affected
    resource_type = db.Column(db.String(50), nullable=False)  # 'draft', 'will', 'chat'
    resource_id = db.Column(db.String(100), nullable=True)

    # Details (structured JSON)
    details_json = db.Column(db.Text, nullable=True)

    # Outcome
    success = db.Column(db.Boolean, nullable=False)
    error_message = db.Column(db.Text, nullable=True)

    # Integrity hash (prevents tampering)
    integrity_hash = db.Column(db.String(64), nullable=False)

    def __repr__(self):
        return f'<AuditLog {self.id} - {self.action} by {self.actor_id}>'

    def to_dict(self):
        """Convert audit log to dictionary."""
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'actor_id': self.actor_id,
            'action': self.action,
            'action_category': self.action_category,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'details': json.loads(self.details_json) if self.details_json else None,
            'success': self.success,
            'error_message': self.error_message
        }

    def compute_integrity_hash(self):
        """Compute hash of this record's content for tamper detection."""
        content = f"{self.timestamp}{self.actor_id}{self.action}{self.resource_type}{self.resource_id}{self.details_json}"
        return hashlib.sha256(content.encode()).hexdigest()

    def verify_integrity(self):
        """Verify this record has not been tampered with."""
        return self.integrity_hash == self.compute_integrity_hash()
