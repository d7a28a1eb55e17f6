"""
Clearance request, clearance item and item history models
"""

import enum

from clearance_portal.models.database import db, enum_column, enum_value
from clearance_portal.models.source import SourceType
from clearance_portal.utils.helpers import utcnow, isoformat


class ClearanceType(str, enum.Enum):
    SEMESTER = 'semester'
    GRADUATION = 'graduation'
    TRANSFER = 'transfer'


class RequestStatus(str, enum.Enum):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'


class ItemStatus(str, enum.Enum):
    PENDING = 'pending'
    SUBMITTED = 'submitted'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    ON_HOLD = 'on_hold'


ACTIVE_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.IN_PROGRESS)


class ClearanceRequest(db.Model):
    """Per-student, per-period clearance request"""
    __tablename__ = 'clearance_requests'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    # Set while the request is active; the unique index allows one per student
    active_student_id = db.Column(db.String(64), nullable=True, unique=True)
    academic_year = db.Column(db.String(20), nullable=False)
    semester = db.Column(db.String(40), nullable=False)
    type = enum_column(ClearanceType, 'clearance_type', nullable=False, default=ClearanceType.SEMESTER)
    status = enum_column(RequestStatus, 'request_status', nullable=False, default=RequestStatus.PENDING)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    items = db.relationship('ClearanceItem', backref='request', lazy=True,
                            order_by='ClearanceItem.id')

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_REQUEST_STATUSES

    @property
    def progress(self) -> int:
        from clearance_portal.services.aggregator import compute_progress
        return compute_progress([item.status for item in self.items])

    def to_dict(self, include_items: bool = False):
        """Convert to dictionary"""
        data = {
            'id': self.id,
            'student_id': self.student_id,
            'academic_year': self.academic_year,
            'semester': self.semester,
            'type': enum_value(self.type),
            'status': enum_value(self.status),
            'progress': self.progress,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data


class ClearanceItem(db.Model):
    """Approval unit between one request and one source"""
    __tablename__ = 'clearance_items'
    __table_args__ = (
        db.UniqueConstraint('request_id', 'source_type', 'source_id', name='uq_item_request_source'),
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey('clearance_requests.id'), nullable=False, index=True)
    source_type = enum_column(SourceType, 'item_source_type', nullable=False)
    source_id = db.Column(db.Integer, db.ForeignKey('sources.id'), nullable=False, index=True)
    status = enum_column(ItemStatus, 'item_status', nullable=False, default=ItemStatus.PENDING)
    remarks = db.Column(db.Text, nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    reviewed_by = db.Column(db.String(64), nullable=True)
    # Bumped on every transition; the compare-and-swap target
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    source = db.relationship('Source', lazy=True)
    submissions = db.relationship('RequirementSubmission', backref='clearance_item', lazy=True,
                                  order_by='RequirementSubmission.id')

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'id': self.id,
            'request_id': self.request_id,
            'source_type': enum_value(self.source_type),
            'source_id': self.source_id,
            'source_name': self.source.name if self.source else None,
            'status': enum_value(self.status),
            'remarks': self.remarks,
            'reviewed_at': isoformat(self.reviewed_at),
            'reviewed_by': self.reviewed_by,
            'version': self.version,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }


class ClearanceItemHistory(db.Model):
    """Append-only ledger row for one item status transition"""
    __tablename__ = 'clearance_item_history'

    id = db.Column(db.Integer, primary_key=True)
    clearance_item_id = db.Column(db.Integer, db.ForeignKey('clearance_items.id'), nullable=False, index=True)
    from_status = enum_column(ItemStatus, 'history_from_status', nullable=True)
    to_status = enum_column(ItemStatus, 'history_to_status', nullable=False)
    actor_id = db.Column(db.String(64), nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    remarks = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'id': self.id,
            'clearance_item_id': self.clearance_item_id,
            'from_status': enum_value(self.from_status),
            'to_status': enum_value(self.to_status),
            'actor_id': self.actor_id,
            'actor_role': self.actor_role,
            'remarks': self.remarks,
            'created_at': isoformat(self.created_at)
        }
