"""
Requirement catalog and requirement submission models
"""

import enum

from clearance_portal.models.database import db, enum_column, enum_value
from clearance_portal.models.source import SourceType
from clearance_portal.utils.helpers import utcnow, isoformat


class SubmissionStatus(str, enum.Enum):
    SUBMITTED = 'submitted'
    SUPERSEDED = 'superseded'
    WITHDRAWN = 'withdrawn'


class Requirement(db.Model):
    """Named requirement published by a source"""
    __tablename__ = 'requirements'

    id = db.Column(db.Integer, primary_key=True)
    source_type = enum_column(SourceType, 'requirement_source_type', nullable=False)
    source_id = db.Column(db.Integer, db.ForeignKey('sources.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_required = db.Column(db.Boolean, nullable=False, default=True)
    requires_upload = db.Column(db.Boolean, nullable=False, default=True)
    order = db.Column(db.Integer, nullable=False)
    published = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'id': self.id,
            'source_type': enum_value(self.source_type),
            'source_id': self.source_id,
            'name': self.name,
            'description': self.description,
            'is_required': self.is_required,
            'requires_upload': self.requires_upload,
            'order': self.order,
            'published': self.published,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }


class RequirementSubmission(db.Model):
    """File upload or checklist acknowledgement for one requirement"""
    __tablename__ = 'requirement_submissions'

    id = db.Column(db.Integer, primary_key=True)
    clearance_item_id = db.Column(db.Integer, db.ForeignKey('clearance_items.id'), nullable=False, index=True)
    requirement_id = db.Column(db.Integer, db.ForeignKey('requirements.id'), nullable=False, index=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    file_url = db.Column(db.String(1024), nullable=True)
    status = enum_column(SubmissionStatus, 'submission_status', nullable=False,
                         default=SubmissionStatus.SUBMITTED)
    submitted_at = db.Column(db.DateTime, default=utcnow)

    requirement = db.relationship('Requirement', lazy=True)

    @property
    def is_current(self) -> bool:
        return self.status == SubmissionStatus.SUBMITTED

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'id': self.id,
            'clearance_item_id': self.clearance_item_id,
            'requirement_id': self.requirement_id,
            'requirement_name': self.requirement.name if self.requirement else None,
            'student_id': self.student_id,
            'file_url': self.file_url,
            'status': enum_value(self.status),
            'submitted_at': isoformat(self.submitted_at)
        }
