"""
Clearance sources: departments, offices and clubs
"""

import enum

from clearance_portal.models.database import db, enum_column, enum_value
from clearance_portal.utils.helpers import utcnow, isoformat


class SourceType(str, enum.Enum):
    DEPARTMENT = 'department'
    OFFICE = 'office'
    CLUB = 'club'


class Source(db.Model):
    """A department, office or club that owns requirements and reviews items"""
    __tablename__ = 'sources'
    __table_args__ = (
        db.UniqueConstraint('source_type', 'code', name='uq_source_type_code'),
    )

    id = db.Column(db.Integer, primary_key=True)
    source_type = enum_column(SourceType, 'source_type', nullable=False)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(32), nullable=False)
    description = db.Column(db.Text, nullable=True)
    head_id = db.Column(db.String(64), nullable=True, index=True)
    logo_url = db.Column(db.String(512), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    requirements = db.relationship('Requirement', backref='source', lazy=True,
                                   order_by='Requirement.order')

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'id': self.id,
            'source_type': enum_value(self.source_type),
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'head_id': self.head_id,
            'logo_url': self.logo_url,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }
