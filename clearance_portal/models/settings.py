"""
System settings and activity log models
"""

from clearance_portal.models.database import db
from clearance_portal.utils.helpers import utcnow, isoformat


class SystemSettings(db.Model):
    """Single-row table holding the current clearance period"""
    __tablename__ = 'system_settings'

    id = db.Column(db.Integer, primary_key=True)
    academic_year = db.Column(db.String(20), nullable=False)
    current_semester = db.Column(db.String(40), nullable=False)
    allow_semester_clearance = db.Column(db.Boolean, nullable=False, default=True)
    allow_graduation_clearance = db.Column(db.Boolean, nullable=False, default=False)
    allow_transfer_clearance = db.Column(db.Boolean, nullable=False, default=False)
    updated_by = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'academic_year': self.academic_year,
            'current_semester': self.current_semester,
            'allow_semester_clearance': self.allow_semester_clearance,
            'allow_graduation_clearance': self.allow_graduation_clearance,
            'allow_transfer_clearance': self.allow_transfer_clearance,
            'updated_by': self.updated_by,
            'updated_at': isoformat(self.updated_at)
        }


class ActivityLog(db.Model):
    """Actor action shown on the admin logs page"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.String(64), nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    action = db.Column(db.String(50), nullable=False, index=True)
    details = db.Column(db.Text, nullable=False)
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'id': self.id,
            'actor_id': self.actor_id,
            'actor_role': self.actor_role,
            'action': self.action,
            'details': self.details,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'created_at': isoformat(self.created_at)
        }
