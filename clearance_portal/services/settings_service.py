"""
System settings service
"""

from typing import Any, Dict, List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from clearance_portal.models import db, SystemSettings, ClearanceType
from clearance_portal.services.activity_service import ActivityService
from clearance_portal.services.authorization import ActorContext, ensure_admin
from clearance_portal.utils.exceptions import DatabaseError, ValidationError
from clearance_portal.utils.helpers import log_error, log_info
from clearance_portal.utils.validators import validate_string_length

EDITABLE_FIELDS = (
    'academic_year', 'current_semester', 'allow_semester_clearance',
    'allow_graduation_clearance', 'allow_transfer_clearance'
)

# Column sizes of the text settings
FIELD_LENGTHS = {'academic_year': 20, 'current_semester': 40}

TYPE_FLAGS = {
    ClearanceType.SEMESTER: 'allow_semester_clearance',
    ClearanceType.GRADUATION: 'allow_graduation_clearance',
    ClearanceType.TRANSFER: 'allow_transfer_clearance',
}


class SettingsService:
    """Current clearance period and which clearance types are open"""

    @staticmethod
    def get() -> SystemSettings:
        """Return the settings row, creating it from configuration defaults"""
        settings = SystemSettings.query.order_by(SystemSettings.id.asc()).first()
        if settings is None:
            settings = SystemSettings(
                academic_year=current_app.config['DEFAULT_ACADEMIC_YEAR'],
                current_semester=current_app.config['DEFAULT_SEMESTER']
            )
            db.session.add(settings)
            db.session.commit()
            log_info("Created default system settings")
        return settings

    @staticmethod
    def update(actor: ActorContext, changes: Dict[str, Any]) -> SystemSettings:
        """
        Update the settings row (admin only)

        Args:
            actor: Acting admin
            changes: Subset of EDITABLE_FIELDS

        Returns:
            Updated settings
        """
        ensure_admin(actor)
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        for name, max_length in FIELD_LENGTHS.items():
            if name in changes:
                validate_string_length(changes[name], max_length=max_length,
                                       field_name=name.replace('_', ' ').title())

        settings = SettingsService.get()
        try:
            for name, value in changes.items():
                setattr(settings, name, value)
            settings.updated_by = actor.actor_id
            ActivityService.log(actor, 'settings_updated',
                                f"Updated settings: {', '.join(sorted(changes))}", 'system_settings', settings.id)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Update settings error", e)
            raise DatabaseError("Failed to update settings") from e
        return settings

    @staticmethod
    def allowed_types(settings: SystemSettings) -> List[ClearanceType]:
        return [clearance_type for clearance_type, flag in TYPE_FLAGS.items() if getattr(settings, flag)]
