"""
Activity log service
"""

from typing import List, Optional

from clearance_portal.models import db, ActivityLog
from clearance_portal.services.authorization import ActorContext
from clearance_portal.services.history_service import SYSTEM_ROLE


class ActivityService:
    """Records actor actions for the admin logs page"""

    @staticmethod
    def log(actor: Optional[ActorContext], action: str, details: str,
            target_type: Optional[str] = None, target_id: Optional[int] = None) -> ActivityLog:
        """Add an entry to the current transaction; the caller commits."""
        entry = ActivityLog(
            actor_id=actor.actor_id if actor else None,
            actor_role=actor.role.value if actor else SYSTEM_ROLE,
            action=action,
            details=details,
            target_type=target_type,
            target_id=target_id
        )
        db.session.add(entry)
        return entry

    @staticmethod
    def recent(action: Optional[str] = None, limit: int = 100) -> List[ActivityLog]:
        query = ActivityLog.query
        if action:
            query = query.filter_by(action=action)
        return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
