"""
Actor context and authorization gates

The identity layer in front of the API supplies who is acting; every service
call receives that as an explicit ActorContext.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from clearance_portal.models import SourceType
from clearance_portal.utils.exceptions import AuthenticationError, AuthorizationError
from clearance_portal.utils.validators import validate_choice


class Role(str, enum.Enum):
    STUDENT = 'student'
    DEPARTMENT = 'department'
    OFFICE = 'office'
    CLUB = 'club'
    ADMIN = 'admin'


# Staff role -> the kind of source that role administers
ROLE_SOURCE_TYPES = {
    Role.DEPARTMENT: SourceType.DEPARTMENT,
    Role.OFFICE: SourceType.OFFICE,
    Role.CLUB: SourceType.CLUB,
}


@dataclass(frozen=True)
class ActorContext:
    """Who is performing an operation"""
    actor_id: str
    role: Role
    source_id: Optional[int] = None

    @classmethod
    def build(cls, actor_id, role, source_id=None) -> 'ActorContext':
        """
        Build a context from raw identity values

        Args:
            actor_id: Opaque user id from the identity layer
            role: Role name
            source_id: Source the staff member belongs to, if any

        Raises:
            AuthenticationError: If the id or role is missing
            ValidationError: If role or source id are malformed
        """
        if not actor_id or not str(actor_id).strip():
            raise AuthenticationError("Actor identity is required")
        if not role:
            raise AuthenticationError("Actor role is required")
        role = validate_choice(str(role).strip().lower(), Role, 'Role')
        if source_id in (None, ''):
            source_id = None
        else:
            try:
                source_id = int(source_id)
            except (TypeError, ValueError):
                raise AuthenticationError("Actor source id must be an integer") from None
        return cls(actor_id=str(actor_id).strip(), role=role, source_id=source_id)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT


def can_manage_source(actor: ActorContext, source_type, source_id: int) -> bool:
    """True if actor is an admin or staff linked to exactly this source."""
    if actor.is_admin:
        return True
    managed_type = ROLE_SOURCE_TYPES.get(actor.role)
    if managed_type is None:
        return False
    return managed_type == source_type and actor.source_id is not None and actor.source_id == source_id


def can_review(actor: ActorContext, item) -> bool:
    """The single review gate: admin, or staff of the item's own source."""
    return can_manage_source(actor, item.source_type, item.source_id)


def can_view_item(actor: ActorContext, item) -> bool:
    if actor.is_student:
        return item.request is not None and item.request.student_id == actor.actor_id
    return can_review(actor, item)


def ensure_can_review(actor: ActorContext, item) -> None:
    """
    Re-validate the reviewer against the stored source row

    Raises:
        AuthorizationError: If the role/source linkage does not match the item
    """
    if not can_review(actor, item):
        raise AuthorizationError("You are not allowed to review this clearance item")
    if actor.is_admin:
        return
    source = item.source
    if source is None or not source.is_active:
        raise AuthorizationError("Clearance source is not active")
    if source.head_id and source.head_id != actor.actor_id:
        raise AuthorizationError("Only the head of this source can review its clearance items")


def ensure_can_manage_source(actor: ActorContext, source_type, source_id: int) -> None:
    if not can_manage_source(actor, source_type, source_id):
        raise AuthorizationError("You are not allowed to manage this source")


def ensure_student_owner(actor: ActorContext, student_id: str) -> None:
    if not actor.is_student or actor.actor_id != student_id:
        raise AuthorizationError("Only the student who owns this clearance can do that")


def ensure_admin(actor: ActorContext) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
