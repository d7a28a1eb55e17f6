"""
Clearance request service
"""

from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clearance_portal.models import (
    db, ClearanceItem, ClearanceRequest, ClearanceType, Requirement, Source, SourceType,
    ACTIVE_REQUEST_STATUSES
)
from clearance_portal.services.activity_service import ActivityService
from clearance_portal.services.authorization import ActorContext, ensure_student_owner
from clearance_portal.services.settings_service import SettingsService
from clearance_portal.services.source_service import SourceService
from clearance_portal.utils.exceptions import (
    AuthorizationError, DatabaseError, NotFoundError, ValidationError
)
from clearance_portal.utils.helpers import log_error, log_info
from clearance_portal.utils.validators import validate_choice

# Source kinds every student clears; clubs only when the student is a member
ALWAYS_CLEARED = (SourceType.DEPARTMENT, SourceType.OFFICE)


class ClearanceRequestService:
    """Starting and reading clearance requests"""

    @staticmethod
    def start(actor: ActorContext, clearance_type, club_ids: Optional[Iterable[int]] = None) -> ClearanceRequest:
        """
        Open a clearance request for the current period

        One item is materialized per active department and office with at
        least one published requirement, plus each listed club.

        Args:
            actor: Student opening the request
            clearance_type: semester, graduation or transfer
            club_ids: Clubs the student belongs to

        Returns:
            The new request with its items

        Raises:
            ValidationError: Type not open, or an active request already exists
        """
        if not actor.is_student:
            raise AuthorizationError("Only students can start a clearance request")
        clearance_type = validate_choice(clearance_type, ClearanceType, 'Clearance type')
        settings = SettingsService.get()
        if clearance_type not in SettingsService.allowed_types(settings):
            raise ValidationError(f"{clearance_type.value.title()} clearance is not currently open")
        if ClearanceRequestService.get_active(actor.actor_id) is not None:
            raise ValidationError("You already have an active clearance request")

        sources = ClearanceRequestService._sources_to_clear(club_ids or [])
        clearance_request = ClearanceRequest(
            student_id=actor.actor_id,
            active_student_id=actor.actor_id,
            academic_year=settings.academic_year,
            semester=settings.current_semester,
            type=clearance_type
        )
        try:
            db.session.add(clearance_request)
            db.session.flush()
            for source in sources:
                db.session.add(ClearanceItem(
                    request_id=clearance_request.id,
                    source_type=source.source_type,
                    source_id=source.id
                ))
            ActivityService.log(actor, 'request_started',
                                f"Started {clearance_type.value} clearance for {settings.academic_year} "
                                f"{settings.current_semester}", 'clearance_request', clearance_request.id)
            db.session.commit()
        except IntegrityError:
            # Another start for this student committed first
            db.session.rollback()
            raise ValidationError("You already have an active clearance request") from None
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Start clearance request error", e)
            raise DatabaseError("Failed to start clearance request") from e
        log_info(f"Clearance request {clearance_request.id} started with {len(sources)} items")
        return clearance_request

    @staticmethod
    def get(request_id: int) -> ClearanceRequest:
        clearance_request = db.session.get(ClearanceRequest, request_id)
        if clearance_request is None:
            raise NotFoundError(f"Clearance request {request_id} not found")
        return clearance_request

    @staticmethod
    def get_for_actor(actor: ActorContext, request_id: int) -> ClearanceRequest:
        clearance_request = ClearanceRequestService.get(request_id)
        if not actor.is_admin:
            ensure_student_owner(actor, clearance_request.student_id)
        return clearance_request

    @staticmethod
    def get_active(student_id: str) -> Optional[ClearanceRequest]:
        return ClearanceRequest.query.filter(
            ClearanceRequest.student_id == student_id,
            ClearanceRequest.status.in_(ACTIVE_REQUEST_STATUSES)
        ).order_by(ClearanceRequest.created_at.desc()).first()

    @staticmethod
    def list_for_student(student_id: str) -> List[ClearanceRequest]:
        return ClearanceRequest.query.filter_by(student_id=student_id).order_by(
            ClearanceRequest.created_at.desc(), ClearanceRequest.id.desc()
        ).all()

    @staticmethod
    def ensure_item(actor: ActorContext, request_id: int, source_id: int) -> ClearanceItem:
        """Item for (request, source), created on first use for sources with published requirements"""
        clearance_request = ClearanceRequestService.get(request_id)
        ensure_student_owner(actor, clearance_request.student_id)
        if not clearance_request.is_active:
            raise ValidationError("This clearance request is already completed")
        source = SourceService.get(source_id)
        if not source.is_active:
            raise ValidationError(f"{source.name} is not accepting clearance submissions")

        item = ClearanceItem.query.filter_by(
            request_id=clearance_request.id, source_type=source.source_type, source_id=source.id
        ).first()
        if item is not None:
            return item

        published = db.session.query(Source.id).filter(Source.id == source.id, _has_published_requirement())
        if published.first() is None:
            raise ValidationError(f"{source.name} has no published clearance requirements")

        item = ClearanceItem(request_id=clearance_request.id, source_type=source.source_type, source_id=source.id)
        try:
            db.session.add(item)
            db.session.commit()
        except IntegrityError:
            # Lost a race with another tab creating the same item
            db.session.rollback()
            return ClearanceItem.query.filter_by(
                request_id=clearance_request.id, source_type=source.source_type, source_id=source.id
            ).one()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Create clearance item error", e)
            raise DatabaseError("Failed to create clearance item") from e
        return item

    @staticmethod
    def _sources_to_clear(club_ids: Iterable[int]) -> List[Source]:
        sources = Source.query.filter(
            Source.is_active.is_(True),
            Source.source_type.in_(ALWAYS_CLEARED),
            _has_published_requirement()
        ).order_by(Source.source_type.asc(), Source.name.asc()).all()

        for club_id in dict.fromkeys(int(club_id) for club_id in club_ids):
            club = SourceService.get(club_id, SourceType.CLUB)
            if not club.is_active:
                raise ValidationError(f"{club.name} is not accepting clearance submissions")
            sources.append(club)
        return sources


def _has_published_requirement():
    """EXISTS clause correlated to Source: at least one published requirement"""
    return db.session.query(Requirement.id).filter(
        Requirement.source_id == Source.id,
        Requirement.source_type == Source.source_type,
        Requirement.published.is_(True)
    ).exists()
