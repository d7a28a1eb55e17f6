"""
Clearance item transitions: submit, resubmit and review

Each transition is one transaction: a compare-and-swap UPDATE on the item's
(status, version), the ledger entry, the request recomputation and the
activity entry. Any failure rolls all of them back.
"""

from typing import Callable, Iterable, List, Optional, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from clearance_portal.models import db, ClearanceItem, ItemStatus
from clearance_portal.services.activity_service import ActivityService
from clearance_portal.services.aggregator import item_status_changed
from clearance_portal.services.authorization import (
    ActorContext, can_view_item, ensure_can_review, ensure_student_owner, ensure_can_manage_source
)
from clearance_portal.services.change_feed import UPDATE, mark_changed
from clearance_portal.services.history_service import HistoryLedger
from clearance_portal.services.source_service import SourceService
from clearance_portal.services.state_machine import (
    DECISION_ACTIONS, REMARKS_REQUIRED, RESUBMITTABLE_STATUSES, SUBMITTABLE_STATUSES,
    ReviewDecision, decision_status, ensure_transition
)
from clearance_portal.services.submission_service import SubmissionService
from clearance_portal.utils.exceptions import (
    AuthorizationError, ClearancePortalError, ConcurrentModificationError, DatabaseError,
    InvalidTransitionError, NotFoundError, ValidationError
)
from clearance_portal.utils.helpers import log_error, log_info, log_warning, utcnow
from clearance_portal.utils.validators import validate_choice

T = TypeVar('T')


class ClearanceService:
    """State machine operations on clearance items"""

    @staticmethod
    def get_item(item_id: int) -> ClearanceItem:
        item = db.session.get(ClearanceItem, item_id)
        if item is None:
            raise NotFoundError(f"Clearance item {item_id} not found")
        return item

    @staticmethod
    def get_item_for_actor(actor: ActorContext, item_id: int) -> ClearanceItem:
        item = ClearanceService.get_item(item_id)
        if not can_view_item(actor, item):
            raise AuthorizationError("You are not allowed to view this clearance item")
        return item

    @staticmethod
    def submit(actor: ActorContext, item_id: int, submission_ids: Optional[Iterable[int]] = None,
               expected_version: Optional[int] = None) -> ClearanceItem:
        """
        Send an item for review (pending, rejected or on_hold -> submitted)

        Args:
            actor: Owning student
            item_id: Clearance item id
            submission_ids: Submissions certifying the requirements; all
                current submissions of the item when omitted
            expected_version: Item version the client loaded

        Returns:
            The submitted item

        Raises:
            ValidationError: A required requirement has no submission
            InvalidTransitionError: Item is submitted or approved
            ConcurrentModificationError: Item changed since it was read
        """
        return ClearanceService._submit(actor, item_id, submission_ids, expected_version,
                                        SUBMITTABLE_STATUSES, 'submitted')

    @staticmethod
    def resubmit(actor: ActorContext, item_id: int, submission_ids: Optional[Iterable[int]] = None,
                 expected_version: Optional[int] = None) -> ClearanceItem:
        """Same as submit, only from rejected or on_hold"""
        return ClearanceService._submit(actor, item_id, submission_ids, expected_version,
                                        RESUBMITTABLE_STATUSES, 'resubmitted')

    @staticmethod
    def review(actor: ActorContext, item_id: int, decision, remarks: Optional[str] = None,
               expected_version: Optional[int] = None) -> ClearanceItem:
        """
        Approve, reject or hold a submitted item

        Args:
            actor: Staff of the item's source, or an admin
            item_id: Clearance item id
            decision: approve, reject or hold
            remarks: Required for reject and hold
            expected_version: Item version the reviewer loaded

        Returns:
            The reviewed item

        Raises:
            AuthorizationError: Actor does not review this source
            InvalidTransitionError: Item is not submitted
            ValidationError: Missing remarks
            ConcurrentModificationError: Another reviewer got there first
        """
        decision = validate_choice(decision, ReviewDecision, 'Decision')
        item = ClearanceService.get_item(item_id)
        ensure_can_review(actor, item)
        ClearanceService._check_version(item, expected_version)

        target = decision_status(decision)
        ensure_transition(item.status, target)
        remarks = (remarks or '').strip() or None
        if decision in REMARKS_REQUIRED and not remarks:
            raise ValidationError("Remarks are required when rejecting or putting an item on hold")

        return ClearanceService._transition(item, target, actor, remarks, reviewed=True,
                                            action=DECISION_ACTIONS[decision])

    @staticmethod
    def queue_for_source(actor: ActorContext, source_id: int, status=None) -> List[ClearanceItem]:
        """Items of one source for its reviewers, newest activity first"""
        source = SourceService.get(source_id)
        ensure_can_manage_source(actor, source.source_type, source.id)
        query = ClearanceItem.query.filter_by(source_type=source.source_type, source_id=source.id)
        if status:
            query = query.filter_by(status=validate_choice(status, ItemStatus, 'Status'))
        return query.order_by(ClearanceItem.updated_at.desc(), ClearanceItem.id.desc()).all()

    @staticmethod
    def _submit(actor, item_id, submission_ids, expected_version, allowed_from, action) -> ClearanceItem:
        item = ClearanceService.get_item(item_id)
        ensure_student_owner(actor, item.request.student_id)
        ClearanceService._check_version(item, expected_version)
        if item.status not in allowed_from:
            raise InvalidTransitionError(item.status, ItemStatus.SUBMITTED)
        ensure_transition(item.status, ItemStatus.SUBMITTED)
        SubmissionService.check_required_coverage(item, submission_ids)
        return ClearanceService._transition(item, ItemStatus.SUBMITTED, actor, None, reviewed=False, action=action)

    @staticmethod
    def _check_version(item: ClearanceItem, expected_version: Optional[int]) -> None:
        if expected_version is not None and int(expected_version) != item.version:
            raise ConcurrentModificationError(
                "This clearance item changed since you loaded it. Refresh and try again.")

    @staticmethod
    def _transition(item: ClearanceItem, target: ItemStatus, actor: ActorContext,
                    remarks: Optional[str], reviewed: bool, action: str) -> ClearanceItem:
        item_id, request_id, source_id = item.id, item.request_id, item.source_id
        current, version = item.status, item.version
        now = utcnow()
        values = {
            'status': target,
            'version': version + 1,
            'remarks': remarks,
            'updated_at': now,
        }
        if reviewed:
            values['reviewed_at'] = now
            values['reviewed_by'] = actor.actor_id

        try:
            result = db.session.execute(
                update(ClearanceItem)
                .where(ClearanceItem.id == item_id,
                       ClearanceItem.status == current,
                       ClearanceItem.version == version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrentModificationError(
                    "This clearance item changed since you loaded it. Refresh and try again.")
            db.session.expire(item)

            HistoryLedger.append(item_id, current, target, actor, remarks)
            item_status_changed.send(item, request_id=request_id)
            ActivityService.log(actor, action,
                                f"Clearance item {item_id}: {current.value} -> {target.value}",
                                'clearance_item', item_id)
            mark_changed(db.session, ClearanceItem.__tablename__, UPDATE,
                         {'id': item_id, 'request_id': request_id, 'source_id': source_id,
                          'status': target.value})
            db.session.commit()
        except ConcurrentModificationError:
            db.session.rollback()
            log_warning(f"Concurrent modification on clearance item {item_id} ({current.value} -> {target.value})")
            raise
        except ClearancePortalError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error(f"Clearance item {item_id} transition error", e)
            raise DatabaseError("Failed to update clearance item") from e

        log_info(f"Clearance item {item_id}: {current.value} -> {target.value} by {actor.role.value} {actor.actor_id}")
        return item


def retry_on_conflict(operation: Callable[[], T], attempts: int = 2) -> T:
    """
    Run operation, re-running it after a ConcurrentModificationError

    Each attempt re-reads the item, so the retry sees the winner's state.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrentModificationError:
            if attempt == attempts:
                raise
            log_warning(f"Retrying after concurrent modification (attempt {attempt + 1} of {attempts})")
