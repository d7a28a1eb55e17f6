"""
Requirement submission service
"""

from typing import Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from clearance_portal.models import (
    db, ClearanceItem, Requirement, RequirementSubmission, SubmissionStatus
)
from clearance_portal.services.authorization import ActorContext, ensure_student_owner
from clearance_portal.services.state_machine import SUBMITTABLE_STATUSES
from clearance_portal.services.storage_service import (
    build_object_key, get_object_store, validate_submission_file
)
from clearance_portal.utils.exceptions import (
    DatabaseError, FileUploadError, NotFoundError, ValidationError
)
from clearance_portal.utils.helpers import log_error, log_info, log_warning, utcnow


class SubmissionService:
    """Uploads, acknowledgements and the current-submission view of an item"""

    @staticmethod
    def current_for_item(item_id: int) -> Dict[int, RequirementSubmission]:
        """
        Current submission per requirement of an item

        Returns:
            requirement_id -> newest live submission
        """
        rows = RequirementSubmission.query.filter_by(
            clearance_item_id=item_id, status=SubmissionStatus.SUBMITTED
        ).order_by(RequirementSubmission.submitted_at.asc(), RequirementSubmission.id.asc()).all()
        current = {}
        for row in rows:
            current[row.requirement_id] = row
        return current

    @staticmethod
    def required_requirements(item: ClearanceItem) -> List[Requirement]:
        return Requirement.query.filter_by(
            source_type=item.source_type, source_id=item.source_id, published=True, is_required=True
        ).order_by(Requirement.order.asc()).all()

    @staticmethod
    def check_required_coverage(item: ClearanceItem, submission_ids: Optional[Iterable[int]] = None) -> None:
        """
        Ensure every published required requirement has a current submission

        Args:
            item: Clearance item about to be submitted
            submission_ids: Restrict coverage to these submissions

        Raises:
            ValidationError: Unknown/stale submission id or missing requirement
        """
        current = SubmissionService.current_for_item(item.id)
        if submission_ids is None:
            covered = set(current)
        else:
            by_id = {row.id: row for row in current.values()}
            wanted = {int(submission_id) for submission_id in submission_ids}
            unknown = sorted(wanted - set(by_id))
            if unknown:
                raise ValidationError(
                    f"Submissions {', '.join(str(i) for i in unknown)} are not current submissions of this item")
            covered = {by_id[submission_id].requirement_id for submission_id in wanted}

        missing = [requirement.name for requirement in SubmissionService.required_requirements(item)
                   if requirement.id not in covered]
        if missing:
            raise ValidationError(f"Missing submissions for required requirements: {', '.join(missing)}")

    @staticmethod
    def upload(actor: ActorContext, item_id: int, requirement_id: int,
               filename: str, content_type: str, data: bytes) -> RequirementSubmission:
        """
        Store a document and make it the current submission for the requirement

        Args:
            actor: Owning student
            item_id: Clearance item id
            requirement_id: Requirement of the item's source
            filename: Original file name
            content_type: MIME type of the file
            data: File bytes

        Returns:
            The new submission
        """
        item = SubmissionService._editable_item(actor, item_id)
        requirement = SubmissionService._requirement_for(item, requirement_id)
        if not requirement.requires_upload:
            raise ValidationError(f"'{requirement.name}' is a checklist item; acknowledge it instead")
        validate_submission_file(filename, content_type, data,
                                 current_app.config['SUBMISSION_ALLOWED_EXTENSIONS'],
                                 current_app.config['SUBMISSION_MAX_BYTES'])

        store = get_object_store()
        url = store.put(data, content_type,
                        build_object_key(f"submissions/{requirement.id}", actor.actor_id, filename))
        try:
            submission = SubmissionService._replace_current(item, requirement, actor.actor_id, url)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            store.delete(url)
            log_error("Save submission error", e)
            raise DatabaseError("Failed to save submission") from e
        log_info(f"Submission {submission.id} stored for item {item.id}, requirement {requirement.id}")
        return submission

    @staticmethod
    def acknowledge(actor: ActorContext, item_id: int, requirement_id: int,
                    acknowledged: bool) -> Optional[RequirementSubmission]:
        """Tick or untick a checklist requirement; returns the live row or None"""
        item = SubmissionService._editable_item(actor, item_id)
        requirement = SubmissionService._requirement_for(item, requirement_id)
        if requirement.requires_upload:
            raise ValidationError(f"'{requirement.name}' requires a file upload")

        try:
            if acknowledged:
                submission = SubmissionService._replace_current(item, requirement, actor.actor_id, None)
            else:
                submission = None
                live = SubmissionService.current_for_item(item.id).get(requirement.id)
                if live is not None:
                    live.status = SubmissionStatus.WITHDRAWN
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Acknowledge requirement error", e)
            raise DatabaseError("Failed to save acknowledgement") from e
        return submission

    @staticmethod
    def remove(actor: ActorContext, submission_id: int) -> RequirementSubmission:
        """Withdraw a submission and delete its file from the store"""
        submission = db.session.get(RequirementSubmission, submission_id)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        SubmissionService._editable_item(actor, submission.clearance_item_id)
        if submission.status != SubmissionStatus.SUBMITTED:
            raise ValidationError("Only a current submission can be removed")

        file_url = submission.file_url
        try:
            submission.status = SubmissionStatus.WITHDRAWN
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Remove submission error", e)
            raise DatabaseError("Failed to remove submission") from e

        if file_url:
            try:
                get_object_store().delete(file_url)
            except FileUploadError as e:
                # The withdrawal stands even if the object lingers
                log_warning(f"Could not delete submission file {file_url}: {e}")
        return submission

    @staticmethod
    def _replace_current(item: ClearanceItem, requirement: Requirement, student_id: str,
                         file_url: Optional[str]) -> RequirementSubmission:
        previous = SubmissionService.current_for_item(item.id).get(requirement.id)
        if previous is not None:
            previous.status = SubmissionStatus.SUPERSEDED
        submission = RequirementSubmission(
            clearance_item_id=item.id,
            requirement_id=requirement.id,
            student_id=student_id,
            file_url=file_url,
            status=SubmissionStatus.SUBMITTED,
            submitted_at=utcnow()
        )
        db.session.add(submission)
        db.session.flush()
        return submission

    @staticmethod
    def _editable_item(actor: ActorContext, item_id: int) -> ClearanceItem:
        item = db.session.get(ClearanceItem, item_id)
        if item is None:
            raise NotFoundError(f"Clearance item {item_id} not found")
        ensure_student_owner(actor, item.request.student_id)
        if not item.request.is_active:
            raise ValidationError("This clearance request is already completed")
        if item.status not in SUBMITTABLE_STATUSES:
            raise ValidationError(
                f"Submissions are locked while the item is {item.status.value.replace('_', ' ')}")
        return item

    @staticmethod
    def _requirement_for(item: ClearanceItem, requirement_id: int) -> Requirement:
        requirement = db.session.get(Requirement, requirement_id)
        if (requirement is None or requirement.source_id != item.source_id
                or requirement.source_type != item.source_type or not requirement.published):
            raise NotFoundError(f"Requirement {requirement_id} not found for this clearance item")
        return requirement
