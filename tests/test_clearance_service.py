import pytest
from sqlalchemy import update

from clearance_portal.models import db, ClearanceItem, ItemStatus, RequestStatus, SourceType
from clearance_portal.services import (
    ClearanceRequestService, ClearanceService, HistoryLedger, RequirementCatalog, SubmissionService,
    retry_on_conflict
)
from clearance_portal.services.authorization import ActorContext, Role
from clearance_portal.utils.exceptions import (
    AuthorizationError, ConcurrentModificationError, DatabaseError, InvalidTransitionError, ValidationError
)


def _reload(item_id):
    db.session.expire_all()
    return db.session.get(ClearanceItem, item_id)


class TestSubmit:

    def test_missing_required_submission(self, started, library, student, upload):
        _, item = started
        upload(student, item, library.requirements[0])

        with pytest.raises(ValidationError) as excinfo:
            ClearanceService.submit(student, item.id)

        assert "Returned books receipt" in str(excinfo.value)
        item = _reload(item.id)
        assert item.status == ItemStatus.PENDING
        assert HistoryLedger.list_for(item.id) == []

    def test_optional_requirements_are_not_needed(self, submit_ready, student):
        _, item = submit_ready

        item = ClearanceService.submit(student, item.id)

        assert item.status == ItemStatus.SUBMITTED
        assert item.version == 2
        history = HistoryLedger.list_for(item.id)
        assert len(history) == 1
        assert history[0].from_status == ItemStatus.PENDING
        assert history[0].to_status == ItemStatus.SUBMITTED
        assert history[0].actor_id == student.actor_id
        assert history[0].actor_role == 'student'

    def test_unpublished_required_requirement_is_ignored(self, submit_ready, library, student, make_requirement):
        _, item = submit_ready
        make_requirement(library, "Draft form", published=False)

        assert ClearanceService.submit(student, item.id).status == ItemStatus.SUBMITTED

    def test_restricted_submission_ids(self, submit_ready, student):
        _, item = submit_ready
        current = SubmissionService.current_for_item(item.id)
        first = next(iter(current.values()))

        with pytest.raises(ValidationError):
            ClearanceService.submit(student, item.id, submission_ids=[first.id])
        with pytest.raises(ValidationError) as excinfo:
            ClearanceService.submit(student, item.id, submission_ids=[9999])
        assert "9999" in str(excinfo.value)

        ids = [submission.id for submission in current.values()]
        assert ClearanceService.submit(student, item.id, submission_ids=ids).status == ItemStatus.SUBMITTED

    def test_only_the_owner_submits(self, submit_ready, other_student):
        _, item = submit_ready
        with pytest.raises(AuthorizationError):
            ClearanceService.submit(other_student, item.id)

    def test_submit_twice(self, submit_ready, student):
        _, item = submit_ready
        ClearanceService.submit(student, item.id)
        with pytest.raises(InvalidTransitionError):
            ClearanceService.submit(student, item.id)

    def test_resubmit_requires_rejected_or_on_hold(self, submit_ready, student):
        _, item = submit_ready
        with pytest.raises(InvalidTransitionError):
            ClearanceService.resubmit(student, item.id)

    def test_moves_request_in_progress(self, submit_ready, student):
        clearance_request, item = submit_ready
        ClearanceService.submit(student, item.id)
        db.session.expire_all()
        assert clearance_request.status == RequestStatus.IN_PROGRESS


class TestReview:

    def test_approve_pending_item(self, started, library, staff_for):
        _, item = started
        with pytest.raises(InvalidTransitionError):
            ClearanceService.review(staff_for(library), item.id, 'approve')
        assert _reload(item.id).status == ItemStatus.PENDING

    def test_approve(self, submit_ready, library, student, staff_for):
        clearance_request, item = submit_ready
        ClearanceService.submit(student, item.id)
        reviewer = staff_for(library)

        item = ClearanceService.review(reviewer, item.id, 'approve')

        assert item.status == ItemStatus.APPROVED
        assert item.reviewed_by == reviewer.actor_id
        assert item.reviewed_at is not None
        history = HistoryLedger.list_for(item.id)
        assert [entry.to_status for entry in history] == [ItemStatus.SUBMITTED, ItemStatus.APPROVED]
        assert history[-1].actor_role == 'office'
        assert clearance_request.status == RequestStatus.COMPLETED
        assert clearance_request.progress == 100

    @pytest.mark.parametrize("decision", ['reject', 'hold'])
    def test_remarks_required(self, submit_ready, library, student, staff_for, decision):
        _, item = submit_ready
        ClearanceService.submit(student, item.id)

        with pytest.raises(ValidationError):
            ClearanceService.review(staff_for(library), item.id, decision, remarks='   ')
        assert _reload(item.id).status == ItemStatus.SUBMITTED

    def test_unknown_decision(self, submit_ready, library, student, staff_for):
        _, item = submit_ready
        ClearanceService.submit(student, item.id)
        with pytest.raises(ValidationError):
            ClearanceService.review(staff_for(library), item.id, 'maybe')

    def test_staff_of_another_source(self, submit_ready, student, make_source):
        _, item = submit_ready
        ClearanceService.submit(student, item.id)
        registrar = make_source(SourceType.OFFICE, "Registrar", "REG")

        outsider = ActorContext('registrar-1', Role.OFFICE, registrar.id)
        with pytest.raises(AuthorizationError):
            ClearanceService.review(outsider, item.id, 'approve')
        with pytest.raises(AuthorizationError):
            ClearanceService.review(student, item.id, 'approve')

    def test_only_the_head_reviews(self, submit_ready, library, student, staff_for):
        _, item = submit_ready
        ClearanceService.submit(student, item.id)
        with pytest.raises(AuthorizationError):
            ClearanceService.review(staff_for(library, actor_id='assistant-1'), item.id, 'approve')

    def test_admin_reviews_any_source(self, submit_ready, student, admin):
        _, item = submit_ready
        ClearanceService.submit(student, item.id)
        assert ClearanceService.review(admin, item.id, 'hold', remarks="Bring ID").status == ItemStatus.ON_HOLD

    def test_unpublishing_keeps_approval(self, submit_ready, library, student, staff_for, admin):
        _, item = submit_ready
        ClearanceService.submit(student, item.id)
        ClearanceService.review(staff_for(library), item.id, 'approve')
        RequirementCatalog.update(admin, library.requirements[0].id, {'published': False})

        assert _reload(item.id).status == ItemStatus.APPROVED


class TestConcurrency:

    def test_second_reviewer_loses(self, submit_ready, library, student, staff_for, admin):
        _, item = submit_ready
        item = ClearanceService.submit(student, item.id)
        loaded_version = item.version

        ClearanceService.review(staff_for(library), item.id, 'approve', expected_version=loaded_version)
        with pytest.raises(ConcurrentModificationError):
            ClearanceService.review(admin, item.id, 'reject', remarks="Missing stamp",
                                    expected_version=loaded_version)

        item = _reload(item.id)
        assert item.status == ItemStatus.APPROVED
        assert len(HistoryLedger.list_for(item.id)) == 2

    def test_compare_and_swap_rejects_stale_write(self, submit_ready, library, student, staff_for, monkeypatch):
        _, item = submit_ready
        item = ClearanceService.submit(student, item.id)
        item_id, version = item.id, item.version
        original_check = ClearanceService._check_version

        def check_then_race(item, expected_version):
            original_check(item, expected_version)
            # Another writer bumps the row between the read and the write
            db.session.execute(
                update(ClearanceItem.__table__)
                .where(ClearanceItem.__table__.c.id == item.id)
                .values(version=ClearanceItem.__table__.c.version + 1)
            )

        monkeypatch.setattr(ClearanceService, '_check_version', staticmethod(check_then_race))
        with pytest.raises(ConcurrentModificationError):
            ClearanceService.review(staff_for(library), item_id, 'approve')

        item = _reload(item_id)
        assert item.status == ItemStatus.SUBMITTED
        assert item.version == version
        assert len(HistoryLedger.list_for(item_id)) == 1

    def test_ledger_failure_rolls_back_status(self, submit_ready, library, student, staff_for, monkeypatch):
        _, item = submit_ready
        item = ClearanceService.submit(student, item.id)
        item_id, version = item.id, item.version

        def broken_append(*args, **kwargs):
            raise DatabaseError("ledger unavailable")

        monkeypatch.setattr(HistoryLedger, 'append', staticmethod(broken_append))
        with pytest.raises(DatabaseError):
            ClearanceService.review(staff_for(library), item_id, 'approve')

        item = _reload(item_id)
        assert item.status == ItemStatus.SUBMITTED
        assert item.version == version

    def test_retry_on_conflict(self, app):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise ConcurrentModificationError("stale")
            return 'done'

        assert retry_on_conflict(flaky) == 'done'
        assert len(calls) == 2

    def test_retry_gives_up(self, app):
        def always_stale():
            raise ConcurrentModificationError("stale")

        with pytest.raises(ConcurrentModificationError):
            retry_on_conflict(always_stale, attempts=3)


def test_library_rejection_round_trip(submit_ready, library, student, staff_for, upload):
    """Reject, fix, resubmit and approve a single-office clearance"""
    clearance_request, item = submit_ready
    reviewer = staff_for(library)
    ClearanceService.submit(student, item.id)

    ClearanceService.review(reviewer, item.id, 'reject', remarks="blurry scan")
    item = _reload(item.id)
    assert item.status == ItemStatus.REJECTED
    assert item.remarks == "blurry scan"
    assert len(HistoryLedger.list_for(item.id)) == 2

    upload(student, item, library.requirements[0], filename="renewed.png", content_type="image/png")
    ClearanceService.resubmit(student, item.id)
    assert len(HistoryLedger.list_for(item.id)) == 3

    ClearanceService.review(reviewer, item.id, 'approve')
    history = HistoryLedger.list_for(item.id)
    assert len(history) == 4
    assert [(entry.from_status, entry.to_status) for entry in history] == [
        (ItemStatus.PENDING, ItemStatus.SUBMITTED),
        (ItemStatus.SUBMITTED, ItemStatus.REJECTED),
        (ItemStatus.REJECTED, ItemStatus.SUBMITTED),
        (ItemStatus.SUBMITTED, ItemStatus.APPROVED),
    ]
    assert history[1].remarks == "blurry scan"
    assert HistoryLedger.check_consistency(item.id) == []

    clearance_request = ClearanceRequestService.get(clearance_request.id)
    assert clearance_request.status == RequestStatus.COMPLETED
    assert clearance_request.progress == 100


def test_progress_across_items(student, library, make_source, make_requirement, upload, staff_for):
    registrar = make_source(SourceType.OFFICE, "Registrar", "REG")
    make_requirement(registrar, "Clearance form", requires_upload=False)
    clearance_request = ClearanceRequestService.start(student, 'semester')
    item = next(i for i in clearance_request.items if i.source_id == library.id)
    for requirement in library.requirements:
        if requirement.is_required:
            upload(student, item, requirement)

    ClearanceService.submit(student, item.id)
    ClearanceService.review(staff_for(library), item.id, 'approve')

    clearance_request = ClearanceRequestService.get(clearance_request.id)
    assert clearance_request.status == RequestStatus.IN_PROGRESS
    assert clearance_request.progress == 50


def test_review_queue(submit_ready, library, student, staff_for):
    _, item = submit_ready
    reviewer = staff_for(library)
    assert [i.id for i in ClearanceService.queue_for_source(reviewer, library.id, 'submitted')] == []

    ClearanceService.submit(student, item.id)

    assert [i.id for i in ClearanceService.queue_for_source(reviewer, library.id, 'submitted')] == [item.id]
    with pytest.raises(AuthorizationError):
        ClearanceService.queue_for_source(student, library.id)
