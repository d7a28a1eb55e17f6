import os

import pytest

from clearance_portal.models import db, RequirementSubmission, SubmissionStatus
from clearance_portal.services import ClearanceService, SubmissionService
from clearance_portal.services.storage_service import get_object_store
from clearance_portal.utils.exceptions import AuthorizationError, NotFoundError, ValidationError


def _stored_path(url):
    store = get_object_store()
    return os.path.join(store.root, url[len(store.url_prefix):])


def test_upload_stores_file(started, library, student, upload):
    _, item = started
    card = library.requirements[0]

    submission = upload(student, item, card)

    assert submission.status == SubmissionStatus.SUBMITTED
    assert submission.student_id == student.actor_id
    assert submission.file_url.startswith(f"/uploads/submissions/{card.id}/{student.actor_id}_")
    assert submission.file_url.endswith(".pdf")
    with open(_stored_path(submission.file_url), 'rb') as handle:
        assert handle.read().startswith(b"%PDF")
    assert SubmissionService.current_for_item(item.id) == {card.id: submission}


def test_reupload_supersedes(started, library, student, upload):
    _, item = started
    card = library.requirements[0]
    first = upload(student, item, card)
    second = upload(student, item, card, filename="card.jpg", content_type="image/jpeg")

    db.session.refresh(first)
    assert first.status == SubmissionStatus.SUPERSEDED
    assert SubmissionService.current_for_item(item.id)[card.id].id == second.id
    assert RequirementSubmission.query.filter_by(clearance_item_id=item.id).count() == 2


@pytest.mark.parametrize("filename,content_type,data", [
    ("virus.exe", "application/octet-stream", b"MZ"),
    ("scan.pdf", "", b"%PDF"),
    ("huge.pdf", "application/pdf", b"0" * (10 * 1024 * 1024 + 1)),
])
def test_rejected_files(started, library, student, upload, filename, content_type, data):
    _, item = started
    with pytest.raises(ValidationError):
        upload(student, item, library.requirements[0], filename=filename, content_type=content_type, data=data)
    assert SubmissionService.current_for_item(item.id) == {}


def test_checklist_items_are_acknowledged(started, library, student, upload):
    _, item = started
    survey = library.requirements[2]

    with pytest.raises(ValidationError):
        upload(student, item, survey)

    ticked = SubmissionService.acknowledge(student, item.id, survey.id, True)
    assert ticked.file_url is None
    assert SubmissionService.current_for_item(item.id)[survey.id].id == ticked.id

    assert SubmissionService.acknowledge(student, item.id, survey.id, False) is None
    assert survey.id not in SubmissionService.current_for_item(item.id)
    db.session.refresh(ticked)
    assert ticked.status == SubmissionStatus.WITHDRAWN


def test_upload_requirements_cannot_be_acknowledged(started, library, student):
    _, item = started
    with pytest.raises(ValidationError):
        SubmissionService.acknowledge(student, item.id, library.requirements[0].id, True)


def test_remove_withdraws_and_deletes_file(started, library, student, upload):
    _, item = started
    submission = upload(student, item, library.requirements[0])
    path = _stored_path(submission.file_url)

    removed = SubmissionService.remove(student, submission.id)

    assert removed.status == SubmissionStatus.WITHDRAWN
    assert not os.path.exists(path)
    assert SubmissionService.current_for_item(item.id) == {}
    with pytest.raises(ValidationError):
        SubmissionService.remove(student, submission.id)


def test_locked_while_submitted(submit_ready, library, student, upload):
    _, item = submit_ready
    ClearanceService.submit(student, item.id)
    submission = next(iter(SubmissionService.current_for_item(item.id).values()))

    with pytest.raises(ValidationError) as excinfo:
        upload(student, item, library.requirements[0])
    assert "submitted" in str(excinfo.value)
    with pytest.raises(ValidationError):
        SubmissionService.remove(student, submission.id)


def test_requirement_of_another_source(started, student, make_source, make_requirement, upload):
    _, item = started
    registrar = make_source(name="Registrar", code="REG")
    form = make_requirement(registrar, "Transcript form")
    with pytest.raises(NotFoundError):
        upload(student, item, form)


def test_unpublished_requirement(started, library, student, make_requirement, upload):
    _, item = started
    draft = make_requirement(library, "Draft", published=False)
    with pytest.raises(NotFoundError):
        upload(student, item, draft)


def test_only_the_owner_uploads(started, library, other_student, upload):
    _, item = started
    with pytest.raises(AuthorizationError):
        upload(other_student, item, library.requirements[0])
