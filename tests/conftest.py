import pytest

from clearance_portal import create_app
from clearance_portal.models import db, SourceType
from clearance_portal.services import (
    ActorContext, ClearanceRequestService, RequirementCatalog, Role, SourceService, SubmissionService
)
from clearance_portal.services.storage_service import LocalObjectStore

PDF_BYTES = b"%PDF-1.4 scanned document"


@pytest.fixture()
def app(tmp_path):
    store = LocalObjectStore(str(tmp_path / "uploads"))
    app = create_app("testing", object_store=store)
    with app.app_context():
        db.create_all()
        try:
            yield app
        finally:
            db.session.remove()
            db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin():
    return ActorContext(actor_id="admin-1", role=Role.ADMIN)


@pytest.fixture()
def student():
    return ActorContext(actor_id="student-1", role=Role.STUDENT)


@pytest.fixture()
def other_student():
    return ActorContext(actor_id="student-2", role=Role.STUDENT)


@pytest.fixture()
def make_source(app, admin):
    def _make(source_type=SourceType.OFFICE, name="Library", code=None, head_id=None):
        return SourceService.create(admin, source_type, name, code or name[:6], head_id=head_id)

    return _make


@pytest.fixture()
def make_requirement(app, admin):
    def _make(source, name="Library card", is_required=True, requires_upload=True, published=True):
        return RequirementCatalog.create(
            admin, source.source_type, source.id, name,
            is_required=is_required, requires_upload=requires_upload, published=published,
        )

    return _make


@pytest.fixture()
def staff_for():
    def _staff(source, actor_id=None):
        role = Role(source.source_type.value)
        return ActorContext(actor_id=actor_id or source.head_id or f"staff-{source.id}", role=role,
                            source_id=source.id)

    return _staff


@pytest.fixture()
def library(make_source, make_requirement):
    """Office with two required uploads and one optional checklist item"""
    source = make_source(SourceType.OFFICE, "Library", "LIB", head_id="librarian-1")
    make_requirement(source, "Library card")
    make_requirement(source, "Returned books receipt")
    make_requirement(source, "Exit survey", is_required=False, requires_upload=False)
    return source


@pytest.fixture()
def upload():
    def _upload(actor, item, requirement, filename="scan.pdf", content_type="application/pdf", data=PDF_BYTES):
        return SubmissionService.upload(actor, item.id, requirement.id, filename, content_type, data)

    return _upload


@pytest.fixture()
def started(student, library):
    """Active semester request for `student` with a single Library item"""
    clearance_request = ClearanceRequestService.start(student, "semester")
    return clearance_request, clearance_request.items[0]


@pytest.fixture()
def submit_ready(started, library, student, upload):
    """Library item with every required requirement uploaded"""
    clearance_request, item = started
    for requirement in library.requirements:
        if requirement.is_required:
            upload(student, item, requirement)
    return clearance_request, item
