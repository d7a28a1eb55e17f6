import pytest

from clearance_portal.models import SourceType
from clearance_portal.services import ActivityService, RequirementCatalog
from clearance_portal.services.authorization import ActorContext, Role
from clearance_portal.utils.exceptions import AuthorizationError, NotFoundError, ValidationError


def _names(source, published_only=False):
    return [r.name for r in RequirementCatalog.list(source.source_type, source.id, published_only)]


def _orders(source):
    return [r.order for r in RequirementCatalog.list(source.source_type, source.id)]


def test_create_appends(library):
    assert _names(library) == ["Library card", "Returned books receipt", "Exit survey"]
    assert _orders(library) == [1, 2, 3]


def test_staff_manage_their_own_source(library, staff_for, make_source):
    librarian = staff_for(library)
    created = RequirementCatalog.create(librarian, 'office', library.id, "  Fines receipt ")
    assert created.name == "Fines receipt"
    assert created.order == 4
    assert created.published is False

    registrar = make_source(SourceType.OFFICE, "Registrar", "REG")
    with pytest.raises(AuthorizationError):
        RequirementCatalog.create(librarian, 'office', registrar.id, "Transcript request")


def test_source_type_must_match(library, admin):
    with pytest.raises(NotFoundError):
        RequirementCatalog.create(admin, 'department', library.id, "Thesis")


def test_students_cannot_edit(library, student):
    with pytest.raises(AuthorizationError):
        RequirementCatalog.update(student, library.requirements[0].id, {'name': "Anything"})


def test_published_only(library, admin):
    hidden = library.requirements[1]
    RequirementCatalog.update(admin, hidden.id, {'published': False})
    assert _names(library, published_only=True) == ["Library card", "Exit survey"]
    assert len(_names(library)) == 3


def test_move_with_order(library, admin):
    survey = library.requirements[2]
    RequirementCatalog.update(admin, survey.id, {'order': 1})
    assert _names(library) == ["Exit survey", "Library card", "Returned books receipt"]
    assert _orders(library) == [1, 2, 3]


def test_order_out_of_range(library, admin):
    with pytest.raises(ValidationError):
        RequirementCatalog.update(admin, library.requirements[0].id, {'order': 4, 'name': "Renamed"})
    assert _names(library)[0] == "Library card"


def test_unknown_fields(library, admin):
    with pytest.raises(ValidationError):
        RequirementCatalog.update(admin, library.requirements[0].id, {'source_id': 99})


def test_reorder(library, admin):
    card, receipt, survey = library.requirements
    result = RequirementCatalog.reorder(admin, 'office', library.id, [receipt.id, survey.id, card.id])
    assert [r.name for r in result] == ["Returned books receipt", "Exit survey", "Library card"]
    assert [r.order for r in result] == [1, 2, 3]
    assert ActivityService.recent('requirements_reordered')[0].target_id == library.id


@pytest.mark.parametrize("pick", [
    lambda ids: ids[:2],
    lambda ids: ids + [ids[0]],
    lambda ids: ids[:2] + [9999],
])
def test_reorder_needs_a_permutation(library, admin, pick):
    ids = [r.id for r in library.requirements]
    with pytest.raises(ValidationError):
        RequirementCatalog.reorder(admin, 'office', library.id, pick(ids))
    assert _orders(library) == [1, 2, 3]


def test_delete_renumbers(library, admin):
    RequirementCatalog.delete(admin, library.requirements[0].id)
    assert _names(library) == ["Returned books receipt", "Exit survey"]
    assert _orders(library) == [1, 2]
    with pytest.raises(NotFoundError):
        RequirementCatalog.delete(admin, 9999)


def test_delete_with_submissions(started, library, admin, student, upload):
    _, item = started
    card = library.requirements[0]
    upload(student, item, card)

    with pytest.raises(ValidationError):
        RequirementCatalog.delete(admin, card.id)
    assert len(_names(library)) == 3


def test_club_head_with_wrong_role(library):
    club_head = ActorContext('club-1', Role.CLUB, library.id)
    with pytest.raises(AuthorizationError):
        RequirementCatalog.reorder(club_head, 'office', library.id, [r.id for r in library.requirements])
