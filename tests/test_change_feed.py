import pytest
from sqlalchemy import text

from clearance_portal.models import db, ClearanceItem, ClearanceItemHistory, ItemStatus
from clearance_portal.services import ClearanceService, get_change_feed
from clearance_portal.services.change_feed import INSERT, UPDATE, ChangeEvent, mark_changed
from clearance_portal.utils.exceptions import ValidationError


@pytest.fixture()
def feed(app):
    return get_change_feed()


def _collect(feed, table, filter=None):
    events = []
    subscription = feed.subscribe(table, events.append, filter)
    return events, subscription


def test_transition_is_published_after_commit(submit_ready, student, feed):
    _, item = submit_ready
    events, _ = _collect(feed, ClearanceItem.__tablename__, {'source_id': item.source_id})

    ClearanceService.submit(student, item.id)

    updates = [e for e in events if e.operation == UPDATE]
    assert updates
    assert updates[-1].row['id'] == item.id
    assert updates[-1].row['status'] == ItemStatus.SUBMITTED.value


def test_history_inserts_are_published(submit_ready, student, feed):
    _, item = submit_ready
    events, _ = _collect(feed, ClearanceItemHistory.__tablename__, {'clearance_item_id': item.id})

    ClearanceService.submit(student, item.id)

    assert [(e.operation, e.row['to_status']) for e in events] == [(INSERT, 'submitted')]


def test_filter_excludes_other_rows(submit_ready, student, feed):
    _, item = submit_ready
    events, _ = _collect(feed, ClearanceItem.__tablename__, {'request_id': item.request_id + 1})

    ClearanceService.submit(student, item.id)

    assert events == []


def test_cancel_stops_delivery(submit_ready, student, feed):
    _, item = submit_ready
    events, subscription = _collect(feed, ClearanceItem.__tablename__)
    subscription.cancel()
    subscription.cancel()

    ClearanceService.submit(student, item.id)

    assert events == []
    assert subscription.active is False


def test_failed_transition_publishes_nothing(started, student, feed):
    _, item = started
    events, _ = _collect(feed, ClearanceItem.__tablename__)

    with pytest.raises(ValidationError):
        ClearanceService.submit(student, item.id)

    assert events == []


def test_rollback_drops_queued_events(app, feed):
    events, _ = _collect(feed, 'clearance_items')
    db.session.execute(text('SELECT 1'))
    mark_changed(db.session, 'clearance_items', UPDATE, {'id': 1})
    db.session.rollback()
    db.session.commit()
    assert events == []

    mark_changed(db.session, 'clearance_items', UPDATE, {'id': 2})
    db.session.commit()
    assert events == [ChangeEvent('clearance_items', UPDATE, {'id': 2})]
