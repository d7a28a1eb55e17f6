"""
Realtime change notifications

Row changes are collected while a session flushes and published to subscribers
once the transaction commits; a rollback drops them. Events carry no diff
guarantee, so subscribers treat each one as "re-fetch".
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from blinker import Namespace
from flask import current_app, has_app_context
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

PENDING_KEY = 'pending_change_events'

INSERT = 'insert'
UPDATE = 'update'
DELETE = 'delete'


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    operation: str
    row: Dict[str, Any] = field(default_factory=dict)


class Subscription:
    """Handle returned by ChangeFeed.subscribe; cancel() stops delivery"""

    def __init__(self, signal, receiver):
        self._signal = signal
        self._receiver = receiver
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._signal.disconnect(self._receiver)
            self.active = False


class ChangeFeed:
    """Per-application change notification bus"""

    def __init__(self, app=None):
        self._signals = Namespace()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.extensions['change_feed'] = self

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None],
                  filter: Optional[Dict[str, Any]] = None) -> Subscription:
        """
        Subscribe to changes on a table

        Callbacks run right after commit, when the session can no longer emit
        SQL; they should schedule a re-fetch rather than query inline.

        Args:
            table: Table name, e.g. 'clearance_items'
            callback: Called with each matching ChangeEvent
            filter: Column values the changed row must carry

        Returns:
            Cancellable subscription handle
        """
        signal = self._signals.signal(table)

        def receiver(sender, change=None):
            if _matches(change.row, filter):
                callback(change)

        signal.connect(receiver, weak=False)
        return Subscription(signal, receiver)

    def publish(self, change: ChangeEvent) -> None:
        self._signals.signal(change.table).send(self, change=change)


def get_change_feed() -> Optional[ChangeFeed]:
    if not has_app_context():
        return None
    return current_app.extensions.get('change_feed')


def mark_changed(session: Session, table: str, operation: str, row: Dict[str, Any]) -> None:
    """Queue an event for changes made with bulk statements that skip the flush"""
    session.info.setdefault(PENDING_KEY, []).append(ChangeEvent(table, operation, dict(row)))


def _matches(row: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    if not filter:
        return True
    return all(_plain(row.get(key)) == _plain(value) for key, value in filter.items())


def _plain(value):
    return getattr(value, 'value', value)


def _row_snapshot(obj) -> Dict[str, Any]:
    state = inspect(obj)
    return {attr.key: _plain(state.dict[attr.key])
            for attr in state.mapper.column_attrs
            if attr.key in state.dict}


@event.listens_for(Session, 'after_flush')
def _collect_flushed_changes(session, flush_context):
    for operation, objects in ((INSERT, session.new), (UPDATE, session.dirty), (DELETE, session.deleted)):
        for obj in objects:
            if operation == UPDATE and not session.is_modified(obj):
                continue
            table = getattr(obj, '__tablename__', None)
            if table:
                mark_changed(session, table, operation, _row_snapshot(obj))


@event.listens_for(Session, 'after_commit')
def _publish_committed_changes(session):
    changes = session.info.pop(PENDING_KEY, [])
    feed = get_change_feed()
    if feed is None:
        return
    for change in changes:
        feed.publish(change)


@event.listens_for(Session, 'after_soft_rollback')
def _drop_rolled_back_changes(session, previous_transaction):
    session.info.pop(PENDING_KEY, None)
