"""
Clearance request aggregation

Request status and progress are derived from the item statuses. Recomputation
runs on the item-status-changed signal inside the transition's transaction.
"""

from typing import Iterable

from blinker import Namespace

from clearance_portal.models import db, ClearanceItem, ClearanceRequest, ItemStatus, RequestStatus
from clearance_portal.utils.helpers import log_info, utcnow

_signals = Namespace()

# Sent with the ClearanceItem as sender after every status change
item_status_changed = _signals.signal('item-status-changed')


def derive_status(statuses: Iterable[ItemStatus]) -> RequestStatus:
    statuses = [ItemStatus(s) for s in statuses]
    if statuses and all(s == ItemStatus.APPROVED for s in statuses):
        return RequestStatus.COMPLETED
    if any(s != ItemStatus.PENDING for s in statuses):
        return RequestStatus.IN_PROGRESS
    return RequestStatus.PENDING


def compute_progress(statuses: Iterable[ItemStatus]) -> int:
    """Approved share as a whole percentage; 0 for a request without items."""
    statuses = [ItemStatus(s) for s in statuses]
    if not statuses:
        return 0
    approved = sum(1 for s in statuses if s == ItemStatus.APPROVED)
    return round(approved * 100 / len(statuses))


def recompute_request(request_id: int) -> ClearanceRequest:
    """Write the derived status onto the request; the caller commits."""
    clearance_request = db.session.get(ClearanceRequest, request_id)
    statuses = [row.status for row in
                db.session.query(ClearanceItem.status).filter(ClearanceItem.request_id == request_id)]
    status = derive_status(statuses)
    if clearance_request.status != status:
        log_info(f"Clearance request {request_id}: {clearance_request.status.value} -> {status.value}")
        clearance_request.status = status
        clearance_request.updated_at = utcnow()
        if status == RequestStatus.COMPLETED:
            clearance_request.active_student_id = None
    return clearance_request


@item_status_changed.connect
def _on_item_status_changed(item, **extra):
    recompute_request(extra.get('request_id') or item.request_id)
