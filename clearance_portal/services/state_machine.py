"""
Clearance item state machine

    pending -> submitted -> approved | rejected | on_hold
    rejected | on_hold -> submitted

approved is terminal.
"""

import enum

from clearance_portal.models import ItemStatus
from clearance_portal.utils.exceptions import InvalidTransitionError


class ReviewDecision(str, enum.Enum):
    APPROVE = 'approve'
    REJECT = 'reject'
    HOLD = 'hold'


TRANSITIONS = {
    ItemStatus.PENDING: frozenset({ItemStatus.SUBMITTED}),
    ItemStatus.SUBMITTED: frozenset({ItemStatus.APPROVED, ItemStatus.REJECTED, ItemStatus.ON_HOLD}),
    ItemStatus.REJECTED: frozenset({ItemStatus.SUBMITTED}),
    ItemStatus.ON_HOLD: frozenset({ItemStatus.SUBMITTED}),
    ItemStatus.APPROVED: frozenset(),
}

SUBMITTABLE_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.REJECTED, ItemStatus.ON_HOLD})
RESUBMITTABLE_STATUSES = frozenset({ItemStatus.REJECTED, ItemStatus.ON_HOLD})

DECISION_STATUS = {
    ReviewDecision.APPROVE: ItemStatus.APPROVED,
    ReviewDecision.REJECT: ItemStatus.REJECTED,
    ReviewDecision.HOLD: ItemStatus.ON_HOLD,
}

REMARKS_REQUIRED = frozenset({ReviewDecision.REJECT, ReviewDecision.HOLD})

# Activity log action names
DECISION_ACTIONS = {
    ReviewDecision.APPROVE: 'approved',
    ReviewDecision.REJECT: 'rejected',
    ReviewDecision.HOLD: 'put_on_hold',
}


def can_transition(current: ItemStatus, target: ItemStatus) -> bool:
    return target in TRANSITIONS.get(ItemStatus(current), frozenset())


def ensure_transition(current: ItemStatus, target: ItemStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is legal."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def decision_status(decision: ReviewDecision) -> ItemStatus:
    return DECISION_STATUS[ReviewDecision(decision)]
