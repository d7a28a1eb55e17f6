"""
History ledger for clearance item transitions
"""

from typing import List, Optional

from clearance_portal.models import db, ClearanceItem, ClearanceItemHistory, ItemStatus
from clearance_portal.services.authorization import ActorContext
from clearance_portal.utils.exceptions import NotFoundError, ValidationError


SYSTEM_ROLE = 'system'


class HistoryLedger:
    """Append-only ledger; corrections are new entries, never edits"""

    @staticmethod
    def append(item_id: int, from_status: Optional[ItemStatus], to_status: ItemStatus,
               actor: Optional[ActorContext], remarks: Optional[str] = None) -> ClearanceItemHistory:
        """
        Append one transition to the ledger

        The entry joins the caller's transaction; nothing is committed here so
        a failed status write takes the entry down with it.

        Args:
            item_id: Clearance item id
            from_status: Status before the transition
            to_status: Status after the transition
            actor: Acting user, None for system entries
            remarks: Optional reviewer remarks

        Returns:
            The pending history entry

        Raises:
            ValidationError: If from_status does not continue the chain
        """
        last = HistoryLedger.last_entry(item_id)
        if last is None:
            if from_status not in (None, ItemStatus.PENDING):
                raise ValidationError(
                    f"First history entry must start from pending, got '{ItemStatus(from_status).value}'")
        elif from_status != last.to_status:
            raise ValidationError(
                f"History chain broken: last entry ends at '{last.to_status.value}'")

        entry = ClearanceItemHistory(
            clearance_item_id=item_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor.actor_id if actor else None,
            actor_role=actor.role.value if actor else SYSTEM_ROLE,
            remarks=remarks
        )
        db.session.add(entry)
        return entry

    @staticmethod
    def list_for(item_id: int) -> List[ClearanceItemHistory]:
        """Entries for one item, oldest first"""
        return ClearanceItemHistory.query.filter_by(clearance_item_id=item_id).order_by(
            ClearanceItemHistory.created_at.asc(), ClearanceItemHistory.id.asc()
        ).all()

    @staticmethod
    def last_entry(item_id: int) -> Optional[ClearanceItemHistory]:
        return ClearanceItemHistory.query.filter_by(clearance_item_id=item_id).order_by(
            ClearanceItemHistory.created_at.desc(), ClearanceItemHistory.id.desc()
        ).first()

    @staticmethod
    def check_consistency(item_id: int) -> List[str]:
        """
        Check the chain and projection invariants for one item

        Returns:
            Human-readable problems; empty when the ledger is consistent
        """
        item = db.session.get(ClearanceItem, item_id)
        if item is None:
            raise NotFoundError(f"Clearance item {item_id} not found")

        problems = []
        entries = HistoryLedger.list_for(item_id)
        previous = None
        for index, entry in enumerate(entries):
            if previous is None:
                if entry.from_status not in (None, ItemStatus.PENDING):
                    problems.append(f"entry {entry.id}: first entry starts from '{entry.from_status.value}'")
            elif entry.from_status != previous.to_status:
                problems.append(
                    f"entry {entry.id}: from '{getattr(entry.from_status, 'value', None)}' "
                    f"does not follow '{previous.to_status.value}'")
            previous = entry

        expected = previous.to_status if previous else ItemStatus.PENDING
        if item.status != expected:
            problems.append(f"item status '{item.status.value}' does not match ledger '{expected.value}'")
        return problems
