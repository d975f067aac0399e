"""
Violation status state machine.

    OPEN --> CANCELED
      \\--> FIXED

CANCELED and FIXED are terminal.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from violation_service.core.constants import ViolationStatus
from violation_service.core.exceptions import InvalidStatusTransition
from violation_service.models.violations import Violation, ViolationStatusLog
from violation_service.services.violation_store import ViolationStore

logger = logging.getLogger(__name__)

VIOLATION_TRANSITIONS = {
    ViolationStatus.OPEN: frozenset({ViolationStatus.CANCELED, ViolationStatus.FIXED}),
    ViolationStatus.CANCELED: frozenset(),
    ViolationStatus.FIXED: frozenset(),
}


def check_violation_transition(current: ViolationStatus, target: ViolationStatus) -> None:
    if target not in VIOLATION_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(
            f"violation cannot move from {current.value} to {target.value}"
        )


class ViolationLifecycle:
    def __init__(self, db: AsyncSession, store: Optional[ViolationStore] = None):
        self.db = db
        self.store = store or ViolationStore(db)

    async def record_creation(self, violation: Violation, note: str, actor_id: Optional[uuid.UUID]) -> None:
        await self.store.append_log(
            ViolationStatusLog(
                violation_id=violation.id,
                old_status=None,
                new_status=violation.status,
                note=note,
                changed_by=actor_id,
            )
        )

    async def transition(
        self,
        violation: Violation,
        target: ViolationStatus,
        note: str,
        actor_id: Optional[uuid.UUID],
    ) -> ViolationStatusLog:
        """Move ``violation`` to ``target`` and write its audit row.

        Must be called inside a unit of work. The status is re-checked by the
        UPDATE itself, so a concurrent transition makes this one fail.
        """
        current = violation.status
        check_violation_transition(current, target)

        if not await self.store.update_status(violation.id, current, target, note):
            raise InvalidStatusTransition("violation status changed concurrently")
        set_committed_value(violation, "status", target)
        if note:
            set_committed_value(violation, "description", note)

        entry = await self.store.append_log(
            ViolationStatusLog(
                violation_id=violation.id,
                old_status=current,
                new_status=target,
                note=note,
                changed_by=actor_id,
            )
        )
        logger.info(
            "Violation %s status %s -> %s by %s",
            violation.id, current.value, target.value, actor_id,
        )
        return entry
