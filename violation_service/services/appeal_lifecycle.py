"""
Appeal status state machine.

Reviewer actions (city / oversight only):

    SUBMITTED, NEED_INFO     --start review-->  UNDER_REVIEW
    UNDER_REVIEW             --request info-->  NEED_INFO
    UNDER_REVIEW, NEED_INFO  --approve------->  APPROVED   (violation -> CANCELED)
    UNDER_REVIEW, NEED_INFO  --reject-------->  REJECTED   (violation -> FIXED)
    APPROVED, REJECTED       --close--------->  CLOSED

A participant reply on a NEED_INFO appeal moves it back to UNDER_REVIEW.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from violation_service.core.constants import (
    AppealAction,
    AppealStatus,
    ViolationStatus,
)
from violation_service.core.exceptions import InvalidStatusTransition
from violation_service.models.appeals import Appeal, AppealStatusLog
from violation_service.services.appeal_store import AppealStore
from violation_service.services.violation_lifecycle import ViolationLifecycle


@dataclass(frozen=True)
class AppealTransition:
    sources: frozenset
    target: AppealStatus
    note: str
    violation_target: Optional[ViolationStatus] = None
    violation_note: str = ""


APPEAL_TRANSITIONS = {
    AppealAction.START_REVIEW: AppealTransition(
        sources=frozenset({AppealStatus.SUBMITTED, AppealStatus.NEED_INFO}),
        target=AppealStatus.UNDER_REVIEW,
        note="taken into review",
    ),
    AppealAction.REQUEST_INFO: AppealTransition(
        sources=frozenset({AppealStatus.UNDER_REVIEW}),
        target=AppealStatus.NEED_INFO,
        note="requesting additional info",
    ),
    AppealAction.APPROVE: AppealTransition(
        sources=frozenset({AppealStatus.UNDER_REVIEW, AppealStatus.NEED_INFO}),
        target=AppealStatus.APPROVED,
        note="appeal approved",
        violation_target=ViolationStatus.CANCELED,
        violation_note="canceled via appeal approval",
    ),
    AppealAction.REJECT: AppealTransition(
        sources=frozenset({AppealStatus.UNDER_REVIEW, AppealStatus.NEED_INFO}),
        target=AppealStatus.REJECTED,
        note="appeal rejected",
        violation_target=ViolationStatus.FIXED,
        violation_note="violation confirmed via appeal rejection",
    ),
    AppealAction.CLOSE: AppealTransition(
        sources=frozenset({AppealStatus.APPROVED, AppealStatus.REJECTED}),
        target=AppealStatus.CLOSED,
        note="appeal closed",
    ),
}

# Participants may only talk on appeals that are still being worked on.
REPLY_SOURCES = frozenset({AppealStatus.SUBMITTED, AppealStatus.UNDER_REVIEW, AppealStatus.NEED_INFO})
REPLY_NOTE = "answer received"

logger = logging.getLogger(__name__)


def resolve_transition(current: AppealStatus, action: AppealAction) -> AppealTransition:
    transition = APPEAL_TRANSITIONS.get(action)
    if transition is None or current not in transition.sources:
        raise InvalidStatusTransition(
            f"cannot {action.value.lower().replace('_', ' ')} an appeal in status {current.value}"
        )
    return transition


class AppealLifecycle:
    def __init__(
        self,
        db: AsyncSession,
        store: Optional[AppealStore] = None,
        violations: Optional[ViolationLifecycle] = None,
    ):
        self.db = db
        self.store = store or AppealStore(db)
        self.violations = violations or ViolationLifecycle(db)

    async def record_submission(self, appeal: Appeal, note: str, actor_id: uuid.UUID) -> None:
        await self.store.append_log(
            AppealStatusLog(
                appeal_id=appeal.id,
                old_status=None,
                new_status=appeal.status,
                note=note,
                changed_by=actor_id,
            )
        )

    async def apply(self, appeal: Appeal, action: AppealAction, actor_id: uuid.UUID) -> AppealTransition:
        """Run a reviewer action, including the cascade onto the violation.

        ``appeal.violation`` must be loaded. Must be called inside a unit of work so
        the appeal update, both audit rows and the violation update commit together.
        """
        transition = resolve_transition(appeal.status, action)
        await self._move(appeal, transition.target, transition.note, actor_id)

        if transition.violation_target is not None:
            await self.violations.transition(
                appeal.violation,
                transition.violation_target,
                transition.violation_note,
                actor_id,
            )
        return transition

    async def reopen_on_reply(self, appeal: Appeal, actor_id: uuid.UUID) -> bool:
        """NEED_INFO -> UNDER_REVIEW after a participant reply.

        Any participant comment counts as an answer, including a follow-up that was
        not prompted by the reviewer.
        """
        if appeal.status != AppealStatus.NEED_INFO:
            return False
        await self._move(appeal, AppealStatus.UNDER_REVIEW, REPLY_NOTE, actor_id)
        return True

    async def _move(self, appeal: Appeal, target: AppealStatus, note: str, actor_id: uuid.UUID) -> None:
        current = appeal.status
        if not await self.store.update_status(appeal.id, current, target, resolved_by=actor_id):
            raise InvalidStatusTransition("appeal status changed concurrently")
        set_committed_value(appeal, "status", target)

        await self.store.append_log(
            AppealStatusLog(
                appeal_id=appeal.id,
                old_status=current,
                new_status=target,
                note=note,
                changed_by=actor_id,
            )
        )
        logger.info("Appeal %s status %s -> %s by %s", appeal.id, current.value, target.value, actor_id)
