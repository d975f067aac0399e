import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from violation_service.core.config import settings
from violation_service.core.constants import (
    MIN_REASON_TEXT_LENGTH,
    AppealAction,
    AppealReasonCode,
    AppealStatus,
    AttachmentFileType,
)
from violation_service.core.database import unit_of_work
from violation_service.core.exceptions import Conflict, InvalidInput, InvalidStatusTransition
from violation_service.core.principal import Principal
from violation_service.models.appeals import (
    Appeal,
    AppealAttachment,
    AppealComment,
    AppealStatusLog,
)
from violation_service.services.appeal_lifecycle import (
    REPLY_SOURCES,
    AppealLifecycle,
    resolve_transition,
)
from violation_service.services.appeal_store import AppealFilter, AppealStore
from violation_service.services.authorization import (
    APPELLANT_ROLES,
    REVIEWER_ROLES,
    ensure_can_comment,
    ensure_can_file_appeal,
    is_participant,
    require_role,
)
from violation_service.services.scope import DriverScope, TechnicalScope, resolve_scope
from violation_service.services.violation_lifecycle import ViolationLifecycle
from violation_service.services.violation_store import ViolationStore


@dataclass
class AttachmentInput:
    file_url: str
    file_type: str


@dataclass
class AppealDetails:
    appeal: Appeal
    history: List[AppealStatusLog] = field(default_factory=list)

    @property
    def last_updated_by(self) -> Optional[uuid.UUID]:
        return self.history[-1].changed_by if self.history else None


class AppealService:
    def __init__(self, db: AsyncSession, max_attachments: Optional[int] = None):
        self.db = db
        self.max_attachments = max_attachments or settings.max_attachments
        self.store = AppealStore(db)
        self.violations = ViolationStore(db)
        self.lifecycle = AppealLifecycle(db, self.store, ViolationLifecycle(db, self.violations))

    async def list(self, principal: Principal, filters: AppealFilter) -> List[Appeal]:
        scope = await resolve_scope(self.db, principal)

        if isinstance(scope, DriverScope) and scope.driver_id is not None:
            filters.driver_id = scope.driver_id
        if isinstance(scope, TechnicalScope):
            # technical staff only handle camera complaints
            filters.reason_codes = [AppealReasonCode.CAMERA_ERROR]

        return await self.store.list(scope, filters)

    async def get(self, principal: Principal, appeal_id: uuid.UUID) -> AppealDetails:
        scope = await resolve_scope(self.db, principal)
        appeal = await self.store.get(scope, appeal_id)
        history = await self.store.list_logs(appeal.id)
        return AppealDetails(appeal=appeal, history=history)

    async def create(
        self,
        principal: Principal,
        violation_id: uuid.UUID,
        reason_code,
        reason_text: str,
        attachments: Sequence[AttachmentInput] = (),
    ) -> AppealDetails:
        """File an appeal against a violation.

        Checks run in a fixed order: role and ownership, no other active appeal,
        reason text length, attachment cap. The appeal keeps a snapshot of the
        trip's driver, ticket and contractor as they are right now.
        """
        require_role(principal, APPELLANT_ROLES)
        scope = await resolve_scope(self.db, principal)

        async with unit_of_work(self.db):
            violation = await self.violations.get(scope, violation_id)
            ensure_can_file_appeal(principal, violation)

            if await self.store.count_active(violation.id) > 0:
                raise Conflict()

            reason_text = (reason_text or "").strip()
            if len(reason_text) < MIN_REASON_TEXT_LENGTH:
                raise InvalidInput(f"reason text must be at least {MIN_REASON_TEXT_LENGTH} characters")
            if len(attachments) > self.max_attachments:
                raise InvalidInput(f"at most {self.max_attachments} attachments are allowed")

            code = AppealReasonCode.parse(reason_code)
            models = self._build_attachments(attachments, principal.user_id)

            trip = violation.trip
            ticket = trip.ticket
            appeal = Appeal(
                violation_id=violation.id,
                trip_id=trip.id,
                ticket_id=ticket.id if ticket is not None else None,
                driver_id=trip.driver_id,
                contractor_id=ticket.contractor_id if ticket is not None else None,
                reason_code=code,
                reason_text=reason_text,
                status=AppealStatus.SUBMITTED,
            )
            seed_comment = AppealComment(
                author_id=principal.user_id,
                author_role=principal.role,
                message=reason_text,
            )
            await self.store.create_with_children(appeal, models, seed_comment)
            await self.lifecycle.record_submission(appeal, reason_text, principal.user_id)

        return await self.get(principal, appeal.id)

    async def add_comment(
        self,
        principal: Principal,
        appeal_id: uuid.UUID,
        message: str,
        attachments: Sequence[AttachmentInput] = (),
    ) -> AppealComment:
        scope = await resolve_scope(self.db, principal)

        async with unit_of_work(self.db):
            appeal = await self.store.get(scope, appeal_id)
            ensure_can_comment(principal, appeal)

            if appeal.status not in REPLY_SOURCES:
                raise InvalidStatusTransition(f"appeal in status {appeal.status.value} is closed for comments")

            message = (message or "").strip()
            if not message:
                raise InvalidInput("message is required")
            if len(attachments) > self.max_attachments:
                raise InvalidInput(f"at most {self.max_attachments} attachments are allowed")

            comment = await self.store.add_comment(
                AppealComment(
                    appeal_id=appeal.id,
                    author_id=principal.user_id,
                    author_role=principal.role,
                    message=message,
                ),
                self._build_attachments(attachments, principal.user_id),
            )

            if is_participant(principal, appeal):
                await self.lifecycle.reopen_on_reply(appeal, principal.user_id)

        return comment

    async def act(
        self,
        principal: Principal,
        appeal_id: uuid.UUID,
        action,
        message: Optional[str] = None,
    ) -> AppealDetails:
        require_role(principal, REVIEWER_ROLES)
        action = AppealAction.parse(action)
        scope = await resolve_scope(self.db, principal)

        async with unit_of_work(self.db):
            appeal = await self.store.get(scope, appeal_id)
            resolve_transition(appeal.status, action)

            message = (message or "").strip()
            if action == AppealAction.REQUEST_INFO and not message:
                raise InvalidInput("a message is required when requesting information")

            await self.lifecycle.apply(appeal, action, principal.user_id)

            if action == AppealAction.REQUEST_INFO:
                await self.store.add_comment(
                    AppealComment(
                        appeal_id=appeal.id,
                        author_id=principal.user_id,
                        author_role=principal.role,
                        message=message,
                    ),
                    [],
                )

        return await self.get(principal, appeal_id)

    def _build_attachments(self, inputs: Sequence[AttachmentInput], uploader: uuid.UUID) -> List[AppealAttachment]:
        attachments = []
        for item in inputs:
            url = (item.file_url or "").strip()
            if not url:
                raise InvalidInput("attachment file_url is required")
            attachments.append(
                AppealAttachment(
                    file_url=url,
                    file_type=AttachmentFileType.parse(item.file_type),
                    uploaded_by=uploader,
                )
            )
        return attachments
