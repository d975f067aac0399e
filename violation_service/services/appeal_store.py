import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from violation_service.core.constants import (
    ACTIVE_APPEAL_STATUSES,
    DEFAULT_LIST_LIMIT,
    RESOLVED_APPEAL_STATUSES,
    AppealReasonCode,
    AppealStatus,
    ViolationType,
)
from violation_service.core.exceptions import Conflict, NotFound
from violation_service.models.appeals import (
    ACTIVE_APPEAL_INDEX,
    Appeal,
    AppealAttachment,
    AppealComment,
    AppealStatusLog,
)
from violation_service.models.base import utcnow
from violation_service.models.directory import Ticket, Trip
from violation_service.models.violations import Violation
from violation_service.services.scope import Scope
from violation_service.services.violation_store import apply_scope_filter, trip_loader


def is_active_appeal_conflict(exc: IntegrityError) -> bool:
    """Whether ``exc`` was raised by the one-active-appeal index."""
    message = str(exc.orig)
    # PostgreSQL names the index, SQLite names the indexed column
    return ACTIVE_APPEAL_INDEX in message or "UNIQUE constraint failed: violation_appeals.violation_id" in message


@dataclass
class AppealFilter:
    statuses: Sequence[AppealStatus] = field(default_factory=list)
    reason_codes: Sequence[AppealReasonCode] = field(default_factory=list)
    violation_types: Sequence[ViolationType] = field(default_factory=list)
    contractor_ids: Sequence[uuid.UUID] = field(default_factory=list)
    driver_id: Optional[uuid.UUID] = None
    violation_id: Optional[uuid.UUID] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = 0
    offset: int = 0


@dataclass
class AppealSummary:
    last_appeal: Optional[Appeal] = None
    has_active_appeal: bool = False
    has_camera_reason: bool = False


class AppealStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _scoped_select(self, scope: Scope):
        query = (
            select(Appeal)
            .join(Violation, Violation.id == Appeal.violation_id)
            .join(Trip, Trip.id == Violation.trip_id)
            .outerjoin(Ticket, Ticket.id == Trip.ticket_id)
        )
        return apply_scope_filter(query, scope)

    async def list(self, scope: Scope, filters: AppealFilter) -> List[Appeal]:
        query = self._scoped_select(scope)

        if filters.statuses:
            query = query.where(Appeal.status.in_(filters.statuses))
        if filters.reason_codes:
            query = query.where(Appeal.reason_code.in_(filters.reason_codes))
        if filters.violation_types:
            query = query.where(Violation.type.in_(filters.violation_types))
        if filters.contractor_ids:
            query = query.where(Ticket.contractor_id.in_(filters.contractor_ids))
        if filters.driver_id is not None:
            query = query.where(Trip.driver_id == filters.driver_id)
        if filters.violation_id is not None:
            query = query.where(Appeal.violation_id == filters.violation_id)
        if filters.date_from is not None:
            query = query.where(Appeal.created_at >= filters.date_from)
        if filters.date_to is not None:
            query = query.where(Appeal.created_at <= filters.date_to)

        query = (
            query.options(
                *trip_loader(selectinload(Appeal.violation).selectinload(Violation.trip)),
                selectinload(Appeal.driver),
            )
            .order_by(Appeal.created_at.desc())
            .offset(max(filters.offset, 0))
            .limit(filters.limit if filters.limit > 0 else DEFAULT_LIST_LIMIT)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get(self, scope: Scope, appeal_id: uuid.UUID) -> Appeal:
        query = (
            self._scoped_select(scope)
            .where(Appeal.id == appeal_id)
            .options(
                *trip_loader(selectinload(Appeal.violation).selectinload(Violation.trip)),
                selectinload(Appeal.driver),
                selectinload(Appeal.attachments),
                selectinload(Appeal.comments),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        appeal = result.scalar_one_or_none()
        if appeal is None:
            raise NotFound("appeal not found")
        return appeal

    async def list_for_violation(self, scope: Scope, violation_id: uuid.UUID) -> List[Appeal]:
        query = (
            self._scoped_select(scope)
            .where(Appeal.violation_id == violation_id)
            .options(
                selectinload(Appeal.driver),
                selectinload(Appeal.attachments),
                selectinload(Appeal.comments),
            )
            .order_by(Appeal.created_at.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_active(self, violation_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Appeal.id)).where(
                Appeal.violation_id == violation_id,
                Appeal.status.in_(ACTIVE_APPEAL_STATUSES),
            )
        )
        return result.scalar_one()

    async def summarize(self, violation_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, AppealSummary]:
        """Latest appeal and flags per violation, fetched in a single query."""
        summaries: Dict[uuid.UUID, AppealSummary] = {}
        if not violation_ids:
            return summaries

        result = await self.db.execute(
            select(Appeal)
            .where(Appeal.violation_id.in_(list(violation_ids)))
            .order_by(Appeal.violation_id, Appeal.created_at.desc())
        )
        for appeal in result.scalars().all():
            entry = summaries.setdefault(appeal.violation_id, AppealSummary())
            if entry.last_appeal is None:
                entry.last_appeal = appeal
            if appeal.status in ACTIVE_APPEAL_STATUSES:
                entry.has_active_appeal = True
            if appeal.reason_code == AppealReasonCode.CAMERA_ERROR:
                entry.has_camera_reason = True
        return summaries

    async def create_with_children(
        self,
        appeal: Appeal,
        attachments: Sequence[AppealAttachment],
        comment: Optional[AppealComment],
    ) -> Appeal:
        """Insert an appeal, its attachments and its seed comment.

        Must run inside the caller's unit of work so the three inserts commit or
        roll back together. A second active appeal for the same violation is
        rejected by the partial unique index and reported as ``Conflict``.
        """
        self.db.add(appeal)
        try:
            await self.db.flush()
        except IntegrityError as e:
            if is_active_appeal_conflict(e):
                raise Conflict()
            raise

        for attachment in attachments:
            attachment.appeal_id = appeal.id
            self.db.add(attachment)
        if comment is not None:
            comment.appeal_id = appeal.id
            self.db.add(comment)
        await self.db.flush()
        return appeal

    async def add_comment(
        self,
        comment: AppealComment,
        attachments: Sequence[AppealAttachment],
    ) -> AppealComment:
        self.db.add(comment)
        for attachment in attachments:
            attachment.appeal_id = comment.appeal_id
            self.db.add(attachment)
        await self.db.flush()
        return comment

    async def update_status(
        self,
        appeal_id: uuid.UUID,
        expected: AppealStatus,
        status: AppealStatus,
        resolved_by: Optional[uuid.UUID] = None,
    ) -> bool:
        """Compare-and-set the status.

        Resolution fields are stamped on approved/rejected/closed and cleared on
        every other status. Returns False when the row is no longer in ``expected``.
        """
        values = {"status": status}
        if status in RESOLVED_APPEAL_STATUSES:
            values["resolved_by"] = resolved_by
            values["resolved_at"] = utcnow()
        else:
            values["resolved_by"] = None
            values["resolved_at"] = None

        try:
            result = await self.db.execute(
                update(Appeal)
                .where(Appeal.id == appeal_id, Appeal.status == expected)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except IntegrityError as e:
            if is_active_appeal_conflict(e):
                raise Conflict()
            raise
        return result.rowcount == 1

    async def append_log(self, entry: AppealStatusLog) -> AppealStatusLog:
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_logs(self, appeal_id: uuid.UUID) -> List[AppealStatusLog]:
        result = await self.db.execute(
            select(AppealStatusLog)
            .where(AppealStatusLog.appeal_id == appeal_id)
            .order_by(AppealStatusLog.created_at)
        )
        return list(result.scalars().all())
