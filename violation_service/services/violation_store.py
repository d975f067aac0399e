import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import false, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from violation_service.core.constants import (
    DEFAULT_LIST_LIMIT,
    TECHNICAL_DETECTIONS,
    ViolationDetectedBy,
    ViolationSeverity,
    ViolationStatus,
    ViolationType,
)
from violation_service.core.exceptions import NotFound
from violation_service.models.directory import Driver, Ticket, Trip, Vehicle
from violation_service.models.violations import Violation, ViolationStatusLog
from violation_service.services.scope import (
    CityScope,
    ContractorScope,
    DriverScope,
    OversightScope,
    Scope,
    TechnicalScope,
)


def apply_scope_filter(query, scope: Scope):
    """Restrict a query already joined to Violation, Trip and Ticket to ``scope``.

    Any scope whose restriction set is empty matches nothing.
    """
    if isinstance(scope, CityScope):
        return query
    if isinstance(scope, OversightScope):
        if not scope.contractor_ids:
            return query.where(false())
        return query.where(Ticket.contractor_id.in_(scope.contractor_ids))
    if isinstance(scope, ContractorScope):
        if scope.org_id is None:
            return query.where(false())
        return query.where(Ticket.contractor_id == scope.org_id)
    if isinstance(scope, DriverScope):
        if scope.driver_id is None:
            return query.where(false())
        return query.where(Trip.driver_id == scope.driver_id)
    if isinstance(scope, TechnicalScope):
        return query.where(Violation.detected_by.in_(TECHNICAL_DETECTIONS))
    return query.where(false())


def trip_loader(path):
    """Eager-load options for everything hanging off a trip."""
    return (
        path.selectinload(Trip.ticket).selectinload(Ticket.contractor),
        path.selectinload(Trip.ticket).selectinload(Ticket.cleaning_area),
        path.selectinload(Trip.driver),
        path.selectinload(Trip.vehicle),
        path.selectinload(Trip.polygon),
    )


@dataclass
class ViolationFilter:
    statuses: Sequence[ViolationStatus] = field(default_factory=list)
    types: Sequence[ViolationType] = field(default_factory=list)
    severities: Sequence[ViolationSeverity] = field(default_factory=list)
    detected_by: Sequence[ViolationDetectedBy] = field(default_factory=list)
    contractor_ids: Sequence[uuid.UUID] = field(default_factory=list)
    driver_id: Optional[uuid.UUID] = None
    ticket_id: Optional[uuid.UUID] = None
    cleaning_area_id: Optional[uuid.UUID] = None
    search: str = ""
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = 0
    offset: int = 0


class ViolationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _scoped_select(self, scope: Scope):
        query = (
            select(Violation)
            .join(Trip, Trip.id == Violation.trip_id)
            .outerjoin(Ticket, Ticket.id == Trip.ticket_id)
        )
        return apply_scope_filter(query, scope)

    async def list(self, scope: Scope, filters: ViolationFilter) -> List[Violation]:
        query = self._scoped_select(scope)

        if filters.statuses:
            query = query.where(Violation.status.in_(filters.statuses))
        if filters.types:
            query = query.where(Violation.type.in_(filters.types))
        if filters.severities:
            query = query.where(Violation.severity.in_(filters.severities))
        if filters.detected_by:
            query = query.where(Violation.detected_by.in_(filters.detected_by))
        if filters.contractor_ids:
            query = query.where(Ticket.contractor_id.in_(filters.contractor_ids))
        if filters.driver_id is not None:
            query = query.where(Trip.driver_id == filters.driver_id)
        if filters.ticket_id is not None:
            query = query.where(Ticket.id == filters.ticket_id)
        if filters.cleaning_area_id is not None:
            query = query.where(Ticket.cleaning_area_id == filters.cleaning_area_id)

        occurred_at = func.coalesce(Trip.entry_at, Violation.created_at)
        if filters.date_from is not None:
            query = query.where(occurred_at >= filters.date_from)
        if filters.date_to is not None:
            query = query.where(occurred_at <= filters.date_to)

        if filters.search:
            search_term = f"%{filters.search}%"
            query = (
                query.outerjoin(Driver, Driver.id == Trip.driver_id)
                .outerjoin(Vehicle, Vehicle.id == Trip.vehicle_id)
                .where(or_(Driver.full_name.ilike(search_term), Vehicle.plate_number.ilike(search_term)))
            )

        query = (
            query.options(*trip_loader(selectinload(Violation.trip)))
            .order_by(Violation.created_at.desc())
            .offset(max(filters.offset, 0))
            .limit(filters.limit if filters.limit > 0 else DEFAULT_LIST_LIMIT)
        )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get(self, scope: Scope, violation_id: uuid.UUID) -> Violation:
        query = (
            self._scoped_select(scope)
            .where(Violation.id == violation_id)
            .options(*trip_loader(selectinload(Violation.trip)))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        violation = result.scalar_one_or_none()
        if violation is None:
            raise NotFound("violation not found")
        return violation

    async def get_trip(self, trip_id: uuid.UUID) -> Trip:
        query = select(Trip).where(Trip.id == trip_id).options(selectinload(Trip.ticket))
        result = await self.db.execute(query)
        trip = result.scalar_one_or_none()
        if trip is None:
            raise NotFound("trip not found")
        return trip

    async def create(self, violation: Violation) -> Violation:
        self.db.add(violation)
        await self.db.flush()
        return violation

    async def update_status(
        self,
        violation_id: uuid.UUID,
        expected: ViolationStatus,
        status: ViolationStatus,
        note: Optional[str] = None,
    ) -> bool:
        """Compare-and-set the status; returns False when the row moved on.

        A non-empty ``note`` becomes the violation description.
        """
        values = {"status": status}
        if note:
            values["description"] = note

        result = await self.db.execute(
            update(Violation)
            .where(Violation.id == violation_id, Violation.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def append_log(self, entry: ViolationStatusLog) -> ViolationStatusLog:
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_logs(self, violation_id: uuid.UUID) -> List[ViolationStatusLog]:
        result = await self.db.execute(
            select(ViolationStatusLog)
            .where(ViolationStatusLog.violation_id == violation_id)
            .order_by(ViolationStatusLog.created_at)
        )
        return list(result.scalars().all())
