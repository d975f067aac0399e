import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from violation_service.core.constants import (
    ViolationDetectedBy,
    ViolationSeverity,
    ViolationStatus,
    ViolationType,
)
from violation_service.core.database import unit_of_work
from violation_service.core.exceptions import PermissionDenied
from violation_service.core.principal import Principal
from violation_service.models.appeals import Appeal
from violation_service.models.violations import Violation, ViolationStatusLog
from violation_service.services.appeal_store import AppealStore, AppealSummary
from violation_service.services.authorization import VIOLATION_EDITOR_ROLES, require_role
from violation_service.services.scope import (
    CityScope,
    DriverScope,
    TechnicalScope,
    allows_contractor,
    resolve_scope,
)
from violation_service.services.violation_lifecycle import ViolationLifecycle
from violation_service.services.violation_store import ViolationFilter, ViolationStore

logger = logging.getLogger(__name__)


@dataclass
class ViolationListItem:
    violation: Violation
    summary: AppealSummary


@dataclass
class ViolationDetails:
    violation: Violation
    summary: AppealSummary
    appeals: List[Appeal] = field(default_factory=list)
    history: List[ViolationStatusLog] = field(default_factory=list)


@dataclass
class CreateViolationInput:
    trip_id: uuid.UUID
    type: ViolationType
    detected_by: ViolationDetectedBy
    severity: ViolationSeverity
    description: Optional[str] = None


class ViolationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = ViolationStore(db)
        self.appeals = AppealStore(db)
        self.lifecycle = ViolationLifecycle(db, self.store)

    async def list(self, principal: Principal, filters: ViolationFilter) -> List[ViolationListItem]:
        """List violations visible to the principal, enriched with appeal summaries"""
        scope = await resolve_scope(self.db, principal)

        if isinstance(scope, DriverScope) and scope.driver_id is not None:
            filters.driver_id = scope.driver_id

        violations = await self.store.list(scope, filters)
        summaries = await self.appeals.summarize([v.id for v in violations])

        items = []
        for violation in violations:
            summary = summaries.get(violation.id) or AppealSummary()
            # technical staff only look at violations contested as camera errors
            if isinstance(scope, TechnicalScope) and not summary.has_camera_reason:
                continue
            items.append(ViolationListItem(violation=violation, summary=summary))
        return items

    async def get_details(self, principal: Principal, violation_id: uuid.UUID) -> ViolationDetails:
        scope = await resolve_scope(self.db, principal)
        violation = await self.store.get(scope, violation_id)

        summaries = await self.appeals.summarize([violation.id])
        appeals = await self.appeals.list_for_violation(scope, violation.id)
        history = await self.store.list_logs(violation.id)

        return ViolationDetails(
            violation=violation,
            summary=summaries.get(violation.id) or AppealSummary(),
            appeals=appeals,
            history=history,
        )

    async def create_manual(self, principal: Principal, data: CreateViolationInput) -> ViolationListItem:
        require_role(principal, VIOLATION_EDITOR_ROLES)
        scope = await resolve_scope(self.db, principal)

        async with unit_of_work(self.db):
            trip = await self.store.get_trip(data.trip_id)

            contractor_id = trip.ticket.contractor_id if trip.ticket is not None else None
            if contractor_id is not None and not principal.is_city and not allows_contractor(scope, contractor_id):
                raise PermissionDenied("trip belongs to a contractor outside your scope")

            violation = await self.store.create(
                Violation(
                    trip_id=trip.id,
                    type=ViolationType.parse(data.type),
                    detected_by=ViolationDetectedBy.parse(data.detected_by),
                    severity=ViolationSeverity.parse(data.severity),
                    status=ViolationStatus.OPEN,
                    description=data.description,
                )
            )
            await self.lifecycle.record_creation(violation, "manual creation", principal.user_id)

        logger.info("Violation %s created manually on trip %s by %s", violation.id, trip.id, principal.user_id)

        # Read back unscoped: a trip without a ticket is outside an oversight scope,
        # but its creator still gets the record it just wrote.
        created = await self.store.get(CityScope(), violation.id)
        return ViolationListItem(violation=created, summary=AppealSummary())

    async def update_status(
        self,
        principal: Principal,
        violation_id: uuid.UUID,
        status,
        note: Optional[str] = None,
    ) -> Violation:
        require_role(principal, VIOLATION_EDITOR_ROLES)
        target = ViolationStatus.parse(status)
        scope = await resolve_scope(self.db, principal)

        async with unit_of_work(self.db):
            violation = await self.store.get(scope, violation_id)
            await self.lifecycle.transition(violation, target, note or "", principal.user_id)

        return violation
