import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from violation_service.core.constants import (
    AppealReasonCode,
    AppealStatus,
    ViolationDetectedBy,
    ViolationSeverity,
    ViolationStatus,
    ViolationType,
)
from violation_service.schemas.appeal import AppealWithThread
from violation_service.schemas.common import (
    CleaningAreaBrief,
    DriverBrief,
    OrganizationBrief,
    OrmModel,
    StatusLogResponse,
    TicketBrief,
    VehicleBrief,
    status_log_response,
)


# Request schemas
class CreateViolationRequest(BaseModel):
    trip_id: uuid.UUID
    type: str
    detected_by: str
    severity: str
    description: Optional[str] = None


class UpdateViolationStatusRequest(BaseModel):
    status: str
    note: Optional[str] = None


# Response schemas
class AppealBrief(OrmModel):
    id: uuid.UUID
    status: AppealStatus
    reason_code: AppealReasonCode
    created_at: datetime


class ViolationRecord(BaseModel):
    id: uuid.UUID
    trip_id: uuid.UUID
    type: ViolationType
    detected_by: ViolationDetectedBy
    severity: ViolationSeverity
    status: ViolationStatus
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    trip_status: Optional[str] = None
    trip_entry_at: Optional[datetime] = None
    trip_violation_reason: Optional[str] = None
    ticket: Optional[TicketBrief] = None
    contractor: Optional[OrganizationBrief] = None
    driver: Optional[DriverBrief] = None
    vehicle: Optional[VehicleBrief] = None
    cleaning_area: Optional[CleaningAreaBrief] = None
    polygon_name: Optional[str] = None

    last_appeal: Optional[AppealBrief] = None
    has_active_appeal: bool = False


class ViolationListResponse(BaseModel):
    violations: List[ViolationRecord]
    total_count: int


class ViolationDetailsResponse(BaseModel):
    violation: ViolationRecord
    appeals: List[AppealWithThread] = []
    history: List[StatusLogResponse] = []


def _brief(model, obj):
    return model.model_validate(obj) if obj is not None else None


def violation_record(violation, summary) -> ViolationRecord:
    """Flatten a violation, its trip graph and its appeal summary into one record."""
    trip = violation.trip
    ticket = trip.ticket if trip is not None else None

    return ViolationRecord(
        id=violation.id,
        trip_id=violation.trip_id,
        type=violation.type,
        detected_by=violation.detected_by,
        severity=violation.severity,
        status=violation.status,
        description=violation.description,
        created_at=violation.created_at,
        updated_at=violation.updated_at,
        trip_status=trip.status if trip is not None else None,
        trip_entry_at=trip.entry_at if trip is not None else None,
        trip_violation_reason=trip.violation_reason if trip is not None else None,
        ticket=_brief(TicketBrief, ticket),
        contractor=_brief(OrganizationBrief, ticket.contractor if ticket is not None else None),
        driver=_brief(DriverBrief, trip.driver if trip is not None else None),
        vehicle=_brief(VehicleBrief, trip.vehicle if trip is not None else None),
        cleaning_area=_brief(CleaningAreaBrief, ticket.cleaning_area if ticket is not None else None),
        polygon_name=trip.polygon.name if trip is not None and trip.polygon is not None else None,
        last_appeal=_brief(AppealBrief, summary.last_appeal),
        has_active_appeal=summary.has_active_appeal,
    )


def violation_details_response(details) -> ViolationDetailsResponse:
    return ViolationDetailsResponse(
        violation=violation_record(details.violation, details.summary),
        appeals=[AppealWithThread.model_validate(appeal) for appeal in details.appeals],
        history=[status_log_response(entry) for entry in details.history],
    )
