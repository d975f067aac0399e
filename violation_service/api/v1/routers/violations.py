import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from violation_service.api.v1.params import (
    parse_datetime,
    parse_enum_list,
    parse_uuid,
    parse_uuid_list,
)
from violation_service.core.constants import (
    ViolationDetectedBy,
    ViolationSeverity,
    ViolationStatus,
    ViolationType,
)
from violation_service.core.database import aget_db
from violation_service.core.principal import Principal
from violation_service.core.security import get_current_principal
from violation_service.schemas.violation import (
    CreateViolationRequest,
    UpdateViolationStatusRequest,
    ViolationDetailsResponse,
    ViolationListResponse,
    ViolationRecord,
    violation_details_response,
    violation_record,
)
from violation_service.services.appeal_store import AppealSummary
from violation_service.services.violation_service import CreateViolationInput, ViolationService
from violation_service.services.violation_store import ViolationFilter

router = APIRouter(prefix="/violations", tags=["violations"])


@router.get("", response_model=ViolationListResponse)
async def list_violations(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    detected_by: Optional[str] = Query(None),
    contractor_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
    ticket_id: Optional[str] = Query(None),
    cleaning_area_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    limit: int = Query(0, ge=0),
    offset: int = Query(0, ge=0),
):
    """List violations visible to the caller. Multi-value filters are comma separated."""
    filters = ViolationFilter(
        statuses=parse_enum_list(status, ViolationStatus),
        types=parse_enum_list(type, ViolationType),
        severities=parse_enum_list(severity, ViolationSeverity),
        detected_by=parse_enum_list(detected_by, ViolationDetectedBy),
        contractor_ids=parse_uuid_list(contractor_id, "contractor_id"),
        driver_id=parse_uuid(driver_id, "driver_id"),
        ticket_id=parse_uuid(ticket_id, "ticket_id"),
        cleaning_area_id=parse_uuid(cleaning_area_id, "cleaning_area_id"),
        search=(search or "").strip(),
        date_from=parse_datetime(date_from, "date_from"),
        date_to=parse_datetime(date_to, "date_to"),
        limit=limit,
        offset=offset,
    )
    items = await ViolationService(db).list(principal, filters)
    records = [violation_record(item.violation, item.summary) for item in items]
    return ViolationListResponse(violations=records, total_count=len(records))


@router.get("/{violation_id}", response_model=ViolationDetailsResponse)
async def get_violation(
    violation_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    details = await ViolationService(db).get_details(principal, violation_id)
    return violation_details_response(details)


@router.post("", response_model=ViolationRecord, status_code=201)
async def create_violation(
    body: CreateViolationRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    """Manually raise a violation on a trip (city and oversight admins)"""
    item = await ViolationService(db).create_manual(
        principal,
        CreateViolationInput(
            trip_id=body.trip_id,
            type=body.type,
            detected_by=body.detected_by,
            severity=body.severity,
            description=body.description,
        ),
    )
    return violation_record(item.violation, item.summary)


@router.put("/{violation_id}/status", response_model=ViolationRecord)
async def update_violation_status(
    violation_id: uuid.UUID,
    body: UpdateViolationStatusRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    service = ViolationService(db)
    violation = await service.update_status(principal, violation_id, body.status, body.note)
    summaries = await service.appeals.summarize([violation.id])
    return violation_record(violation, summaries.get(violation.id) or AppealSummary())
