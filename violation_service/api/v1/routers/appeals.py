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
from violation_service.core.constants import AppealReasonCode, AppealStatus, ViolationType
from violation_service.core.database import aget_db
from violation_service.core.principal import Principal
from violation_service.core.security import get_current_principal
from violation_service.schemas.appeal import (
    AppealActionRequest,
    AppealDetailsResponse,
    AppealListItem,
    AppealListResponse,
    CommentRequest,
    CommentResponse,
    CreateAppealRequest,
    appeal_details_response,
)
from violation_service.services.appeal_service import AppealService, AttachmentInput
from violation_service.services.appeal_store import AppealFilter

router = APIRouter(tags=["appeals"])


def _attachments(items):
    return [AttachmentInput(file_url=item.file_url, file_type=item.file_type) for item in items]


@router.get("/appeals", response_model=AppealListResponse)
async def list_appeals(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
    status: Optional[str] = Query(None),
    reason_code: Optional[str] = Query(None),
    violation_type: Optional[str] = Query(None),
    contractor_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
    violation_id: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    limit: int = Query(0, ge=0),
    offset: int = Query(0, ge=0),
):
    """List appeals visible to the caller. Multi-value filters are comma separated."""
    filters = AppealFilter(
        statuses=parse_enum_list(status, AppealStatus),
        reason_codes=parse_enum_list(reason_code, AppealReasonCode),
        violation_types=parse_enum_list(violation_type, ViolationType),
        contractor_ids=parse_uuid_list(contractor_id, "contractor_id"),
        driver_id=parse_uuid(driver_id, "driver_id"),
        violation_id=parse_uuid(violation_id, "violation_id"),
        date_from=parse_datetime(date_from, "date_from"),
        date_to=parse_datetime(date_to, "date_to"),
        limit=limit,
        offset=offset,
    )
    appeals = await AppealService(db).list(principal, filters)
    items = [AppealListItem.model_validate(appeal) for appeal in appeals]
    return AppealListResponse(appeals=items, total_count=len(items))


@router.get("/appeals/{appeal_id}", response_model=AppealDetailsResponse)
async def get_appeal(
    appeal_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    details = await AppealService(db).get(principal, appeal_id)
    return appeal_details_response(details)


@router.post("/violations/{violation_id}/appeals", response_model=AppealDetailsResponse, status_code=201)
async def create_appeal(
    violation_id: uuid.UUID,
    body: CreateAppealRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    """File an appeal against a violation (its driver or contractor only)"""
    details = await AppealService(db).create(
        principal,
        violation_id,
        body.reason_code,
        body.reason_text,
        _attachments(body.attachments),
    )
    return appeal_details_response(details)


@router.post("/appeals/{appeal_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    appeal_id: uuid.UUID,
    body: CommentRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    comment = await AppealService(db).add_comment(
        principal, appeal_id, body.message, _attachments(body.attachments)
    )
    return CommentResponse.model_validate(comment)


@router.post("/appeals/{appeal_id}/actions", response_model=AppealDetailsResponse)
async def act_on_appeal(
    appeal_id: uuid.UUID,
    body: AppealActionRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(aget_db),
):
    """Apply a reviewer action: start-review, request-info, approve, reject or close"""
    details = await AppealService(db).act(principal, appeal_id, body.action, body.message)
    return appeal_details_response(details)
