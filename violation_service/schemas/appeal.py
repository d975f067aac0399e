import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from violation_service.core.constants import (
    AppealReasonCode,
    AppealStatus,
    AttachmentFileType,
    UserRole,
    ViolationDetectedBy,
    ViolationSeverity,
    ViolationStatus,
    ViolationType,
)
from violation_service.schemas.common import (
    DriverBrief,
    OrmModel,
    StatusLogResponse,
    status_log_response,
)


# Request schemas
class AttachmentRequest(BaseModel):
    file_url: str
    file_type: str  # IMAGE | VIDEO | DOC


class CreateAppealRequest(BaseModel):
    reason_code: str
    reason_text: str
    attachments: List[AttachmentRequest] = []


class CommentRequest(BaseModel):
    message: str
    attachments: List[AttachmentRequest] = []


class AppealActionRequest(BaseModel):
    action: str  # start-review | request-info | approve | reject | close
    message: Optional[str] = None


# Response schemas
class AttachmentResponse(OrmModel):
    id: uuid.UUID
    file_url: str
    file_type: AttachmentFileType
    uploaded_by: uuid.UUID
    created_at: datetime


class CommentResponse(OrmModel):
    id: uuid.UUID
    author_id: uuid.UUID
    author_role: UserRole
    message: str
    created_at: datetime


class ViolationBrief(OrmModel):
    id: uuid.UUID
    trip_id: uuid.UUID
    type: ViolationType
    detected_by: ViolationDetectedBy
    severity: ViolationSeverity
    status: ViolationStatus


class AppealResponse(OrmModel):
    id: uuid.UUID
    violation_id: uuid.UUID
    trip_id: uuid.UUID
    ticket_id: Optional[uuid.UUID] = None
    driver_id: Optional[uuid.UUID] = None
    contractor_id: Optional[uuid.UUID] = None
    reason_code: AppealReasonCode
    reason_text: str
    status: AppealStatus
    resolved_by: Optional[uuid.UUID] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AppealListItem(AppealResponse):
    violation: Optional[ViolationBrief] = None
    driver: Optional[DriverBrief] = None


class AppealWithThread(AppealResponse):
    """An appeal together with its comments and attachments."""

    driver: Optional[DriverBrief] = None
    comments: List[CommentResponse] = []
    attachments: List[AttachmentResponse] = []


class AppealDetailsResponse(AppealWithThread):
    violation: Optional[ViolationBrief] = None
    history: List[StatusLogResponse] = []
    last_updated_by: Optional[uuid.UUID] = None


class AppealListResponse(BaseModel):
    appeals: List[AppealListItem]
    total_count: int


def appeal_details_response(details) -> AppealDetailsResponse:
    """Build the details payload from an ``AppealDetails`` service result."""
    appeal = details.appeal
    thread = AppealWithThread.model_validate(appeal)
    return AppealDetailsResponse(
        **thread.model_dump(),
        violation=ViolationBrief.model_validate(appeal.violation) if appeal.violation is not None else None,
        history=[status_log_response(entry) for entry in details.history],
        last_updated_by=details.last_updated_by,
    )
