import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class OrganizationBrief(OrmModel):
    id: uuid.UUID
    name: str


class DriverBrief(OrmModel):
    id: uuid.UUID
    full_name: str
    phone: Optional[str] = None


class VehicleBrief(OrmModel):
    id: uuid.UUID
    plate_number: str
    brand: Optional[str] = None
    model: Optional[str] = None


class TicketBrief(OrmModel):
    id: uuid.UUID
    status: Optional[str] = None
    planned_start_at: Optional[datetime] = None
    planned_end_at: Optional[datetime] = None


class CleaningAreaBrief(OrmModel):
    id: uuid.UUID
    name: str


class StatusLogResponse(OrmModel):
    id: uuid.UUID
    old_status: Optional[str] = None
    new_status: str
    note: Optional[str] = None
    changed_by: Optional[uuid.UUID] = None
    created_at: datetime


def status_log_response(entry) -> StatusLogResponse:
    return StatusLogResponse(
        id=entry.id,
        old_status=entry.old_status.value if entry.old_status is not None else None,
        new_status=entry.new_status.value,
        note=entry.note,
        changed_by=entry.changed_by,
        created_at=entry.created_at,
    )
