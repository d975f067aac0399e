import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import relationship

from violation_service.core.constants import (
    ViolationDetectedBy,
    ViolationSeverity,
    ViolationStatus,
    ViolationType,
)
from violation_service.models.base import Base, TimestampMixin, enum_column_type, utcnow


VIOLATION_STATUS_TYPE = enum_column_type(ViolationStatus, 'violation_status')


class Violation(Base, TimestampMixin):
    __tablename__ = 'violations'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    trip_id = Column(Uuid, ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True)

    type = Column(enum_column_type(ViolationType, 'violation_type'), nullable=False)
    detected_by = Column(enum_column_type(ViolationDetectedBy, 'violation_detected_by'), nullable=False, index=True)
    severity = Column(enum_column_type(ViolationSeverity, 'violation_severity'), nullable=False)
    status = Column(
        VIOLATION_STATUS_TYPE,
        nullable=False,
        default=ViolationStatus.OPEN,
        index=True,
    )
    description = Column(Text)

    trip = relationship("Trip")
    appeals = relationship("Appeal", back_populates="violation")

    __table_args__ = (Index('idx_violations_created_at', 'created_at'),)

    def __repr__(self):
        return f"<Violation {self.id} {self.type.value} ({self.status.value})>"


class ViolationStatusLog(Base):
    """Append-only audit row, one per violation status change."""

    __tablename__ = 'violation_status_log'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    violation_id = Column(Uuid, ForeignKey('violations.id', ondelete='CASCADE'), nullable=False, index=True)
    old_status = Column(VIOLATION_STATUS_TYPE)
    new_status = Column(VIOLATION_STATUS_TYPE, nullable=False)
    note = Column(Text)
    changed_by = Column(Uuid)  # null for system-originated rows
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
