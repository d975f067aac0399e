import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, Uuid, text
from sqlalchemy.orm import relationship

from violation_service.core.constants import (
    AppealReasonCode,
    AppealStatus,
    AttachmentFileType,
    UserRole,
)
from violation_service.models.base import Base, TimestampMixin, enum_column_type, utcnow

APPEAL_STATUS_TYPE = enum_column_type(AppealStatus, 'appeal_status')

# Partial index predicate shared by PostgreSQL and SQLite.
ACTIVE_APPEAL_PREDICATE = text("status IN ('SUBMITTED', 'UNDER_REVIEW', 'NEED_INFO')")
ACTIVE_APPEAL_INDEX = 'uniq_violation_active_appeal'


class Appeal(Base, TimestampMixin):
    __tablename__ = 'violation_appeals'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    violation_id = Column(Uuid, ForeignKey('violations.id', ondelete='CASCADE'), nullable=False, index=True)
    trip_id = Column(Uuid, ForeignKey('trips.id', ondelete='CASCADE'), nullable=False)

    # Snapshot of the trip linkage taken when the appeal was filed
    ticket_id = Column(Uuid, ForeignKey('tickets.id', ondelete='SET NULL'))
    driver_id = Column(Uuid, ForeignKey('drivers.id', ondelete='SET NULL'))
    contractor_id = Column(Uuid, ForeignKey('organizations.id', ondelete='SET NULL'))

    reason_code = Column(enum_column_type(AppealReasonCode, 'appeal_reason_code'), nullable=False)
    reason_text = Column(Text, nullable=False)
    status = Column(APPEAL_STATUS_TYPE, nullable=False, default=AppealStatus.SUBMITTED)

    # Review Details
    resolved_by = Column(Uuid)
    resolved_at = Column(DateTime(timezone=True))

    violation = relationship("Violation", back_populates="appeals")
    driver = relationship("Driver")
    attachments = relationship(
        "AppealAttachment",
        order_by="AppealAttachment.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    comments = relationship(
        "AppealComment",
        order_by="AppealComment.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index(
            ACTIVE_APPEAL_INDEX,
            'violation_id',
            unique=True,
            postgresql_where=ACTIVE_APPEAL_PREDICATE,
            sqlite_where=ACTIVE_APPEAL_PREDICATE,
        ),
        Index('idx_violation_appeals_status', 'status'),
        Index('idx_violation_appeals_reason_code', 'reason_code'),
    )

    def __repr__(self):
        return f"<Appeal {self.id} for violation {self.violation_id} ({self.status.value})>"


class AppealAttachment(Base):
    __tablename__ = 'violation_appeal_attachments'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    appeal_id = Column(Uuid, ForeignKey('violation_appeals.id', ondelete='CASCADE'), nullable=False, index=True)
    file_url = Column(Text, nullable=False)
    file_type = Column(enum_column_type(AttachmentFileType, 'attachment_file_type'), nullable=False)
    uploaded_by = Column(Uuid, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class AppealComment(Base):
    __tablename__ = 'violation_appeal_comments'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    appeal_id = Column(Uuid, ForeignKey('violation_appeals.id', ondelete='CASCADE'), nullable=False, index=True)
    author_id = Column(Uuid, nullable=False)
    author_role = Column(enum_column_type(UserRole, 'user_role'), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class AppealStatusLog(Base):
    """Append-only audit row, one per appeal status change."""

    __tablename__ = 'appeal_status_log'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    appeal_id = Column(Uuid, ForeignKey('violation_appeals.id', ondelete='CASCADE'), nullable=False, index=True)
    old_status = Column(APPEAL_STATUS_TYPE)
    new_status = Column(APPEAL_STATUS_TYPE, nullable=False)
    note = Column(Text)
    changed_by = Column(Uuid)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
