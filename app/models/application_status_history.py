import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class ApplicationStatusHistory(Base):
    """Append-only audit trail of application status changes."""

    __tablename__ = "application_status_history"
    __table_args__ = (
        CheckConstraint(
            "action IN ('SUBMIT', 'RESUBMIT', 'APPROVE', 'SIGN', 'REJECT')",
            name="ck_application_status_history_action",
        ),
        CheckConstraint(
            "updated_by_kind IN ('OFFICER', 'APPLICANT', 'SYSTEM')",
            name="ck_application_status_history_actor_kind",
        ),
        Index("ix_application_status_history_app_created", "application_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status = Column(String(30), nullable=True)
    to_status = Column(String(30), nullable=False)
    stage = Column(String(20), nullable=True)
    action = Column(String(20), nullable=False)
    updated_by_id = Column(UUID(as_uuid=True), nullable=True)
    updated_by_kind = Column(String(20), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    application = relationship("Application", back_populates="status_history")
