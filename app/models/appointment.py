import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class Appointment(Base):
    """In-person document review scheduled by the JE for one review cycle."""

    __tablename__ = "appointments"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "status IN ('SCHEDULED', 'COMPLETED', 'CANCELLED', 'RESCHEDULED')",
            name="ck_appointments_status",
        ),
        Index("ix_appointments_application_cycle", "application_id", "review_cycle"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    review_cycle = Column(Integer, nullable=False, default=1)
    scheduled_by_id = Column(
        UUID(as_uuid=True),
        ForeignKey("officers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    place = Column(String(255), nullable=False)
    room_number = Column(String(50), nullable=False)
    contact_person = Column(String(255), nullable=False)
    comments = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="SCHEDULED")
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completion_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    application = relationship("Application", back_populates="appointments")
    scheduled_by = relationship("Officer", foreign_keys=[scheduled_by_id])
