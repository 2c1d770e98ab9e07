import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class ApplicationStageReview(Base):
    """One officer stage of one review cycle: assignment, decision and signature."""

    __tablename__ = "application_stage_reviews"
    __allow_unmapped__ = True
    __table_args__ = (
        UniqueConstraint(
            "application_id",
            "stage",
            "review_cycle",
            name="uq_application_stage_reviews_app_stage_cycle",
        ),
        CheckConstraint(
            "stage IN ('JE', 'AE', 'EE1', 'CE1', 'CLERK', 'EE2', 'CE2')",
            name="ck_application_stage_reviews_stage",
        ),
        CheckConstraint(
            "NOT (approved AND rejected)",
            name="ck_application_stage_reviews_single_decision",
        ),
        Index("ix_application_stage_reviews_officer_open", "assigned_officer_id", "approved", "rejected"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stage = Column(String(20), nullable=False)
    review_cycle = Column(Integer, nullable=False, default=1)
    assigned_officer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("officers.id", ondelete="RESTRICT"),
        nullable=True,
    )
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    approved = Column(Boolean, nullable=False, default=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approval_comments = Column(Text, nullable=True)
    rejected = Column(Boolean, nullable=False, default=False)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_comments = Column(Text, nullable=True)
    signature_applied = Column(Boolean, nullable=False, default=False)
    signature_applied_at = Column(DateTime(timezone=True), nullable=True)
    signature_transaction_id = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    application = relationship("Application", back_populates="stage_reviews")
    assigned_officer = relationship("Officer", foreign_keys=[assigned_officer_id])

    @property
    def is_open(self) -> bool:
        return not self.approved and not self.rejected
