import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


APPLICATION_STATUSES = (
    "DRAFT",
    "JE_PENDING",
    "AE_PENDING",
    "EE1_PENDING",
    "CE1_PENDING",
    "PAYMENT_PENDING",
    "CLERK_PENDING",
    "EE2_PENDING",
    "CE2_PENDING",
    "COMPLETED",
    "REJECTED_BY_JE",
    "REJECTED_BY_AE",
    "REJECTED_BY_EE1",
    "REJECTED_BY_CE1",
    "REJECTED_BY_CLERK",
    "REJECTED_BY_EE2",
    "REJECTED_BY_CE2",
)


class Application(Base):
    __tablename__ = "applications"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{value}'" for value in APPLICATION_STATUSES)),
            name="ck_applications_status",
        ),
        CheckConstraint(
            "position_type IN ('ARCHITECT', 'LICENCE_ENGINEER', 'STRUCTURAL_ENGINEER', 'SUPERVISOR1', 'SUPERVISOR2')",
            name="ck_applications_position_type",
        ),
        CheckConstraint("review_cycle >= 1", name="ck_applications_review_cycle_positive"),
        CheckConstraint("version >= 1", name="ck_applications_version_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_number = Column(String(50), nullable=False, unique=True)
    applicant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    position_type = Column(String(30), nullable=False)
    status = Column(String(30), nullable=False, default="DRAFT", index=True)
    review_cycle = Column(Integer, nullable=False, default=1)
    version = Column(Integer, nullable=False, default=1)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    address = Column(Text, nullable=True)
    qualification = Column(String(255), nullable=True)
    form_data = Column(JSONB, nullable=False, default=dict)
    fee_amount = Column(Numeric(12, 2), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    certificate_number = Column(String(100), nullable=True, unique=True)
    certificate_issued_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    applicant = relationship("User", back_populates="applications")
    documents = relationship(
        "ApplicationDocument",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ApplicationDocument.uploaded_at",
    )
    status_history = relationship(
        "ApplicationStatusHistory",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ApplicationStatusHistory.created_at",
    )
    stage_reviews = relationship(
        "ApplicationStageReview",
        back_populates="application",
        cascade="all, delete-orphan",
    )
    comments = relationship(
        "ApplicationComment",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ApplicationComment.created_at",
    )
    payments = relationship(
        "Payment",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="Payment.created_at",
    )
    appointments = relationship(
        "Appointment",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="Appointment.created_at",
    )

    __mapper_args__ = {"version_id_col": version}
