import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Officer(Base):
    __tablename__ = "officers"
    __table_args__ = (
        CheckConstraint(
            "role IN ('JUNIOR_ENGINEER', 'ASSISTANT_ENGINEER', 'EXECUTIVE_ENGINEER', 'CITY_ENGINEER', 'CLERK', 'ADMIN')",
            name="ck_officers_role",
        ),
        CheckConstraint(
            "position_type IS NULL OR position_type IN ('ARCHITECT', 'LICENCE_ENGINEER', 'STRUCTURAL_ENGINEER', 'SUPERVISOR1', 'SUPERVISOR2')",
            name="ck_officers_position_type",
        ),
        Index("ix_officers_role_active", "role", "is_active"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(20), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(30), nullable=False)
    # JE/AE officers review one professional position each.
    position_type = Column(String(30), nullable=True)
    # Overrides the configured HSM key label for this officer.
    key_label = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="true")
    token_version = Column(Integer, nullable=False, server_default="0")
    last_assigned_at = Column(DateTime(timezone=True), nullable=True)
    last_active_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
