import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class OtpVerification(Base):
    __tablename__ = "otp_verifications"
    __table_args__ = (
        # At most one live OTP per (identifier, purpose).
        Index(
            "uq_otp_verifications_active",
            "identifier",
            "purpose",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    identifier = Column(String(100), nullable=False)
    purpose = Column(String(50), nullable=False)
    otp_hash = Column(String(64), nullable=False)
    officer_id = Column(UUID(as_uuid=True), ForeignKey("officers.id", ondelete="CASCADE"), nullable=False)
    application_id = Column(
        UUID(as_uuid=True), ForeignKey("applications.id", ondelete="CASCADE"), nullable=True
    )
    transaction_id = Column(String(100), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_used = Column(Boolean, nullable=False, default=False)
    attempt_count = Column(Integer, nullable=False, default=0)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
