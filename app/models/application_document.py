import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


DOCUMENT_TYPES = (
    "ADDRESS_PROOF",
    "PAN_CARD",
    "AADHAR_CARD",
    "DEGREE_CERTIFICATE",
    "MARKSHEET",
    "EXPERIENCE_CERTIFICATE",
    "ISSE_CERTIFICATE",
    "PROPERTY_TAX_RECEIPT",
    "PROFILE_PICTURE",
    "SELF_DECLARATION",
    "COA_CERTIFICATE",
    "ADDITIONAL_DOCUMENT",
    "RECOMMENDATION_FORM",
    "LICENCE_CERTIFICATE",
    "PAYMENT_CHALLAN",
)


class ApplicationDocument(Base):
    __tablename__ = "application_documents"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "document_type IN ({})".format(", ".join(f"'{value}'" for value in DOCUMENT_TYPES)),
            name="ck_application_documents_type",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type = Column(String(50), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    checksum = Column(String(128), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by_id = Column(
        UUID(as_uuid=True), ForeignKey("officers.id", ondelete="RESTRICT"), nullable=True
    )
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_remarks = Column(Text, nullable=True)
    is_signed = Column(Boolean, nullable=False, default=False)
    signed_file_path = Column(String(1024), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    application = relationship("Application", back_populates="documents")
