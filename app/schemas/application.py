from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class PositionType(str, Enum):
    ARCHITECT = "ARCHITECT"
    LICENCE_ENGINEER = "LICENCE_ENGINEER"
    STRUCTURAL_ENGINEER = "STRUCTURAL_ENGINEER"
    SUPERVISOR1 = "SUPERVISOR1"
    SUPERVISOR2 = "SUPERVISOR2"


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    JE_PENDING = "JE_PENDING"
    AE_PENDING = "AE_PENDING"
    EE1_PENDING = "EE1_PENDING"
    CE1_PENDING = "CE1_PENDING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    CLERK_PENDING = "CLERK_PENDING"
    EE2_PENDING = "EE2_PENDING"
    CE2_PENDING = "CE2_PENDING"
    COMPLETED = "COMPLETED"
    REJECTED_BY_JE = "REJECTED_BY_JE"
    REJECTED_BY_AE = "REJECTED_BY_AE"
    REJECTED_BY_EE1 = "REJECTED_BY_EE1"
    REJECTED_BY_CE1 = "REJECTED_BY_CE1"
    REJECTED_BY_CLERK = "REJECTED_BY_CLERK"
    REJECTED_BY_EE2 = "REJECTED_BY_EE2"
    REJECTED_BY_CE2 = "REJECTED_BY_CE2"


REJECTED_STATUSES = frozenset(s for s in ApplicationStatus if s.value.startswith("REJECTED_BY_"))
APPLICANT_EDITABLE_STATUSES = frozenset({ApplicationStatus.DRAFT, *REJECTED_STATUSES})


class WorkflowStage(str, Enum):
    JE = "JE"
    AE = "AE"
    EE1 = "EE1"
    CE1 = "CE1"
    PAYMENT = "PAYMENT"
    CLERK = "CLERK"
    EE2 = "EE2"
    CE2 = "CE2"


class WorkflowAction(str, Enum):
    SUBMIT = "SUBMIT"
    RESUBMIT = "RESUBMIT"
    APPROVE = "APPROVE"
    SIGN = "SIGN"
    REJECT = "REJECT"


class StageState(str, Enum):
    AWAITING_ASSIGNMENT = "AWAITING_ASSIGNMENT"
    AWAITING_APPOINTMENT = "AWAITING_APPOINTMENT"
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    AWAITING_SIGNATURE = "AWAITING_SIGNATURE"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class OfficerRole(str, Enum):
    JUNIOR_ENGINEER = "JUNIOR_ENGINEER"
    ASSISTANT_ENGINEER = "ASSISTANT_ENGINEER"
    EXECUTIVE_ENGINEER = "EXECUTIVE_ENGINEER"
    CITY_ENGINEER = "CITY_ENGINEER"
    CLERK = "CLERK"
    ADMIN = "ADMIN"


class ActorKind(str, Enum):
    OFFICER = "OFFICER"
    APPLICANT = "APPLICANT"
    SYSTEM = "SYSTEM"


class DocumentType(str, Enum):
    ADDRESS_PROOF = "ADDRESS_PROOF"
    PAN_CARD = "PAN_CARD"
    AADHAR_CARD = "AADHAR_CARD"
    DEGREE_CERTIFICATE = "DEGREE_CERTIFICATE"
    MARKSHEET = "MARKSHEET"
    EXPERIENCE_CERTIFICATE = "EXPERIENCE_CERTIFICATE"
    ISSE_CERTIFICATE = "ISSE_CERTIFICATE"
    PROPERTY_TAX_RECEIPT = "PROPERTY_TAX_RECEIPT"
    PROFILE_PICTURE = "PROFILE_PICTURE"
    SELF_DECLARATION = "SELF_DECLARATION"
    COA_CERTIFICATE = "COA_CERTIFICATE"
    ADDITIONAL_DOCUMENT = "ADDITIONAL_DOCUMENT"
    RECOMMENDATION_FORM = "RECOMMENDATION_FORM"
    LICENCE_CERTIFICATE = "LICENCE_CERTIFICATE"
    PAYMENT_CHALLAN = "PAYMENT_CHALLAN"


# Generated by the system; never part of the review set.
GENERATED_DOCUMENT_TYPES = frozenset(
    {DocumentType.RECOMMENDATION_FORM, DocumentType.LICENCE_CERTIFICATE, DocumentType.PAYMENT_CHALLAN}
)
UPLOADABLE_DOCUMENT_TYPES = frozenset(set(DocumentType) - GENERATED_DOCUMENT_TYPES)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RESCHEDULED = "RESCHEDULED"


class ApplicationCreateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    position_type: PositionType
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=10, max_length=20)
    address: str | None = Field(default=None, max_length=1000)
    qualification: str | None = Field(default=None, max_length=255)
    form_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("full_name")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value


class ApplicationUpdateRequest(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, min_length=10, max_length=20)
    address: str | None = Field(default=None, max_length=1000)
    qualification: str | None = Field(default=None, max_length=255)
    form_data: dict[str, Any] | None = None


class ApplicationDocumentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    document_type: str
    file_name: str
    content_type: str | None = None
    size_bytes: int | None = None
    is_verified: bool
    verified_by_id: UUID | None = None
    verified_at: datetime | None = None
    verification_remarks: str | None = None
    is_signed: bool
    uploaded_at: datetime | None = None


class StatusHistoryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    from_status: str | None = None
    to_status: str
    stage: str | None = None
    action: str
    updated_by_id: UUID | None = None
    updated_by_kind: str
    remarks: str | None = None
    created_at: datetime | None = None


class StageReviewDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    stage: str
    review_cycle: int
    assigned_officer_id: UUID | None = None
    assigned_at: datetime | None = None
    approved: bool
    approved_at: datetime | None = None
    approval_comments: str | None = None
    rejected: bool
    rejected_at: datetime | None = None
    rejection_comments: str | None = None
    signature_applied: bool
    signature_applied_at: datetime | None = None


class CommentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    author_id: UUID | None = None
    author_kind: str
    stage: str | None = None
    body: str
    created_at: datetime | None = None


class PaymentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, json_encoders={Decimal: lambda value: str(value)})

    id: UUID
    payment_id: str
    transaction_id: str | None = None
    amount: Decimal
    currency: str
    status: str
    method: str | None = None
    failure_reason: str | None = None
    paid_at: datetime | None = None
    challan_number: str | None = None
    created_at: datetime | None = None


class AppointmentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    review_cycle: int
    scheduled_by_id: UUID
    scheduled_at: datetime
    place: str
    room_number: str
    contact_person: str
    comments: str | None = None
    status: str
    completed_at: datetime | None = None
    completion_notes: str | None = None
    created_at: datetime | None = None


class ApplicationSummaryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_number: str
    position_type: str
    status: str
    full_name: str
    review_cycle: int
    submitted_at: datetime | None = None
    certificate_number: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicationDTO(ApplicationSummaryDTO):
    applicant_id: UUID
    email: str
    phone: str
    address: str | None = None
    qualification: str | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)
    certificate_issued_at: datetime | None = None
    documents: list[ApplicationDocumentDTO] = Field(default_factory=list)
    stage_reviews: list[StageReviewDTO] = Field(default_factory=list)
    comments: list[CommentDTO] = Field(default_factory=list)
    payments: list[PaymentDTO] = Field(default_factory=list)
    appointments: list[AppointmentDTO] = Field(default_factory=list)


class ApplicationListResponse(BaseModel):
    items: list[ApplicationSummaryDTO]
    total: int
