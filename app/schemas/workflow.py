from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.application import ApplicationSummaryDTO, StageState


class DocumentVerifyRequest(BaseModel):
    approved: bool = True
    remarks: Optional[str] = Field(default=None, max_length=2000)


class OtpTicketResponse(BaseModel):
    transaction_id: str
    purpose: str
    expires_at: datetime


class SignRequest(BaseModel):
    otp: str = Field(min_length=4, max_length=12)
    comments: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("otp")
    @classmethod
    def digits_only(cls, v: str) -> str:
        value = v.strip()
        if not value.isdigit():
            raise ValueError("OTP must be numeric")
        return value


class ApproveRequest(BaseModel):
    comments: Optional[str] = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    comments: str = Field(min_length=1, max_length=2000)

    @field_validator("comments")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = v.strip()
        if not value:
            raise ValueError("Rejection comments are required")
        return value


class AssignRequest(BaseModel):
    officer_id: UUID


class AppointmentScheduleRequest(BaseModel):
    scheduled_at: datetime
    place: str = Field(min_length=1, max_length=255)
    room_number: str = Field(min_length=1, max_length=50)
    contact_person: str = Field(min_length=1, max_length=255)
    comments: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("place", "room_number", "contact_person")
    @classmethod
    def non_empty(cls, v: str) -> str:
        value = v.strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value

    @field_validator("scheduled_at")
    @classmethod
    def timezone_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("scheduled_at must include a timezone offset")
        return v


class AppointmentCompleteRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


class TransitionResponse(BaseModel):
    application_id: UUID
    action: str
    from_status: str
    to_status: str
    stage: Optional[str] = None


class WorkflowQueueItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    review_id: UUID
    stage: str
    stage_state: Optional[StageState] = None
    assigned_at: Optional[datetime] = None
    application: ApplicationSummaryDTO


class WorkflowQueueResponse(BaseModel):
    items: list[WorkflowQueueItem]
    total: int
