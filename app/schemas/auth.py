from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.application import OfficerRole, PositionType


class AccessToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    kind: Literal["applicant", "officer"]


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str = Field(min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=20)


class ApplicantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    full_name: str
    phone_number: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None


class OfficerCreateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    email: EmailStr
    password: str
    full_name: str = Field(min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    role: OfficerRole
    position_type: Optional[PositionType] = None
    key_label: Optional[str] = Field(default=None, max_length=50)


class OfficerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    full_name: str
    role: str
    position_type: Optional[str] = None
    key_label: Optional[str] = None
    is_active: bool
    last_assigned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OfficerUpdateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    position_type: Optional[PositionType] = None
    key_label: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class OfficerListResponse(BaseModel):
    items: list[OfficerOut]
    total: int
