from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.schemas.application import PaymentDTO


class PaymentInitiationResponse(BaseModel):
    payment: PaymentDTO
    redirect_url: Optional[str] = None


class PaymentOutcomeResponse(BaseModel):
    payment_id: str
    status: str
    amount: Decimal
    application_id: UUID
    application_status: Optional[str] = None
    replayed: bool = False
