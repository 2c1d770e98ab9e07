from uuid import UUID

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import limiter
from app.core.settings import settings
from app.db.session import get_db
from app.models import User
from app.schemas.payments import PaymentOutcomeResponse
from app.services import payments
from app.services.payment_gateway import PaymentGatewayClient

router = APIRouter(prefix="/payments", tags=["payments"])


def _outcome_response(outcome: payments.PaymentOutcome) -> PaymentOutcomeResponse:
    payment = outcome.payment
    return PaymentOutcomeResponse(
        payment_id=payment.payment_id,
        status=payment.status,
        amount=payment.amount,
        application_id=payment.application_id,
        application_status=outcome.application_status,
        replayed=outcome.replayed,
    )


@router.post("/callback", response_model=PaymentOutcomeResponse, summary="Payment gateway return/webhook")
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def payment_callback(
    request: Request,
    transaction_response: str = Form(...),
    client: PaymentGatewayClient = Depends(deps.get_payment_gateway),
    db: AsyncSession = Depends(get_db),
) -> PaymentOutcomeResponse:
    outcome = await payments.handle_callback(db, transaction_response, client)
    return _outcome_response(outcome)


@router.post("/{payment_id}/refresh", response_model=PaymentOutcomeResponse, summary="Re-check a pending payment")
async def refresh_payment(
    payment_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    client: PaymentGatewayClient = Depends(deps.get_payment_gateway),
    db: AsyncSession = Depends(get_db),
) -> PaymentOutcomeResponse:
    outcome = await payments.refresh_payment_status(db, payment_id, client, applicant=current_user)
    return _outcome_response(outcome)
