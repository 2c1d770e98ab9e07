from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ApplicationNotFound,
    InvalidStageAction,
    PaymentNotFound,
    PaymentSignatureInvalid,
    Unauthorized,
)
from app.core.settings import settings
from app.models.application import Application
from app.models.payment import Payment
from app.schemas.application import ApplicationStatus, DocumentType, PaymentStatus, WorkflowAction
from app.services import certificates, notifications, stage_transitions
from app.services.audit import record_audit_log
from app.services.payment_gateway import (
    PENDING_AUTH_STATUSES,
    SUCCESS_AUTH_STATUS,
    PaymentGatewayClient,
)
from app.services.stage_transitions import SYSTEM_ACTOR

logger = logging.getLogger(__name__)

DEFAULT_FEE = Decimal("3000.00")


@dataclass(frozen=True)
class PaymentInitiation:
    payment: Payment
    redirect_url: str | None


@dataclass(frozen=True)
class PaymentOutcome:
    payment: Payment
    application_status: str | None
    replayed: bool = False


def fee_for(position_type: str) -> Decimal:
    return Decimal(str(settings.payment_fees.get(position_type, DEFAULT_FEE))).quantize(Decimal("0.01"))


def _new_payment_id() -> str:
    return f"PMC{datetime.now(timezone.utc):%y%m%d}{uuid4().hex[:12].upper()}"


def _new_payment(db: AsyncSession, application: Application) -> Payment:
    payment = Payment(
        id=uuid4(),
        application_id=application.id,
        payment_id=_new_payment_id(),
        amount=fee_for(application.position_type),
        currency=settings.payment_currency,
        status=PaymentStatus.PENDING.value,
    )
    db.add(payment)
    application.fee_amount = payment.amount
    return payment


async def ensure_pending_payment(db: AsyncSession, application: Application) -> Payment:
    """Return the application's open payment, creating one if needed."""
    stmt = (
        select(Payment)
        .where(
            Payment.application_id == application.id,
            Payment.status == PaymentStatus.PENDING.value,
        )
        .order_by(Payment.created_at.desc())
    )
    result = await db.execute(stmt)
    payment = result.scalars().first()
    if payment is not None:
        return payment
    payment = _new_payment(db, application)
    logger.info(
        "Created pending payment %s for %s",
        payment.payment_id,
        application.application_number,
        extra={"application_id": application.id},
    )
    return payment


async def initiate_payment(
    db: AsyncSession,
    application_id,
    applicant,
    client: PaymentGatewayClient,
) -> PaymentInitiation:
    result = await db.execute(select(Application).where(Application.id == application_id))
    application = result.scalar_one_or_none()
    if application is None:
        raise ApplicationNotFound(details={"application_id": str(application_id)})
    if application.applicant_id != applicant.id:
        raise Unauthorized("Only the applicant may pay for this application")
    if application.status != ApplicationStatus.PAYMENT_PENDING.value:
        raise InvalidStageAction("Application is not awaiting payment", details={"status": application.status})

    payment = await ensure_pending_payment(db, application)
    order = await client.create_order(
        order_id=payment.payment_id,
        amount=payment.amount,
        application_number=application.application_number,
    )
    payment.gateway_order_id = order.order_id
    db.add(payment)
    await db.commit()
    return PaymentInitiation(payment=payment, redirect_url=order.redirect_url)


async def _lock_payment(db: AsyncSession, order_id: str) -> Payment:
    stmt = select(Payment).where(Payment.payment_id == order_id).with_for_update()
    result = await db.execute(stmt)
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentNotFound(details={"order_id": order_id})
    return payment


def _amount_matches(payment: Payment, reported: Any) -> bool:
    try:
        return Decimal(str(reported)).quantize(Decimal("0.01")) == Decimal(str(payment.amount)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return False


async def apply_gateway_result(db: AsyncSession, data: dict[str, Any]) -> PaymentOutcome:
    """Apply a verified gateway transaction to the payment and workflow.

    A payment that is no longer pending is left untouched, which makes
    duplicate callbacks and status refreshes harmless.
    """
    from app.services import workflow_orchestrator

    order_id = data.get("orderid")
    if not order_id:
        raise PaymentSignatureInvalid("Gateway response has no order id")
    payment = await _lock_payment(db, str(order_id))
    if payment.status != PaymentStatus.PENDING.value:
        logger.info("Ignoring replayed gateway result for payment %s (%s)", payment.payment_id, payment.status)
        return PaymentOutcome(payment=payment, application_status=None, replayed=True)

    auth_status = str(data.get("auth_status") or "")
    if auth_status in PENDING_AUTH_STATUSES:
        return PaymentOutcome(payment=payment, application_status=None)

    application = await stage_transitions.load_application_for_update(db, payment.application_id)
    old_status = payment.status
    failure_reason = None
    if auth_status != SUCCESS_AUTH_STATUS:
        failure_reason = data.get("transaction_error_desc") or f"Gateway auth_status {auth_status or 'missing'}"
    elif not _amount_matches(payment, data.get("amount")):
        failure_reason = "Paid amount does not match the application fee"

    payment.transaction_id = data.get("transactionid")
    payment.method = data.get("payment_method_type")
    payment.gateway_response = data
    now = datetime.now(timezone.utc)
    event = "payment.failed"
    if failure_reason is None:
        payment.status = PaymentStatus.COMPLETED.value
        payment.paid_at = now
        payment.challan_number = certificates.challan_number_for(payment, now)
        await workflow_orchestrator.store_generated_document(
            db,
            application,
            DocumentType.PAYMENT_CHALLAN,
            certificates.render_payment_challan(application, payment, payment.challan_number),
        )
        event = "payment.completed"
        if application.status == ApplicationStatus.PAYMENT_PENDING.value:
            transition = await stage_transitions.transition(
                db,
                application,
                WorkflowAction.APPROVE,
                SYSTEM_ACTOR,
                remarks=f"Payment {payment.payment_id} received",
                expected_status=ApplicationStatus.PAYMENT_PENDING,
            )
            await workflow_orchestrator.enter_stage(db, application, transition)
        else:
            logger.warning(
                "Payment %s completed while application %s is %s",
                payment.payment_id,
                application.application_number,
                application.status,
                extra={"application_id": application.id},
            )
    else:
        payment.status = PaymentStatus.FAILED.value
        payment.failure_reason = failure_reason
        if application.status == ApplicationStatus.PAYMENT_PENDING.value:
            _new_payment(db, application)
    db.add(payment)
    record_audit_log(
        db,
        actor_id=None,
        actor_kind="SYSTEM",
        action=event,
        resource_type="payment",
        resource_id=str(payment.id),
        old_value={"status": old_status},
        new_value={
            "status": payment.status,
            "transaction_id": payment.transaction_id,
            "challan_number": payment.challan_number,
            "reason": failure_reason,
        },
    )
    await workflow_orchestrator.commit_workflow(db)
    await notifications.publish_workflow_event(event, application, payment_id=payment.payment_id)
    return PaymentOutcome(payment=payment, application_status=application.status)


async def handle_callback(
    db: AsyncSession,
    transaction_response: str,
    client: PaymentGatewayClient,
) -> PaymentOutcome:
    data = client.decode_callback(transaction_response)
    logger.info("Payment callback for order %s auth_status=%s", data.get("orderid"), data.get("auth_status"))
    return await apply_gateway_result(db, data)


async def refresh_payment_status(
    db: AsyncSession,
    payment_id,
    client: PaymentGatewayClient,
    *,
    applicant=None,
) -> PaymentOutcome:
    stmt = select(Payment, Application.applicant_id).join(Application, Application.id == Payment.application_id)
    result = await db.execute(stmt.where(Payment.id == payment_id))
    row = result.first()
    # Another applicant's payment is reported as missing.
    if row is None or (applicant is not None and row[1] != applicant.id):
        raise PaymentNotFound(details={"payment_id": str(payment_id)})
    payment = row[0]
    if payment.status != PaymentStatus.PENDING.value:
        return PaymentOutcome(payment=payment, application_status=None, replayed=True)
    data = await client.get_transaction_status(payment.payment_id)
    data.setdefault("orderid", payment.payment_id)
    return await apply_gateway_result(db, data)
