"""OTP issuance and OTP-gated signing.

OTP codes are issued by the HSM; only a SHA-256 of the code is stored.
A matching OTP is consumed (committed) before the signer is called, so a
signer failure always requires a fresh OTP.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import OtpExpired, OtpMismatch, Unauthorized
from app.core.settings import settings
from app.models.otp_verification import OtpVerification
from app.services.hsm_client import HsmClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtpTicket:
    otp_id: UUID
    identifier: str
    purpose: str
    transaction_id: str
    officer_id: UUID
    application_id: UUID | None
    expires_at: datetime


@dataclass(frozen=True)
class SignedDocumentRef:
    transaction_id: str
    content: bytes
    signed_at: datetime


def otp_identifier(application) -> str:
    return f"APP-{application.application_number}"


def otp_purpose(stage) -> str:
    return f"DIGITAL_SIGNATURE_{getattr(stage, 'value', stage)}"


def hash_otp(code: str) -> str:
    return hashlib.sha256(code.strip().encode("utf-8")).hexdigest()


def _transaction_id(application, stage) -> str:
    number = "".join(ch for ch in application.application_number if ch.isalnum())
    return f"{number}{getattr(stage, 'value', stage)}{uuid4().hex[:10].upper()}"


def _ticket(record: OtpVerification) -> OtpTicket:
    return OtpTicket(
        otp_id=record.id,
        identifier=record.identifier,
        purpose=record.purpose,
        transaction_id=record.transaction_id,
        officer_id=record.officer_id,
        application_id=record.application_id,
        expires_at=record.expires_at,
    )


async def _deactivate_active(db: AsyncSession, *, identifier: str, purpose: str) -> int:
    stmt = (
        select(OtpVerification)
        .where(
            OtpVerification.identifier == identifier,
            OtpVerification.purpose == purpose,
            OtpVerification.is_active.is_(True),
        )
        .with_for_update()
    )
    result = await db.execute(stmt)
    records = result.scalars().all()
    for record in records:
        record.is_active = False
        db.add(record)
    # Flush before inserting so the partial unique index sees the old row as inactive.
    await db.flush()
    return len(records)


async def request_otp(
    db: AsyncSession,
    *,
    officer,
    application,
    stage,
    key_label: str,
    client: HsmClient,
) -> OtpTicket:
    identifier = otp_identifier(application)
    purpose = otp_purpose(stage)
    transaction_id = _transaction_id(application, stage)

    result = await client.generate_otp(transaction_id, key_label)

    replaced = await _deactivate_active(db, identifier=identifier, purpose=purpose)
    record = OtpVerification(
        identifier=identifier,
        purpose=purpose,
        otp_hash=hash_otp(result.otp),
        officer_id=officer.id,
        application_id=application.id,
        transaction_id=result.transaction_id,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=settings.otp_validity_minutes),
        is_active=True,
        is_used=False,
        attempt_count=0,
    )
    db.add(record)
    await db.commit()
    logger.info(
        "Issued signature OTP identifier=%s purpose=%s replaced=%s",
        identifier,
        purpose,
        replaced,
    )
    return _ticket(record)


async def active_ticket(db: AsyncSession, *, identifier: str, purpose: str) -> OtpTicket:
    stmt = select(OtpVerification).where(
        OtpVerification.identifier == identifier,
        OtpVerification.purpose == purpose,
        OtpVerification.is_active.is_(True),
    )
    result = await db.execute(stmt)
    record = result.scalars().first()
    if record is None:
        raise OtpExpired("No active OTP for this signature; request a new one")
    return _ticket(record)


async def verify_and_sign(
    db: AsyncSession,
    *,
    ticket: OtpTicket,
    otp: str,
    officer,
    document_bytes: bytes,
    coordinates: str,
    key_label: str,
    client: HsmClient,
) -> SignedDocumentRef:
    stmt = select(OtpVerification).where(OtpVerification.id == ticket.otp_id).with_for_update()
    result = await db.execute(stmt)
    record = result.scalar_one_or_none()
    if record is None or not record.is_active or record.is_used:
        raise OtpExpired()
    if record.officer_id != officer.id:
        raise Unauthorized("OTP was issued to a different officer")

    now = datetime.now(timezone.utc)
    if record.expires_at <= now:
        record.is_active = False
        db.add(record)
        await db.commit()
        raise OtpExpired()

    if not hmac.compare_digest(record.otp_hash, hash_otp(otp)):
        record.attempt_count = (record.attempt_count or 0) + 1
        remaining = max(settings.otp_max_attempts - record.attempt_count, 0)
        if remaining == 0:
            record.is_active = False
        db.add(record)
        await db.commit()
        logger.info(
            "OTP mismatch identifier=%s purpose=%s attempts=%s",
            record.identifier,
            record.purpose,
            record.attempt_count,
        )
        raise OtpMismatch(details={"remaining_attempts": remaining})

    record.is_active = False
    record.is_used = True
    record.verified_at = now
    db.add(record)
    await db.commit()

    signed = await client.sign_pdf(
        transaction_id=record.transaction_id,
        key_label=key_label,
        pdf_bytes=document_bytes,
        coordinates=coordinates,
        otp=otp.strip(),
    )
    return SignedDocumentRef(
        transaction_id=record.transaction_id,
        content=signed,
        signed_at=datetime.now(timezone.utc),
    )
