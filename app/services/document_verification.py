from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DocumentNotFound, DocumentNotVerified, InvalidStageAction
from app.models.application import Application
from app.models.application_document import ApplicationDocument
from app.schemas.application import GENERATED_DOCUMENT_TYPES
from app.services import appointments, stage_transitions
from app.services.audit import model_snapshot, record_audit_log
from app.services.stage_config import stage_for_status

_GENERATED = {doc_type.value for doc_type in GENERATED_DOCUMENT_TYPES}


def reviewable_documents(documents: Iterable[ApplicationDocument]) -> list[ApplicationDocument]:
    return [doc for doc in documents if doc.document_type not in _GENERATED]


def required_documents_verified(documents: Iterable[ApplicationDocument]) -> bool:
    reviewable = reviewable_documents(documents)
    return bool(reviewable) and all(doc.is_verified for doc in reviewable)


def ensure_documents_verified(documents: Iterable[ApplicationDocument]) -> None:
    reviewable = reviewable_documents(documents)
    if not reviewable:
        raise DocumentNotVerified(
            "At least one supporting document must be uploaded and verified before signing",
            details={"unverified_document_ids": []},
        )
    pending = [str(doc.id) for doc in reviewable if not doc.is_verified]
    if pending:
        raise DocumentNotVerified(details={"unverified_document_ids": pending})


async def list_documents(db: AsyncSession, application_id) -> list[ApplicationDocument]:
    stmt = select(ApplicationDocument).where(ApplicationDocument.application_id == application_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def verify_document(
    db: AsyncSession,
    *,
    application: Application,
    document_id,
    approved: bool,
    remarks: str | None,
    officer,
) -> ApplicationDocument:
    """Record an officer's verification decision on one uploaded document.

    Only the officer assigned to a stage that reviews documents may verify,
    and only documents belonging to the application. At the JE stage the
    review appointment must be completed first. The application status is
    not changed here.
    """
    stmt = select(ApplicationDocument).where(
        ApplicationDocument.id == document_id,
        ApplicationDocument.application_id == application.id,
    )
    result = await db.execute(stmt)
    document = result.scalar_one_or_none()
    if document is None:
        raise DocumentNotFound(details={"document_id": str(document_id)})
    if document.document_type in _GENERATED:
        raise InvalidStageAction(
            "Generated documents are signed, not verified",
            details={"document_type": document.document_type},
        )

    stage_cfg = stage_for_status(application.status)
    if stage_cfg is None or not stage_cfg.requires_document_verification:
        raise InvalidStageAction(
            "Documents cannot be verified at the current stage",
            details={"status": application.status},
        )
    await stage_transitions.authorize_officer(db, application, stage_cfg, officer)
    if stage_cfg.requires_appointment:
        await appointments.ensure_appointment_completed(db, application)

    old_snapshot = model_snapshot(document)
    document.is_verified = approved
    document.verified_by_id = officer.id
    document.verified_at = datetime.now(timezone.utc)
    document.verification_remarks = remarks
    db.add(document)
    record_audit_log(
        db,
        actor_id=officer.id,
        action="application_document.verified" if approved else "application_document.flagged",
        resource_type="application_document",
        resource_id=str(document.id),
        old_value=old_snapshot,
        new_value=model_snapshot(document),
    )
    return document
