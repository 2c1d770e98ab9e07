from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ApplicationNotFound, DocumentNotFound, InvalidStageAction, Unauthorized
from app.core.settings import settings
from app.models.application import Application
from app.models.application_document import ApplicationDocument
from app.models.application_stage_review import ApplicationStageReview
from app.models.application_status_history import ApplicationStatusHistory
from app.models.appointment import Appointment
from app.schemas.application import (
    APPLICANT_EDITABLE_STATUSES,
    UPLOADABLE_DOCUMENT_TYPES,
    ApplicationCreateRequest,
    ApplicationStatus,
    ApplicationUpdateRequest,
    DocumentType,
    OfficerRole,
)
from app.services import local_storage, stage_transitions
from app.services.audit import model_snapshot, record_audit_log

logger = logging.getLogger(__name__)

POSITION_CODES = {
    "ARCHITECT": "ARC",
    "LICENCE_ENGINEER": "LEN",
    "STRUCTURAL_ENGINEER": "STR",
    "SUPERVISOR1": "SU1",
    "SUPERVISOR2": "SU2",
}

_EDITABLE = {status.value for status in APPLICANT_EDITABLE_STATUSES}
_UPLOADABLE = {doc_type.value for doc_type in UPLOADABLE_DOCUMENT_TYPES}
# Document types an applicant may upload more than once.
_MULTI_UPLOAD = {DocumentType.ADDITIONAL_DOCUMENT.value}


def generate_application_number(position_type: str, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    code = POSITION_CODES.get(position_type, position_type[:3].upper())
    return f"PMC-{code}-{now:%Y}-{uuid.uuid4().hex[:8].upper()}"


def _with_related(stmt):
    return stmt.options(
        selectinload(Application.documents),
        selectinload(Application.status_history),
        selectinload(Application.stage_reviews),
        selectinload(Application.comments),
        selectinload(Application.payments),
        selectinload(Application.appointments),
    )


async def get_application(db: AsyncSession, application_id) -> Application | None:
    stmt = _with_related(select(Application).where(Application.id == application_id))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_applicant_application(db: AsyncSession, application_id, applicant) -> Application:
    application = await get_application(db, application_id)
    # Other applicants' applications are reported as missing.
    if application is None or application.applicant_id != applicant.id:
        raise ApplicationNotFound(details={"application_id": str(application_id)})
    return application


async def get_officer_application(db: AsyncSession, application_id, officer) -> Application:
    application = await get_application(db, application_id)
    if application is None:
        raise ApplicationNotFound(details={"application_id": str(application_id)})
    if officer.role == OfficerRole.ADMIN.value:
        return application
    if not any(review.assigned_officer_id == officer.id for review in application.stage_reviews):
        raise Unauthorized("Application is not assigned to this officer")
    return application


async def list_applicant_applications(
    db: AsyncSession,
    applicant,
    *,
    limit: int,
    offset: int,
    status: ApplicationStatus | str | None = None,
) -> tuple[list[Application], int]:
    conditions = [Application.applicant_id == applicant.id]
    if status is not None:
        conditions.append(Application.status == ApplicationStatus(status).value)

    count_stmt = select(func.count()).select_from(Application).where(*conditions)
    count_result = await db.execute(count_stmt)
    total = int(count_result.scalar_one() or 0)

    stmt = (
        select(Application)
        .where(*conditions)
        .order_by(Application.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def create_application(db: AsyncSession, applicant, payload: ApplicationCreateRequest) -> Application:
    application = Application(
        id=uuid.uuid4(),
        application_number=generate_application_number(payload.position_type),
        applicant_id=applicant.id,
        position_type=payload.position_type,
        status=ApplicationStatus.DRAFT.value,
        review_cycle=1,
        full_name=payload.full_name,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
        qualification=payload.qualification,
        form_data=payload.form_data,
    )
    db.add(application)
    record_audit_log(
        db,
        actor_id=applicant.id,
        actor_kind="APPLICANT",
        action="application.created",
        resource_type="application",
        resource_id=str(application.id),
        new_value=model_snapshot(application),
    )
    await db.commit()
    logger.info(
        "Created application %s",
        application.application_number,
        extra={"application_id": application.id},
    )
    return application


async def _editable_application(db: AsyncSession, application_id, applicant) -> Application:
    application = await stage_transitions.load_application_for_update(db, application_id)
    if application.applicant_id != applicant.id:
        raise ApplicationNotFound(details={"application_id": str(application_id)})
    if application.status not in _EDITABLE:
        raise InvalidStageAction(
            "Application can only be changed while in draft or after a rejection",
            details={"status": application.status},
        )
    return application


async def update_application(
    db: AsyncSession,
    application_id,
    applicant,
    payload: ApplicationUpdateRequest,
) -> Application:
    application = await _editable_application(db, application_id, applicant)
    old_snapshot = model_snapshot(application)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in {"full_name", "email", "phone", "form_data"}:
            continue
        setattr(application, field, value)
    db.add(application)
    record_audit_log(
        db,
        actor_id=applicant.id,
        actor_kind="APPLICANT",
        action="application.updated",
        resource_type="application",
        resource_id=str(application.id),
        old_value=old_snapshot,
        new_value=model_snapshot(application),
    )
    await db.commit()
    return application


async def upload_document(
    db: AsyncSession,
    application_id,
    applicant,
    document_type: DocumentType | str,
    file: UploadFile,
) -> ApplicationDocument:
    """Store an applicant upload; re-uploading a type replaces the earlier file."""
    doc_type = DocumentType(document_type).value
    if doc_type not in _UPLOADABLE:
        raise InvalidStageAction("Generated documents cannot be uploaded", details={"document_type": doc_type})
    application = await _editable_application(db, application_id, applicant)

    rel_path, original_name, size_bytes, checksum = await local_storage.save_upload(
        file,
        local_storage.application_documents_subdir(application.id),
        allowed_extensions=set(settings.allowed_upload_extensions),
        max_size_bytes=settings.max_upload_size_mb * 1024 * 1024,
    )

    document = None
    if doc_type not in _MULTI_UPLOAD:
        stmt = select(ApplicationDocument).where(
            ApplicationDocument.application_id == application.id,
            ApplicationDocument.document_type == doc_type,
        )
        result = await db.execute(stmt)
        document = result.scalars().first()
    if document is None:
        document = ApplicationDocument(id=uuid.uuid4(), application_id=application.id, document_type=doc_type)
    document.file_name = original_name
    document.file_path = rel_path
    document.content_type = file.content_type
    document.size_bytes = size_bytes
    document.checksum = checksum
    # A new file needs a fresh review.
    document.is_verified = False
    document.verified_by_id = None
    document.verified_at = None
    document.verification_remarks = None
    document.is_signed = False
    db.add(document)
    record_audit_log(
        db,
        actor_id=applicant.id,
        actor_kind="APPLICANT",
        action="application_document.uploaded",
        resource_type="application_document",
        resource_id=str(document.id),
        new_value={"document_type": doc_type, "file_name": original_name, "checksum": checksum},
    )
    await db.commit()
    return document


async def status_history(db: AsyncSession, application_id, applicant) -> list[ApplicationStatusHistory]:
    application = await get_applicant_application(db, application_id, applicant)
    return list(application.status_history)


async def certificate_file(db: AsyncSession, application_id, applicant) -> tuple[Application, ApplicationDocument]:
    application = await get_applicant_application(db, application_id, applicant)
    if application.status != ApplicationStatus.COMPLETED.value:
        raise InvalidStageAction("Certificate is issued once the application is completed")
    for document in application.documents:
        if document.document_type == DocumentType.LICENCE_CERTIFICATE.value and document.is_signed:
            return application, document
    raise DocumentNotFound("Signed certificate not found")


async def applicant_appointments(db: AsyncSession, application_id, applicant) -> list[Appointment]:
    application = await get_applicant_application(db, application_id, applicant)
    return sorted(application.appointments, key=lambda item: item.created_at, reverse=True)


async def challan_file(db: AsyncSession, application_id, applicant) -> tuple[Application, ApplicationDocument]:
    application = await get_applicant_application(db, application_id, applicant)
    for document in application.documents:
        if document.document_type == DocumentType.PAYMENT_CHALLAN.value:
            return application, document
    raise DocumentNotFound("Payment challan is issued once the fee is paid")


async def reviews_for_application(db: AsyncSession, application_id) -> list[ApplicationStageReview]:
    stmt = (
        select(ApplicationStageReview)
        .where(ApplicationStageReview.application_id == application_id)
        .order_by(ApplicationStageReview.review_cycle, ApplicationStageReview.created_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
