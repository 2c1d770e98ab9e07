"""Officer and applicant actions on an application.

Every action follows the same shape: lock the application row, validate
and mutate through ``stage_transitions``, run the side effects of entering
the next stage, commit once, then publish notifications.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    DocumentNotFound,
    InvalidStageAction,
    OfficerNotFound,
    Unauthorized,
)
from app.models.application import Application
from app.models.application_document import ApplicationDocument
from app.models.application_stage_review import ApplicationStageReview
from app.models.appointment import Appointment
from app.models.officer import Officer
from app.schemas.application import (
    REJECTED_STATUSES,
    ApplicationStatus,
    DocumentType,
    OfficerRole,
    StageState,
    WorkflowAction,
    WorkflowStage,
)
from app.services import (
    appointments,
    auto_assignment,
    certificates,
    document_verification,
    local_storage,
    notifications,
    payments,
    signature_gateway,
    stage_transitions,
)
from app.services.hsm_client import HsmClient, get_hsm_client
from app.services.key_registry import KeyRegistry, get_key_registry, key_label_for
from app.services.stage_config import StageConfig, stage_for_status, stages_for_role
from app.services.stage_transitions import Actor, TransitionResult

logger = logging.getLogger(__name__)

_REJECTED_VALUES = {status.value for status in REJECTED_STATUSES}


async def commit_workflow(db: AsyncSession) -> None:
    try:
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        raise InvalidStageAction("Application was changed by another action; reload and retry") from exc


def stage_state(
    application: Application,
    review: ApplicationStageReview | None,
    documents: Iterable[ApplicationDocument] = (),
    appointment: Appointment | None = None,
) -> StageState | None:
    """Where the current stage stands for the officer dashboard.

    ``None`` means no officer stage is active (draft or awaiting payment).
    """
    if application.status in _REJECTED_VALUES:
        return StageState.REJECTED
    if application.status == ApplicationStatus.COMPLETED.value:
        return StageState.COMPLETED
    cfg = stage_for_status(application.status)
    if cfg is None or not cfg.is_officer_stage:
        return None
    if review is None or review.assigned_officer_id is None:
        return StageState.AWAITING_ASSIGNMENT
    if review.rejected:
        return StageState.REJECTED
    if review.approved:
        return StageState.COMPLETED
    if cfg.requires_appointment and not appointments.appointment_completed(appointment):
        return StageState.AWAITING_APPOINTMENT
    if cfg.requires_document_verification and not document_verification.required_documents_verified(documents):
        return StageState.AWAITING_VERIFICATION
    if not cfg.requires_signature:
        return StageState.AWAITING_VERIFICATION
    return StageState.AWAITING_SIGNATURE


async def _generated_document(
    db: AsyncSession,
    application: Application,
    document_type: DocumentType,
) -> ApplicationDocument | None:
    stmt = select(ApplicationDocument).where(
        ApplicationDocument.application_id == application.id,
        ApplicationDocument.document_type == document_type.value,
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def store_generated_document(
    db: AsyncSession,
    application: Application,
    document_type: DocumentType,
    content: bytes,
) -> ApplicationDocument:
    """Write a freshly rendered PDF, replacing any earlier unsigned or signed copy."""
    filename = f"{document_type.value.lower()}.pdf"
    path = local_storage.save_bytes(
        content,
        local_storage.application_generated_subdir(application.id),
        filename,
    )
    document = await _generated_document(db, application, document_type)
    if document is None:
        document = ApplicationDocument(
            id=uuid.uuid4(),
            application_id=application.id,
            document_type=document_type.value,
            is_verified=False,
        )
    document.file_name = filename
    document.file_path = path
    document.content_type = "application/pdf"
    document.size_bytes = len(content)
    document.is_signed = False
    document.signed_file_path = None
    db.add(document)
    return document


async def enter_stage(
    db: AsyncSession,
    application: Application,
    result: TransitionResult,
) -> Officer | None:
    """Run the side effects of the status ``result`` moved into.

    Returns the officer auto-assigned to the new stage, if any.
    """
    if result.completed:
        application.certificate_issued_at = datetime.now(timezone.utc)
        if not application.certificate_number:
            application.certificate_number = certificates.certificate_number_for(application)
        db.add(application)
        return None

    cfg = result.entered_stage
    if cfg is None:
        return None
    if cfg.stage == WorkflowStage.PAYMENT:
        await payments.ensure_pending_payment(db, application)
        return None
    if cfg.stage == WorkflowStage.EE2:
        # Kept across re-entries so a number once printed is never reissued.
        number = application.certificate_number or certificates.certificate_number_for(application)
        application.certificate_number = number
        content = certificates.render_licence_certificate(application, number)
        await store_generated_document(db, application, DocumentType.LICENCE_CERTIFICATE, content)

    review = auto_assignment.open_review(db, application, cfg)
    return await auto_assignment.auto_assign(db, application, cfg, review)


async def _publish(application: Application, result: TransitionResult, assigned: Officer | None) -> None:
    if result.rejected:
        await notifications.publish_workflow_event(
            "application.rejected",
            application,
            stage=result.stage.value if result.stage else None,
            remarks=result.history.remarks,
        )
    elif result.completed:
        await notifications.publish_workflow_event(
            "application.completed",
            application,
            certificate_number=application.certificate_number,
        )
    elif result.action in {WorkflowAction.SUBMIT, WorkflowAction.RESUBMIT}:
        await notifications.publish_workflow_event("application.submitted", application, action=result.action.value)
    if assigned is not None:
        entered = result.entered_stage
        await notifications.publish_workflow_event(
            "stage.assigned",
            application,
            stage=entered.stage.value if entered else None,
            officer_id=str(assigned.id),
        )


async def _submit(db: AsyncSession, application_id, applicant, action: WorkflowAction) -> TransitionResult:
    application = await stage_transitions.load_application_for_update(db, application_id)
    result = await stage_transitions.transition(db, application, action, Actor.for_applicant(applicant))
    form = certificates.render_recommendation_form(application)
    await store_generated_document(db, application, DocumentType.RECOMMENDATION_FORM, form)
    assigned = await enter_stage(db, application, result)
    await commit_workflow(db)
    await _publish(application, result, assigned)
    return result


async def submit_application(db: AsyncSession, application_id, applicant) -> TransitionResult:
    return await _submit(db, application_id, applicant, WorkflowAction.SUBMIT)


async def resubmit_application(db: AsyncSession, application_id, applicant) -> TransitionResult:
    return await _submit(db, application_id, applicant, WorkflowAction.RESUBMIT)


async def verify_document(
    db: AsyncSession,
    application_id,
    document_id,
    officer,
    *,
    approved: bool,
    remarks: str | None = None,
) -> ApplicationDocument:
    application = await stage_transitions.load_application_for_update(db, application_id)
    document = await document_verification.verify_document(
        db,
        application=application,
        document_id=document_id,
        approved=approved,
        remarks=remarks,
        officer=officer,
    )
    await commit_workflow(db)
    return document


async def schedule_appointment(
    db: AsyncSession,
    application_id,
    officer,
    *,
    scheduled_at: datetime,
    place: str,
    room_number: str,
    contact_person: str,
    comments: str | None = None,
) -> Appointment:
    application = await stage_transitions.load_application_for_update(db, application_id)
    appointment = await appointments.schedule_appointment(
        db,
        application=application,
        officer=officer,
        scheduled_at=scheduled_at,
        place=place,
        room_number=room_number,
        contact_person=contact_person,
        comments=comments,
    )
    await commit_workflow(db)
    await notifications.publish_workflow_event(
        "appointment.scheduled",
        application,
        appointment_id=str(appointment.id),
        scheduled_at=appointment.scheduled_at.isoformat(),
        place=appointment.place,
        room_number=appointment.room_number,
    )
    return appointment


async def complete_appointment(
    db: AsyncSession,
    application_id,
    appointment_id,
    officer,
    notes: str | None = None,
) -> Appointment:
    application = await stage_transitions.load_application_for_update(db, application_id)
    appointment = await appointments.complete_appointment(
        db,
        application=application,
        appointment_id=appointment_id,
        officer=officer,
        notes=notes,
    )
    await commit_workflow(db)
    await notifications.publish_workflow_event(
        "appointment.completed",
        application,
        appointment_id=str(appointment.id),
    )
    return appointment


async def _signing_stage(db: AsyncSession, application: Application, officer) -> StageConfig:
    cfg = stage_for_status(application.status)
    if cfg is None or not cfg.requires_signature:
        raise InvalidStageAction(
            "Application is not at a signing stage",
            details={"status": application.status},
        )
    await stage_transitions.authorize_officer(db, application, cfg, officer)
    documents = await document_verification.list_documents(db, application.id)
    document_verification.ensure_documents_verified(documents)
    return cfg


async def request_signature_otp(
    db: AsyncSession,
    application_id,
    officer,
    *,
    client: HsmClient | None = None,
    registry: KeyRegistry | None = None,
) -> signature_gateway.OtpTicket:
    application = await stage_transitions.load_application_for_update(db, application_id)
    cfg = await _signing_stage(db, application, officer)
    key_label = key_label_for(officer, cfg, application, registry)
    return await signature_gateway.request_otp(
        db,
        officer=officer,
        application=application,
        stage=cfg.stage,
        key_label=key_label,
        client=client or get_hsm_client(),
    )


async def sign(
    db: AsyncSession,
    application_id,
    officer,
    otp: str,
    comments: str | None = None,
    *,
    client: HsmClient | None = None,
    registry: KeyRegistry | None = None,
) -> TransitionResult:
    client = client or get_hsm_client()
    registry = registry or get_key_registry()

    application = await stage_transitions.load_application_for_update(db, application_id)
    expected_status = application.status
    cfg = await _signing_stage(db, application, officer)
    document = await _generated_document(db, application, cfg.signed_document_type)
    if document is None:
        raise DocumentNotFound(
            "Document to sign has not been generated",
            details={"document_type": cfg.signed_document_type.value},
        )
    key_label = key_label_for(officer, cfg, application, registry)
    ticket = await signature_gateway.active_ticket(
        db,
        identifier=signature_gateway.otp_identifier(application),
        purpose=signature_gateway.otp_purpose(cfg.stage),
    )
    # Each signer signs the copy carrying the previous officers' signatures.
    source_path = document.signed_file_path or document.file_path
    signed = await signature_gateway.verify_and_sign(
        db,
        ticket=ticket,
        otp=otp,
        officer=officer,
        document_bytes=local_storage.read_bytes(source_path),
        coordinates=registry.coordinates_for(cfg.signed_document_type),
        key_label=key_label,
        client=client,
    )

    # verify_and_sign committed the OTP consumption; take the row lock again.
    application = await stage_transitions.load_application_for_update(db, application_id)
    document.signed_file_path = local_storage.save_bytes(
        signed.content,
        local_storage.application_generated_subdir(application.id),
        f"{cfg.signed_document_type.value.lower()}_{cfg.stage.value.lower()}.pdf",
    )
    document.is_signed = True
    db.add(document)
    result = await stage_transitions.transition(
        db,
        application,
        WorkflowAction.SIGN,
        Actor.for_officer(officer),
        remarks=comments,
        expected_status=expected_status,
        signature_transaction_id=signed.transaction_id,
    )
    assigned = await enter_stage(db, application, result)
    await commit_workflow(db)
    await _publish(application, result, assigned)
    return result


async def approve(db: AsyncSession, application_id, officer, comments: str | None = None) -> TransitionResult:
    application = await stage_transitions.load_application_for_update(db, application_id)
    result = await stage_transitions.transition(
        db,
        application,
        WorkflowAction.APPROVE,
        Actor.for_officer(officer),
        remarks=comments,
    )
    assigned = await enter_stage(db, application, result)
    await commit_workflow(db)
    await _publish(application, result, assigned)
    return result


async def reject(db: AsyncSession, application_id, officer, comments: str) -> TransitionResult:
    application = await stage_transitions.load_application_for_update(db, application_id)
    result = await stage_transitions.transition(
        db,
        application,
        WorkflowAction.REJECT,
        Actor.for_officer(officer),
        remarks=comments,
    )
    await commit_workflow(db)
    await _publish(application, result, None)
    return result


async def assign_officer(db: AsyncSession, application_id, officer_id, admin) -> ApplicationStageReview:
    """Assign (or reassign) the open review of the current stage."""
    if admin.role != OfficerRole.ADMIN.value:
        raise Unauthorized("Only administrators can assign officers")
    application = await stage_transitions.load_application_for_update(db, application_id)
    cfg = stage_for_status(application.status)
    if cfg is None or not cfg.is_officer_stage:
        raise InvalidStageAction(
            "Application is not at an officer stage",
            details={"status": application.status},
        )

    result = await db.execute(select(Officer).where(Officer.id == officer_id))
    target = result.scalar_one_or_none()
    if target is None:
        raise OfficerNotFound(details={"officer_id": str(officer_id)})
    if target.role != cfg.officer_role.value or not target.is_active:
        raise InvalidStageAction(
            "Officer cannot take this stage",
            details={"stage": cfg.stage.value, "required_role": cfg.officer_role.value},
        )
    if cfg.matches_position and target.position_type != application.position_type:
        raise InvalidStageAction(
            "Officer handles a different position type",
            details={"position_type": application.position_type},
        )

    review = await stage_transitions.current_review(db, application, cfg.stage)
    if review is None:
        review = auto_assignment.open_review(db, application, cfg)
    elif review.approved or review.rejected:
        raise InvalidStageAction("Stage decision already recorded", details={"stage": cfg.stage.value})
    auto_assignment.assign(db, review, target, actor_id=admin.id, actor_kind="OFFICER")
    await commit_workflow(db)
    await notifications.publish_workflow_event(
        "stage.assigned",
        application,
        stage=cfg.stage.value,
        officer_id=str(target.id),
    )
    return review


async def officer_queue(db: AsyncSession, officer) -> list[tuple[ApplicationStageReview, Application]]:
    """Open reviews on the officer's desk; administrators see unassigned ones.

    Reviews of stages outside the officer's current role are left out.
    """
    stmt = (
        select(ApplicationStageReview, Application)
        .join(Application, Application.id == ApplicationStageReview.application_id)
        .options(selectinload(Application.documents), selectinload(Application.appointments))
        .where(
            ApplicationStageReview.approved.is_(False),
            ApplicationStageReview.rejected.is_(False),
            ApplicationStageReview.review_cycle == Application.review_cycle,
        )
        .order_by(ApplicationStageReview.created_at.asc())
    )
    if officer.role == OfficerRole.ADMIN.value:
        stmt = stmt.where(ApplicationStageReview.assigned_officer_id.is_(None))
    else:
        stages = [cfg.stage.value for cfg in stages_for_role(officer.role)]
        stmt = stmt.where(
            ApplicationStageReview.assigned_officer_id == officer.id,
            ApplicationStageReview.stage.in_(stages),
        )
    result = await db.execute(stmt)
    return [(review, application) for review, application in result.all()]
