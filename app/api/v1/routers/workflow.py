from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.v1.routers.applications import transition_response
from app.db.session import get_db
from app.models import Officer
from app.schemas.application import (
    ApplicationDocumentDTO,
    ApplicationDTO,
    ApplicationSummaryDTO,
    AppointmentDTO,
    OfficerRole,
    StageReviewDTO,
)
from app.schemas.workflow import (
    AppointmentCompleteRequest,
    AppointmentScheduleRequest,
    ApproveRequest,
    AssignRequest,
    DocumentVerifyRequest,
    OtpTicketResponse,
    RejectRequest,
    SignRequest,
    TransitionResponse,
    WorkflowQueueItem,
    WorkflowQueueResponse,
)
from app.services import applications, appointments, workflow_orchestrator
from app.services.hsm_client import HsmClient

router = APIRouter(prefix="/workflow", tags=["workflow"])


@router.get("/queue", response_model=WorkflowQueueResponse, summary="Applications awaiting my decision")
async def officer_queue(
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> WorkflowQueueResponse:
    rows = await workflow_orchestrator.officer_queue(db, officer)
    items = [
        WorkflowQueueItem(
            review_id=review.id,
            stage=review.stage,
            stage_state=workflow_orchestrator.stage_state(
                application,
                review,
                application.documents,
                appointments.latest_of_cycle(application.appointments, application.review_cycle),
            ),
            assigned_at=review.assigned_at,
            application=ApplicationSummaryDTO.model_validate(application),
        )
        for review, application in rows
    ]
    return WorkflowQueueResponse(items=items, total=len(items))


@router.get("/applications/{application_id}", response_model=ApplicationDTO, summary="Review an application")
async def get_application(
    application_id: UUID,
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await applications.get_officer_application(db, application_id, officer)
    return ApplicationDTO.model_validate(application)


@router.post(
    "/applications/{application_id}/documents/{document_id}/verify",
    response_model=ApplicationDocumentDTO,
    summary="Verify or flag an uploaded document",
)
async def verify_document(
    application_id: UUID,
    document_id: UUID,
    payload: DocumentVerifyRequest,
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDocumentDTO:
    document = await workflow_orchestrator.verify_document(
        db,
        application_id,
        document_id,
        officer,
        approved=payload.approved,
        remarks=payload.remarks,
    )
    return ApplicationDocumentDTO.model_validate(document)


@router.post(
    "/applications/{application_id}/appointments",
    response_model=AppointmentDTO,
    status_code=201,
    summary="Schedule the document review appointment",
)
async def schedule_appointment(
    application_id: UUID,
    payload: AppointmentScheduleRequest,
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> AppointmentDTO:
    appointment = await workflow_orchestrator.schedule_appointment(
        db,
        application_id,
        officer,
        scheduled_at=payload.scheduled_at,
        place=payload.place,
        room_number=payload.room_number,
        contact_person=payload.contact_person,
        comments=payload.comments,
    )
    return AppointmentDTO.model_validate(appointment)


@router.post(
    "/applications/{application_id}/appointments/{appointment_id}/complete",
    response_model=AppointmentDTO,
    summary="Mark the review appointment as held",
)
async def complete_appointment(
    application_id: UUID,
    appointment_id: UUID,
    payload: AppointmentCompleteRequest,
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> AppointmentDTO:
    appointment = await workflow_orchestrator.complete_appointment(
        db,
        application_id,
        appointment_id,
        officer,
        payload.notes,
    )
    return AppointmentDTO.model_validate(appointment)


@router.post(
    "/applications/{application_id}/otp",
    response_model=OtpTicketResponse,
    summary="Request a signing OTP for the current stage",
)
async def request_otp(
    application_id: UUID,
    officer: Officer = Depends(deps.get_current_officer),
    client: HsmClient = Depends(deps.get_hsm),
    db: AsyncSession = Depends(get_db),
) -> OtpTicketResponse:
    ticket = await workflow_orchestrator.request_signature_otp(db, application_id, officer, client=client)
    return OtpTicketResponse(
        transaction_id=ticket.transaction_id,
        purpose=ticket.purpose,
        expires_at=ticket.expires_at,
    )


@router.post(
    "/applications/{application_id}/sign",
    response_model=TransitionResponse,
    summary="Sign the stage document with the OTP and advance",
)
async def sign(
    application_id: UUID,
    payload: SignRequest,
    officer: Officer = Depends(deps.get_current_officer),
    client: HsmClient = Depends(deps.get_hsm),
    db: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    result = await workflow_orchestrator.sign(
        db,
        application_id,
        officer,
        payload.otp,
        payload.comments,
        client=client,
    )
    return transition_response(result)


@router.post(
    "/applications/{application_id}/approve",
    response_model=TransitionResponse,
    summary="Approve a stage that takes no signature",
)
async def approve(
    application_id: UUID,
    payload: ApproveRequest,
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    result = await workflow_orchestrator.approve(db, application_id, officer, payload.comments)
    return transition_response(result)


@router.post(
    "/applications/{application_id}/reject",
    response_model=TransitionResponse,
    summary="Reject the application at the current stage",
)
async def reject(
    application_id: UUID,
    payload: RejectRequest,
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    result = await workflow_orchestrator.reject(db, application_id, officer, payload.comments)
    return transition_response(result)


@router.post(
    "/applications/{application_id}/assign",
    response_model=StageReviewDTO,
    summary="Assign the current stage to an officer",
)
async def assign(
    application_id: UUID,
    payload: AssignRequest,
    admin: Officer = Depends(deps.require_officer_role(OfficerRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> StageReviewDTO:
    review = await workflow_orchestrator.assign_officer(db, application_id, payload.officer_id, admin)
    return StageReviewDTO.model_validate(review)
