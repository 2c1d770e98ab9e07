from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import User
from app.schemas.application import (
    ApplicationCreateRequest,
    ApplicationDocumentDTO,
    ApplicationDTO,
    ApplicationListResponse,
    ApplicationStatus,
    ApplicationSummaryDTO,
    ApplicationUpdateRequest,
    AppointmentDTO,
    DocumentType,
    PaymentDTO,
    StatusHistoryDTO,
)
from app.schemas.payments import PaymentInitiationResponse
from app.schemas.workflow import TransitionResponse
from app.services import applications, local_storage, payments, workflow_orchestrator
from app.services.payment_gateway import PaymentGatewayClient


router = APIRouter(prefix="/applications", tags=["applications"])


def transition_response(result) -> TransitionResponse:
    return TransitionResponse(
        application_id=result.application_id,
        action=result.action.value,
        from_status=result.from_status,
        to_status=result.to_status,
        stage=result.stage.value if result.stage else None,
    )


@router.post("", response_model=ApplicationDTO, status_code=201, summary="Create a draft application")
async def create_application(
    payload: ApplicationCreateRequest,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await applications.create_application(db, current_user, payload)
    application = await applications.get_applicant_application(db, application.id, current_user)
    return ApplicationDTO.model_validate(application)


@router.get("", response_model=ApplicationListResponse, summary="List my applications")
async def list_applications(
    status_filter: ApplicationStatus | None = Query(default=None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> ApplicationListResponse:
    items, total = await applications.list_applicant_applications(
        db,
        current_user,
        limit=page_size,
        offset=(page - 1) * page_size,
        status=status_filter,
    )
    return ApplicationListResponse(
        items=[ApplicationSummaryDTO.model_validate(item) for item in items],
        total=total,
    )


@router.get("/{application_id}", response_model=ApplicationDTO, summary="Get one of my applications")
async def get_application(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await applications.get_applicant_application(db, application_id, current_user)
    return ApplicationDTO.model_validate(application)


@router.patch("/{application_id}", response_model=ApplicationDTO, summary="Edit a draft or rejected application")
async def update_application(
    application_id: UUID,
    payload: ApplicationUpdateRequest,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    await applications.update_application(db, application_id, current_user, payload)
    application = await applications.get_applicant_application(db, application_id, current_user)
    return ApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/documents",
    response_model=ApplicationDocumentDTO,
    status_code=201,
    summary="Upload a supporting document",
)
async def upload_document(
    application_id: UUID,
    document_type: DocumentType = Form(...),
    file: UploadFile = File(...),
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDocumentDTO:
    try:
        document = await applications.upload_document(db, application_id, current_user, document_type, file)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_upload", "message": str(exc), "details": {}},
        ) from exc
    return ApplicationDocumentDTO.model_validate(document)


@router.post("/{application_id}/submit", response_model=TransitionResponse, summary="Submit for review")
async def submit_application(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    result = await workflow_orchestrator.submit_application(db, application_id, current_user)
    return transition_response(result)


@router.post("/{application_id}/resubmit", response_model=TransitionResponse, summary="Resubmit after rejection")
async def resubmit_application(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    result = await workflow_orchestrator.resubmit_application(db, application_id, current_user)
    return transition_response(result)


@router.get("/{application_id}/history", response_model=list[StatusHistoryDTO], summary="Status history")
async def application_history(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> list[StatusHistoryDTO]:
    history = await applications.status_history(db, application_id, current_user)
    return [StatusHistoryDTO.model_validate(row) for row in history]


@router.post(
    "/{application_id}/payments",
    response_model=PaymentInitiationResponse,
    summary="Start the licence fee payment",
)
async def initiate_payment(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    client: PaymentGatewayClient = Depends(deps.get_payment_gateway),
    db: AsyncSession = Depends(get_db),
) -> PaymentInitiationResponse:
    initiation = await payments.initiate_payment(db, application_id, current_user, client)
    return PaymentInitiationResponse(
        payment=PaymentDTO.model_validate(initiation.payment),
        redirect_url=initiation.redirect_url,
    )


def _pdf_response(stored_path: str, filename: str, missing_message: str) -> FileResponse:
    try:
        file_path = local_storage.resolve_local_path(stored_path)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_document_path", "message": "Document path is invalid", "details": {}},
        ) from exc
    if not file_path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "document_missing", "message": missing_message, "details": {}},
        )
    return FileResponse(file_path, filename=filename, media_type="application/pdf")


@router.get("/{application_id}/certificate", summary="Download the signed licence certificate")
async def download_certificate(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> FileResponse:
    application, document = await applications.certificate_file(db, application_id, current_user)
    return _pdf_response(
        document.signed_file_path,
        f"{application.application_number}-certificate.pdf",
        "Certificate file does not exist",
    )


@router.get("/{application_id}/challan", summary="Download the fee payment challan")
async def download_challan(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> FileResponse:
    application, document = await applications.challan_file(db, application_id, current_user)
    return _pdf_response(
        document.file_path,
        f"{application.application_number}-challan.pdf",
        "Challan file does not exist",
    )


@router.get(
    "/{application_id}/appointments",
    response_model=list[AppointmentDTO],
    summary="Document review appointments",
)
async def list_appointments(
    application_id: UUID,
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> list[AppointmentDTO]:
    rows = await applications.applicant_appointments(db, application_id, current_user)
    return [AppointmentDTO.model_validate(row) for row in rows]
