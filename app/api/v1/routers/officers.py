from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.security import get_password_hash
from app.db.session import get_db
from app.models import Officer
from app.schemas.application import OfficerRole
from app.schemas.auth import OfficerCreateRequest, OfficerListResponse, OfficerOut, OfficerUpdateRequest
from app.services.audit import model_snapshot, record_audit_log

router = APIRouter(prefix="/officers", tags=["officers"])

_POSITION_ROLES = {OfficerRole.JUNIOR_ENGINEER.value, OfficerRole.ASSISTANT_ENGINEER.value}


@router.get("", response_model=OfficerListResponse, summary="List officers")
async def list_officers(
    role: OfficerRole | None = Query(default=None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    _: Officer = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> OfficerListResponse:
    filters = []
    if role is not None:
        filters.append(Officer.role == role.value)
    count_stmt = select(func.count()).select_from(Officer).where(*filters)
    total = (await db.execute(count_stmt)).scalar_one()
    stmt = (
        select(Officer)
        .where(*filters)
        .order_by(Officer.role, Officer.full_name)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    officers = (await db.execute(stmt)).scalars().all()
    return OfficerListResponse(items=[OfficerOut.model_validate(o) for o in officers], total=total)


@router.post("", response_model=OfficerOut, status_code=201, summary="Create an officer account")
async def create_officer(
    payload: OfficerCreateRequest,
    admin: Officer = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> OfficerOut:
    if payload.role in _POSITION_ROLES and not payload.position_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Junior and assistant engineers need a position type",
        )
    try:
        hashed = get_password_hash(payload.password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    officer = Officer(
        email=payload.email.lower(),
        full_name=payload.full_name.strip(),
        phone_number=payload.phone_number,
        hashed_password=hashed,
        role=payload.role,
        position_type=payload.position_type,
        key_label=payload.key_label,
        is_active=True,
        token_version=0,
    )
    db.add(officer)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered") from exc
    record_audit_log(
        db,
        actor_id=admin.id,
        action="officer.created",
        resource_type="officer",
        resource_id=str(officer.id),
        new_value=model_snapshot(officer, exclude={"hashed_password"}),
    )
    await db.commit()
    await db.refresh(officer)
    return OfficerOut.model_validate(officer)


@router.patch("/{officer_id}", response_model=OfficerOut, summary="Update an officer account")
async def update_officer(
    officer_id: UUID,
    payload: OfficerUpdateRequest,
    admin: Officer = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> OfficerOut:
    officer = (await db.execute(select(Officer).where(Officer.id == officer_id))).scalar_one_or_none()
    if not officer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Officer not found")
    old_snapshot = model_snapshot(officer, exclude={"hashed_password"})
    updates = payload.model_dump(exclude_unset=True)
    for field, value in updates.items():
        setattr(officer, field, value)
    if updates.get("is_active") is False:
        # Deactivation revokes outstanding tokens.
        officer.token_version += 1
    db.add(officer)
    record_audit_log(
        db,
        actor_id=admin.id,
        action="officer.updated",
        resource_type="officer",
        resource_id=str(officer.id),
        old_value=old_snapshot,
        new_value=model_snapshot(officer, exclude={"hashed_password"}),
    )
    await db.commit()
    await db.refresh(officer)
    return OfficerOut.model_validate(officer)
