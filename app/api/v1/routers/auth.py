from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.auth_utils import constant_time_verify, enforce_login_limits, login_identifier, record_login_attempt
from app.core.limiter import limiter
from app.core.security import create_access_token, get_password_hash
from app.core.settings import settings
from app.db.session import get_db
from app.models import Officer, User
from app.schemas.auth import AccessToken, ApplicantOut, LoginRequest, OfficerOut, RegisterRequest

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_for(account, kind: str) -> AccessToken:
    access = create_access_token(str(account.id), kind, token_version=account.token_version)
    return AccessToken(
        access_token=access,
        expires_in=settings.access_token_expire_minutes * 60,
        kind=kind,
    )


async def _login(model, kind: str, credentials: LoginRequest, request: Request, db: AsyncSession) -> AccessToken:
    client_ip = request.client.host if request.client else "unknown"
    identifier = login_identifier(kind, credentials.email)
    await enforce_login_limits(client_ip, identifier)

    stmt = select(model).where(model.email == credentials.email.lower())
    result = await db.execute(stmt)
    account = result.scalar_one_or_none()
    if not account or not constant_time_verify(account.hashed_password if account else None, credentials.password):
        await record_login_attempt(identifier, success=False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not account.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive account")

    account.last_active_at = datetime.now(timezone.utc)
    db.add(account)
    await db.commit()
    await record_login_attempt(identifier, success=True)
    return _token_for(account, kind)


@router.post("/register", response_model=ApplicantOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ApplicantOut:
    try:
        hashed = get_password_hash(payload.password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    user = User(
        email=payload.email.lower(),
        full_name=payload.full_name.strip(),
        phone_number=payload.phone_number,
        hashed_password=hashed,
        is_active=True,
        token_version=0,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered") from exc
    await db.refresh(user)
    return ApplicantOut.model_validate(user)


@router.post("/login", response_model=AccessToken)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AccessToken:
    return await _login(User, "applicant", credentials, request, db)


@router.post("/officers/login", response_model=AccessToken)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def officer_login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AccessToken:
    return await _login(Officer, "officer", credentials, request, db)


@router.get("/me", response_model=ApplicantOut)
async def read_current_applicant(current_user: User = Depends(deps.get_current_applicant)) -> ApplicantOut:
    return ApplicantOut.model_validate(current_user)


@router.get("/officers/me", response_model=OfficerOut)
async def read_current_officer(officer: Officer = Depends(deps.get_current_officer)) -> OfficerOut:
    return OfficerOut.model_validate(officer)


@router.post("/logout", status_code=204)
async def logout(
    current_user: User = Depends(deps.get_current_applicant),
    db: AsyncSession = Depends(get_db),
) -> None:
    current_user.token_version += 1
    db.add(current_user)
    await db.commit()
    return None


@router.post("/officers/logout", status_code=204)
async def officer_logout(
    officer: Officer = Depends(deps.get_current_officer),
    db: AsyncSession = Depends(get_db),
) -> None:
    officer.token_version += 1
    db.add(officer)
    await db.commit()
    return None
