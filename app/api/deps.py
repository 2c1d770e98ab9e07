from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_actor_id
from app.core.security import decode_token
from app.core.settings import settings
from app.db.session import get_db
from app.models import Officer, User
from app.schemas.application import OfficerRole
from app.services.hsm_client import HsmClient, get_hsm_client
from app.services.payment_gateway import PaymentGatewayClient, get_payment_gateway_client


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def enforce_inactivity(last_active_at: Optional[datetime], now: datetime) -> None:
    timeout = timedelta(minutes=settings.session_timeout_minutes)
    if last_active_at and now - last_active_at > timeout:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired due to inactivity",
        )


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def get_hsm() -> HsmClient:
    return get_hsm_client()


def get_payment_gateway() -> PaymentGatewayClient:
    return get_payment_gateway_client()


async def _resolve_account(token: str, db: AsyncSession, model, kind: str):
    try:
        payload = decode_token(token, expected_kind=kind)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    subject = payload.get("sub")
    token_version = payload.get("tv")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    result = await db.execute(select(model).where(model.id == subject))
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found")
    if not account.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive account")
    if token_version is not None and account.token_version != token_version:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token revoked")

    now = datetime.now(timezone.utc)
    enforce_inactivity(account.last_active_at, now)
    account.last_active_at = now
    db.add(account)
    await db.commit()
    set_actor_id(f"{kind}:{account.id}")
    return account


async def get_current_applicant(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    return await _resolve_account(token, db, User, "applicant")


async def get_current_officer(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Officer:
    return await _resolve_account(token, db, Officer, "officer")


def require_officer_role(*roles: OfficerRole | str):
    allowed = {OfficerRole(role).value for role in roles}

    async def dependency(officer: Officer = Depends(get_current_officer)) -> Officer:
        if officer.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(sorted(allowed))}",
            )
        return officer

    return dependency


require_admin = require_officer_role(OfficerRole.ADMIN)
