from typing import Optional

from app.core.security import verify_password
from app.core.settings import settings
from app.utils.login_security import check_lockout, rate_limit, register_login_attempt

_FAKE_HASH = "$2b$12$EixZaYVK1fsbw1ZfbX3OXePaWrn3ILAWO.P3K.fc8G2.0G7u6g.2"


def constant_time_verify(password_hash: Optional[str], password: str) -> bool:
    if password_hash:
        return verify_password(password, password_hash)
    # Dummy verification to equalize timing
    verify_password(password, _FAKE_HASH)
    return False


def login_identifier(kind: str, email: str) -> str:
    return f"{kind}:{email.strip().lower()}"


async def enforce_login_limits(ip: str, identifier: str) -> None:
    await rate_limit(f"ip:{ip}", limit=settings.rate_limit_per_minute, window_seconds=60)
    await rate_limit(identifier, limit=settings.rate_limit_per_minute, window_seconds=60)
    await check_lockout(identifier)


async def record_login_attempt(identifier: str, success: bool) -> None:
    await register_login_attempt(identifier, success)
