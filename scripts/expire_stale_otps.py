#!/usr/bin/env python3
"""
Deactivate signing OTPs whose expiry has passed.

Expired rows are already rejected at verification time; this sweep only keeps
the active-OTP index small and frees the (identifier, purpose) slot.

Usage:
    python scripts/expire_stale_otps.py
"""

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy import update

from app.core.logging import configure_logging
from app.db.session import AsyncSessionLocal, engine
from app.models import OtpVerification

logger = logging.getLogger("scripts.expire_stale_otps")


async def expire_stale_otps() -> int:
    now = datetime.now(timezone.utc)
    async with AsyncSessionLocal() as session:
        stmt = (
            update(OtpVerification)
            .where(OtpVerification.is_active.is_(True), OtpVerification.expires_at < now)
            .values(is_active=False)
        )
        result = await session.execute(stmt)
        await session.commit()
        return result.rowcount or 0


async def main() -> None:
    configure_logging()
    try:
        count = await expire_stale_otps()
        logger.info("Deactivated %s expired OTP(s)", count)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
