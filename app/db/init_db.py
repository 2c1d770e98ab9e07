import asyncio
import logging

from sqlalchemy import select

from app.core.security import get_password_hash
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models.officer import Officer
from app.schemas.application import OfficerRole

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Seed the administrator account used to create officers."""
    async with AsyncSessionLocal() as session:
        stmt = select(Officer).where(Officer.email == settings.seed_admin_email.lower())
        result = await session.execute(stmt)
        admin = result.scalar_one_or_none()
        if admin:
            logger.info("Admin officer already exists")
            return

        admin = Officer(
            email=settings.seed_admin_email.lower(),
            full_name=settings.seed_admin_full_name,
            hashed_password=get_password_hash(settings.seed_admin_password),
            role=OfficerRole.ADMIN.value,
            is_active=True,
            token_version=0,
        )
        session.add(admin)
        await session.commit()
        logger.info("Seeded admin officer %s", admin.email)


if __name__ == "__main__":
    asyncio.run(init_db())
