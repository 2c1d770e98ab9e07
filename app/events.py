import logging

from fastapi import FastAPI

from app.core.settings import settings
from app.db.init_db import init_db
from app.services.key_registry import get_key_registry

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup")
        if settings.hsm_enabled:
            # Fail fast on a broken key label or coordinate configuration.
            registry = get_key_registry()
            logger.info("Loaded %s HSM key labels", len(registry.key_labels))
        else:
            logger.warning("HSM disabled; signing requests will be refused")
        await init_db()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
