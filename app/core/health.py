from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text

from app.core.exceptions import WorkflowError
from app.core.settings import settings
from app.db.session import engine
from app.services.key_registry import get_key_registry
from app.services.local_storage import storage_root
from app.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    try:
        redis = get_redis_client()
        await redis.ping()
        return {"status": "ok"}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


def _check_hsm() -> dict[str, Any]:
    """Configuration-level check; the HSM itself is only called on signing."""
    if not settings.hsm_enabled:
        return {"status": "disabled"}
    try:
        registry = get_key_registry()
    except WorkflowError as exc:
        return {"status": "error", "error": exc.message}
    return {"status": "ok", "key_labels": len(registry.key_labels)}


def _check_storage() -> dict[str, str]:
    root = storage_root()
    if root.is_dir() and os.access(root, os.W_OK):
        return {"status": "ok"}
    return {"status": "error", "error": f"Storage root not writable: {root}"}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    # A disabled HSM blocks signing but not the rest of the service.
    ready = all(check.get("status") in {"ok", "disabled"} for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def _collect_checks() -> dict[str, dict[str, Any]]:
    return {
        "api": {"status": "ok", "version": APP_VERSION},
        "database": await _check_db(),
        "redis": await _check_redis(),
        "hsm": _check_hsm(),
        "storage": _check_storage(),
    }


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload() -> dict[str, Any]:
    checks = await _collect_checks()
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    payload["hsm_enabled"] = settings.hsm_enabled
    payload["assignment_strategy"] = settings.assignment_strategy
    return payload
