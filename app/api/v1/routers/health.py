from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.core.limiter import limiter
from app.core.health import live_payload, ready_payload, status_summary_payload

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Service liveness check")
@limiter.exempt
async def health_live() -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Service readiness check")
@limiter.exempt
async def health_ready():
    payload = await ready_payload()
    if not payload["ready"]:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"code": "service_unavailable", "message": "Service not ready", "data": payload, "details": {}},
        )
    return payload


@router.get("/health", summary="Readiness check without the status code")
@limiter.exempt
async def read_health() -> dict:
    return await ready_payload()


@router.get("/status/summary", tags=["status"], summary="Service status summary")
@limiter.exempt
async def status_summary() -> dict:
    return await status_summary_payload()
