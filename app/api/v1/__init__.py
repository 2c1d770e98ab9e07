from fastapi import APIRouter

from app.api.v1.routers import applications, auth, health, officers, payments, workflow

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(officers.router)
api_router.include_router(applications.router)
api_router.include_router(workflow.router)
api_router.include_router(payments.router)

__all__ = ["api_router"]
