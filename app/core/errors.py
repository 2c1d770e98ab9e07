from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import WorkflowError

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    410: "gone",
    413: "payload_too_large",
    422: "validation_error",
    429: "rate_limited",
    502: "bad_gateway",
    503: "service_unavailable",
}

# Never echo submitted values: they can hold OTPs, passwords or upload bytes.
_VALIDATION_KEYS = ("loc", "msg", "type")


def error_body(code: str, message: str, details: dict | None = None) -> dict[str, Any]:
    return {"code": code, "message": message, "data": None, "details": details or {}}


def _error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    if details is not None and not isinstance(details, dict):
        details = {"detail": details}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(error_body(code, message, details)))


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, "http_error")
    detail = exc.detail
    if isinstance(detail, dict):
        # Routers raise {"code", "message", "details"} for request-level problems.
        return _error_response(
            exc.status_code,
            detail.get("code") or code,
            detail.get("message") or _phrase(exc.status_code),
            detail.get("details"),
        )
    message = detail if isinstance(detail, str) and detail else _phrase(exc.status_code)
    return _error_response(exc.status_code, code, message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{key: error.get(key) for key in _VALIDATION_KEYS} for error in exc.errors()]
    message = "Validation failed"
    if errors:
        first = errors[0]
        fields = [str(part) for part in first["loc"] or () if part not in {"body", "query", "path", "form"}]
        message = f"{'.'.join(fields)}: {first['msg']}" if fields else str(first["msg"])
    return _error_response(422, "validation_error", message, {"errors": errors})


async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    logger.info("Workflow action rejected code=%s path=%s: %s", exc.code, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = _error_response(429, "rate_limited", _phrase(429), {"limit": str(exc.detail)})
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict):
        response.headers.update(headers)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(WorkflowError, workflow_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
