from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

_SUCCESS_CODES = {200: "ok", 201: "created", 202: "accepted"}
_SKIPPED_HEADERS = {"content-length", "content-type"}


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def build_success_envelope(data: Any, status_code: int) -> dict[str, Any]:
    return {
        "code": _SUCCESS_CODES.get(status_code, "ok"),
        "message": _success_message(status_code),
        "data": data,
        "details": {},
    }


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return "code" in payload and "message" in payload and ("data" in payload or "details" in payload)


def _rewrap(original: Response, content: Any, status_code: int) -> JSONResponse:
    wrapped = JSONResponse(status_code=status_code, content=content)
    for key, value in original.headers.items():
        if key.lower() not in _SKIPPED_HEADERS:
            wrapped.headers[key] = value
    return wrapped


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap successful JSON responses in ``{code, message, data, details}``.

    File downloads and other non-JSON bodies pass through untouched; error
    responses are already enveloped by the exception handlers.
    """

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)
        if response.status_code < 200 or response.status_code >= 300:
            return response
        if response.status_code == 204:
            return _rewrap(response, build_success_envelope(None, 200), 200)
        if not response.headers.get("content-type", "").startswith("application/json"):
            return response

        raw = b"".join([chunk async for chunk in response.body_iterator])
        try:
            payload = json.loads(raw) if raw else None
        except ValueError:
            return Response(
                content=raw,
                status_code=response.status_code,
                headers={k: v for k, v in response.headers.items() if k.lower() != "content-length"},
            )
        if _is_enveloped(payload):
            payload.setdefault("data", None)
            payload.setdefault("details", {})
            return _rewrap(response, payload, response.status_code)
        return _rewrap(response, build_success_envelope(payload, response.status_code), response.status_code)


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
