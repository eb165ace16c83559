from __future__ import annotations

import logging
import uuid
from typing import Any, Tuple

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import OrderBotError

logger = logging.getLogger(__name__)

SAFE_ERROR_TEXT = "Sorry, I can't process your request right now. Please try again in a moment."


def map_exception_to_error_code(exc: Exception) -> Tuple[str, str, int]:
    """Return error code, reason and HTTP status for an exception reaching the API layer."""

    if isinstance(exc, OrderBotError):
        return exc.code, exc.reason, exc.http_status

    if isinstance(exc, RequestValidationError):
        return "BAD_REQUEST", "request_validation_error", status.HTTP_422_UNPROCESSABLE_ENTITY

    if isinstance(exc, HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            detail = detail.get("reason") or detail.get("message")
        reason = str(detail) if detail else "http_error"
        if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
            return "BAD_REQUEST", reason, exc.status_code
        return "INTERNAL_ERROR", reason, exc.status_code

    return "INTERNAL_ERROR", exc.__class__.__name__, status.HTTP_500_INTERNAL_SERVER_ERROR


def build_error_response(
    *,
    error_code: str,
    reason: str,
    status_code: int,
    debug_payload: dict[str, Any] | None = None,
) -> JSONResponse:
    meta: dict[str, Any] = {"error": {"code": error_code, "reason": reason}}
    if debug_payload:
        meta["debug"] = debug_payload
    return JSONResponse(
        status_code=status_code,
        content={"reply": {"text": SAFE_ERROR_TEXT}, "meta": meta},
    )


def new_trace_id() -> str:
    return uuid.uuid4().hex


async def log_exception(
    *,
    request: Request,
    exc: Exception,
    trace_id: str,
    handled: bool,
) -> None:
    try:
        body = await request.body()
    except RuntimeError:
        body = b""
    payload = body.decode("utf-8", errors="replace") if body else None
    if handled:
        logger.warning(
            "Rejected request trace_id=%s path=%s reason=%s payload=%s",
            trace_id,
            request.url.path,
            getattr(exc, "reason", None) or exc.__class__.__name__,
            payload,
        )
        return
    logger.error(
        "Unhandled error trace_id=%s path=%s payload=%s",
        trace_id,
        request.url.path,
        payload,
        exc_info=exc,
    )
