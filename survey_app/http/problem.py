"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that produce
application/problem+json responses for domain and request errors.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional
import logging
from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from survey_app.logic.errors import FieldError, NotFoundError, ResponseStoreError, ResponseValidationError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem(
    status: int,
    title: str,
    detail: str = "",
    *,
    code: Optional[str] = None,
    errors: Optional[list] = None,
) -> JSONResponse:
    body: dict[str, Any] = {"title": title, "status": status, "detail": detail}
    if code:
        body["code"] = code
    if errors is not None:
        body["errors"] = errors
    return JSONResponse(jsonable_encoder(body), status_code=status, media_type=PROBLEM_MEDIA_TYPE)


def validation_problem(errors: Iterable[FieldError]) -> JSONResponse:
    """422 body for a response that failed domain validation."""
    return problem(
        422,
        "Unprocessable Entity",
        "Response validation failed",
        code="response_invalid",
        errors=[e.as_dict() for e in errors],
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status_code = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        return JSONResponse(exc.detail, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=exc.headers)
    return problem(status_code, "Error", str(exc.detail or ""))


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    return problem(422, "Invalid Request", "Request validation failed", errors=list(exc.errors()))


async def handle_response_validation_error(request: Request, exc: ResponseValidationError) -> JSONResponse:
    return validation_problem(exc.errors)


async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.info("not_found resource=%s id=%s path=%s", exc.resource, exc.identifier, request.url.path)
    return problem(404, "Not Found", str(exc), code=f"{exc.resource}_not_found")


async def handle_store_error(request: Request, exc: ResponseStoreError) -> JSONResponse:
    logger.error("store_unavailable path=%s", request.url.path, exc_info=exc)
    return problem(503, "Service Unavailable", "The response store is unavailable", code="store_unavailable")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return problem(500, "Internal Server Error")


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem",
    "validation_problem",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_response_validation_error",
    "handle_not_found",
    "handle_store_error",
    "handle_unexpected_error",
]
