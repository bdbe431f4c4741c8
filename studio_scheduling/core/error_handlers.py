"""Centralized exception handlers for the Scheduling service."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Dict, Type

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from studio_scheduling.core.exceptions import (
    ConcurrencyError,
    ConflictError,
    DeadlineExceededError,
    NotFoundError,
    SchedulingError,
    StateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES: Dict[Type[SchedulingError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    ConcurrencyError: status.HTTP_503_SERVICE_UNAVAILABLE,
    DeadlineExceededError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def _flatten_detail(detail: Any) -> str:
    """Convert arbitrary exception detail payloads into a string message."""
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        if "detail" in detail:
            nested = detail["detail"]
            if isinstance(nested, str):
                return nested
        return "; ".join(f"{key}: {value}" for key, value in detail.items())
    if isinstance(detail, Iterable) and not isinstance(detail, (bytes, bytearray)):
        return "; ".join(_flatten_detail(item) for item in detail)
    if detail is None:
        return "An error occurred"
    return str(detail)


def status_code_for(exc: SchedulingError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _STATUS_CODES:
            return _STATUS_CODES[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Register FastAPI exception handlers that return a normalized JSON payload."""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):  # type: ignore[override]
        detail = _flatten_detail(exc.detail)
        response = JSONResponse(status_code=exc.status_code, content={"detail": detail})

        if exc.headers:
            for key, value in exc.headers.items():
                response.headers[key] = value

        return response

    @app.exception_handler(SchedulingError)
    async def scheduling_exception_handler(
        request: Request, exc: SchedulingError
    ) -> JSONResponse:  # type: ignore[override]
        status_code = status_code_for(exc)
        if exc.retryable:
            logger.warning(
                "Retryable %s on %s %s: %s", exc.code, request.method, request.url, exc.message
            )
        response = JSONResponse(status_code=status_code, content=exc.to_payload())
        if isinstance(exc, ConcurrencyError):
            response.headers["Retry-After"] = "1"
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:  # type: ignore[override]
        messages = []
        for error in exc.errors():
            location = [str(loc) for loc in error.get("loc", []) if loc != "body"]
            message = error.get("msg", "Invalid input")
            if location:
                messages.append(f"{'.'.join(location)}: {message}")
            else:
                messages.append(message)

        detail = "; ".join(messages) if messages else "Invalid request"
        return JSONResponse(status_code=422, content={"detail": detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:  # type: ignore[override]
        logger.exception(
            "Unhandled exception while processing %s %s", request.method, request.url
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


__all__ = ["register_exception_handlers", "status_code_for"]
