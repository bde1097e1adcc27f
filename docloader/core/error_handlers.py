"""
Global error handlers registered on the FastAPI application.

Every failure is rendered with the same body shape:

    {
        "error": true,
        "error_code": "WRITE_FAILED",
        "message": "insert_many failed after 6 attempt(s): ...",
        "details": { ... },
        "request_id": "abc-123"
    }
"""

import logging
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docloader.core.exceptions import (
    AppException,
    ConfigurationException,
    StoreException,
)
from docloader.core.logging import get_logger

logger = get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Attach all global exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        request_id = _get_request_id(request)
        logger.log(
            _severity(exc),
            "Load failed",
            extra={
                **_request_context(request, request_id),
                "error_code": exc.error_code,
                "status_code": exc.status_code,
                "error_message": exc.message,
                "details": exc.details,
            },
        )
        body = exc.to_dict()
        body["request_id"] = request_id
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        request_id = _get_request_id(request)
        errors = [
            {
                "field": " → ".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        logger.warning(
            "Request validation failed",
            extra={**_request_context(request, request_id), "validation_errors": errors},
        )
        return _error_response(
            422, "VALIDATION_ERROR", "Request validation failed.", request_id,
            details={"errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        request_id = _get_request_id(request)
        logger.warning(
            "HTTP error",
            extra={**_request_context(request, request_id),
                   "status_code": exc.status_code, "detail": exc.detail},
        )
        return _error_response(exc.status_code, "HTTP_ERROR", str(exc.detail), request_id)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        request_id = _get_request_id(request)
        logger.critical(
            "Unhandled exception",
            extra={
                **_request_context(request, request_id),
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
            },
            exc_info=True,
        )
        return _error_response(
            500, "INTERNAL_ERROR", "An unexpected internal error occurred.", request_id)


# ─── Helpers ──────────────────────────────────────────────────────────


def _severity(exc: AppException) -> int:
    """Configuration and store failures stop a load; mapping problems are the caller's."""
    if isinstance(exc, (ConfigurationException, StoreException)):
        return logging.ERROR
    return logging.WARNING


def _error_response(
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "error": True,
        "error_code": error_code,
        "message": message,
        "request_id": request_id,
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _request_context(request: Request, request_id: str) -> dict[str, str]:
    return {"request_id": request_id, "path": str(request.url), "method": request.method}


def _get_request_id(request: Request) -> str:
    """
    Return the request ID from state (set by middleware) or generate one.
    """
    return getattr(request.state, "request_id", uuid.uuid4().hex)
