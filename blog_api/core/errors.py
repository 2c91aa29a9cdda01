"""
Error taxonomy and the JSON response envelope.

Every response body has the shape

    {"success": true,  "data": ..., "message": "..."}
    {"success": false, "error": {"code": "...", "message": "...", "details": ...}}

Services raise `AppError` subclasses; `install_exception_handlers` maps those,
request validation failures, database errors and anything unexpected onto the
error envelope.
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .retry import is_retryable_error

logger = logging.getLogger(__name__)


class AppError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.headers = headers
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ValidationFailed(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401


class RateLimitExceeded(AppError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429


def ok(data: Any = None, *, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_body(code, message, details)),
        headers=headers,
    )


def _field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    fields: dict[str, list[str]] = {}
    for err in exc.errors():
        # loc is ("body", "layout", "type") / ("query", "limit") / ...
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        field = ".".join(loc) or "request"
        fields.setdefault(field, []).append(str(err.get("msg") or "Invalid value"))
    return fields


async def _app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    return _error_response(exc.status_code, exc.code, exc.message, exc.details, exc.headers)


async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(422, "VALIDATION_ERROR", "Validation failed", {"fields": _field_errors(exc)})


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _error_response(404, "NOT_FOUND", f"Route {request.method} {request.url.path} not found")
    if exc.status_code == 405:
        return _error_response(405, "METHOD_NOT_ALLOWED", str(exc.detail))
    return _error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    settings = get_settings()
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)

    if isinstance(exc, asyncpg.PostgresError) or is_retryable_error(exc):
        details = {"message": str(exc)} if settings.is_development else None
        return _error_response(500, "DATABASE_ERROR", "Database operation failed", details)

    message = "An internal server error occurred" if settings.is_production else str(exc)
    details = {"type": type(exc).__name__} if settings.is_development else None
    return _error_response(500, "INTERNAL_ERROR", message, details)


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
