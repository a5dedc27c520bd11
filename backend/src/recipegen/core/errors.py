from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base for every error rendered as ``{"error", "code"?, "details"?}``."""

    status_code: int = 500
    default_message: str = "Something went wrong!"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Any = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationFailed(ApiError):
    status_code = 401
    default_message = "Authentication required"


class PermissionDenied(ApiError):
    status_code = 403
    default_message = "Invalid token"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class UpstreamError(ApiError):
    """Database or AI dependency failed."""

    status_code = 500
    default_message = "Upstream service error"


class ParseError(ApiError):
    status_code = 500
    default_message = "Failed to parse AI response"

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        kwargs.setdefault("code", "PARSE_ERROR")
        super().__init__(message, **kwargs)


def error_body(message: str, code: Optional[str] = None, details: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if code:
        body["code"] = code
    if details is not None and get_settings().is_development:
        body["details"] = details
    return body


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (code=%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, exc.details),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = None
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = None if isinstance(exc.detail, str) else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, code, details),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        problems.append({"field": loc, "message": err.get("msg", "")})
    first = problems[0] if problems else None
    message = f"Invalid value for '{first['field']}': {first['message']}" if first and first["field"] else "Invalid request"
    return JSONResponse(status_code=400, content=error_body(message, "VALIDATION_ERROR", problems))


async def _database_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content=error_body("Database connection failed", "DATABASE_UNAVAILABLE", str(exc.orig)),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Something went wrong!", details=str(exc)))


def register_error_handlers(application: FastAPI) -> None:
    application.add_exception_handler(ApiError, _api_error_handler)
    application.add_exception_handler(StarletteHTTPException, _http_error_handler)
    application.add_exception_handler(RequestValidationError, _validation_error_handler)
    application.add_exception_handler(OperationalError, _database_error_handler)
    application.add_exception_handler(Exception, _unhandled_error_handler)
