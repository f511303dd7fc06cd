"""Uniform JSON envelope for every API response.

Success: ``{"success": true, "data": ...}``
Failure: ``{"success": false, "error": "...", "code": "..."}``
"""
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rastuci.utils.logs import get_logger

logger = get_logger(__name__)

STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code or STATUS_CODES.get(status_code, "ERROR")
        self.details = details


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def fail(message: str, status_code: int = 400, code: Optional[str] = None, details: Any = None) -> JSONResponse:
    body = {"success": False, "error": message, "code": code or STATUS_CODES.get(status_code, "ERROR")}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


async def _api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return fail(exc.message, exc.status_code, exc.code, exc.details)


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return fail(str(exc.detail), exc.status_code)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    issues = [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg")}
        for e in exc.errors()
    ]
    return fail("Datos inválidos", 400, "BAD_REQUEST", {"issues": issues})


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return fail("Error interno del servidor", 500, "INTERNAL_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
