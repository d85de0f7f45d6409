"""Exception handlers rendering every failure as ``{"error": {...}}``."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from solarcrm.core.config import get_config
from solarcrm.core.exceptions import SolarCRMException
from solarcrm.core.logging import LogContext, build_log_event

logger = logging.getLogger(__name__)

HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    422: "PRECONDITION_FAILED",
}

GENERIC_MESSAGE = "Internal server error"


def error_response(status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> JSONResponse:
    body: dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content={"error": body})


def _context(request: Request) -> LogContext:
    return LogContext.from_request(request)


async def handle_domain_error(request: Request, exc: SolarCRMException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "api.request.failed",
            extra=build_log_event("api.request.failed", _context(request), code=exc.code, error=exc.message),
        )
        message = exc.message if get_config().EXPOSE_ERROR_DETAILS else GENERIC_MESSAGE
        if exc.code == "STORAGE_ERROR":
            message = exc.message
        return error_response(exc.status_code, exc.code, message)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_STATUS_CODES.get(exc.status_code, "INTERNAL_ERROR" if exc.status_code >= 500 else "BAD_REQUEST")
    return error_response(exc.status_code, code, str(exc.detail))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return error_response(400, "VALIDATION_ERROR", "Invalid request data", {"errors": errors})


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(
        "api.database.failed",
        extra=build_log_event("api.database.failed", _context(request), error=str(exc)),
    )
    message = str(exc) if get_config().EXPOSE_ERROR_DETAILS else GENERIC_MESSAGE
    return error_response(500, "INTERNAL_ERROR", message)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "api.request.unhandled",
        extra=build_log_event("api.request.unhandled", _context(request), error_type=type(exc).__name__),
    )
    message = str(exc) if get_config().EXPOSE_ERROR_DETAILS else GENERIC_MESSAGE
    return error_response(500, "INTERNAL_ERROR", message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SolarCRMException, handle_domain_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
