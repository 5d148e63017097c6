"""
HTTP Error Mapping

Every error leaves the API in one envelope:
    {"error": {"code": ..., "message": ..., "details": ...}}
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scheduling_engine.services.errors import (
    InvalidSchedule,
    NotFound,
    SchedulingError,
    Unauthorized,
)

logger = logging.getLogger(__name__)

# Anything not listed is a state conflict
ERROR_STATUS_CODES = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    InvalidSchedule: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def status_code_for(exc: SchedulingError) -> int:
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_409_CONFLICT


def error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details}},
    )


async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    """Render a SchedulingError with its mapped status"""
    return error_response(status_code_for(exc), exc.code, exc.message, exc.details or None)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # "ctx" may hold the raw exception object, which is not JSON serialisable
    details = [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        details,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An internal server error occurred",
        str(exc) if request.app.debug else None,
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(SchedulingError, scheduling_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
