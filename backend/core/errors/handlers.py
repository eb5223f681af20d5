"""FastAPI Exception Handlers

Bridges the Result-based engines to HTTP: routes call ``raise_result`` and
the handlers here render ``AppError.to_dict()`` with the mapped status.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging import get_logger

from .boundaries import ValidationErrorMapper
from .types import AppError, ErrorCode, ErrorContext, Result, T

log = get_logger("errors.handlers")

_validation_mapper = ValidationErrorMapper()


class AppErrorException(Exception):
    """Exception wrapper for AppError.

    Raised from dependencies and routes, which cannot return a Result.
    """

    def __init__(self, error: AppError):
        self.error = error
        super().__init__(str(error))


def result_to_response(error: AppError) -> JSONResponse:
    """Log an AppError and render it as a JSONResponse."""
    status_code = error.code.http_status

    log_method = log.warning if status_code < 500 else log.error
    log_method(
        "error_response",
        error_code=error.code.name,
        error_code_num=error.code.value,
        message=error.message,
        category=error.code.category,
        correlation_id=error.context.correlation_id,
        origin=error.context.origin,
        metadata=error.metadata,
        cause=repr(error.cause) if error.cause else None,
    )

    return JSONResponse(status_code=status_code, content=error.to_dict())


async def app_error_handler(request: Request, exc: AppErrorException) -> JSONResponse:
    error = exc.error.with_context(
        request_id=request.headers.get("X-Request-ID"),
        correlation_id=request.headers.get("X-Correlation-ID"),
    )
    return result_to_response(error)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    status_code = exc.status_code
    code_map = {
        400: ErrorCode.E2000_VALIDATION_GENERIC,
        401: ErrorCode.E3004_NOT_AUTHENTICATED,
        403: ErrorCode.E3000_AUTH_GENERIC,
        404: ErrorCode.E4010_NOT_FOUND,
        405: ErrorCode.E2000_VALIDATION_GENERIC,
        422: ErrorCode.E2000_VALIDATION_GENERIC,
        429: ErrorCode.E1013_PROVIDER_RATE_LIMITED,
    }
    code = code_map.get(status_code, ErrorCode.E9001_UNEXPECTED_ERROR)

    error = AppError(
        code=code,
        message=str(exc.detail) if exc.detail else f"HTTP {status_code}",
        context=ErrorContext(origin="http"),
    ).with_context(correlation_id=request.headers.get("X-Correlation-ID"))

    response = result_to_response(error)
    response.status_code = status_code
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as E2xxx errors (HTTP 400)."""
    error = _validation_mapper.collapse(list(exc.errors())).with_context(
        correlation_id=request.headers.get("X-Correlation-ID"),
        request_id=request.headers.get("X-Request-ID"),
    )
    return result_to_response(error)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, answer with a generic message."""
    error = AppError(
        code=ErrorCode.E9001_UNEXPECTED_ERROR,
        message="An unexpected error occurred",
        context=ErrorContext(origin="unhandled"),
        cause=exc,
    ).with_context(correlation_id=request.headers.get("X-Correlation-ID"))

    log.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        correlation_id=error.context.correlation_id,
    )
    return result_to_response(error)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppErrorException, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


def raise_error(error: AppError) -> None:
    """Raise AppError as an exception (for code outside the Result flow)."""
    raise AppErrorException(error)


def raise_result(result: Result[T, AppError]) -> T:
    """Return the Ok value, or raise the Err as AppErrorException.

    Usage:
        entry = raise_result(await repo.find_by_id(entry_id, user.id))
    """
    if result.is_err():
        raise AppErrorException(result.unwrap_err())
    return result.unwrap()
