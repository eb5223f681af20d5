"""Error Boundary Mappers

Exceptions from third-party layers (SQLAlchemy, jose, pydantic) are turned
into AppErrors where they cross into application code, so each module
exposes one error type at its boundary.
"""
from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, TypeVar

from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from .types import AppError, ErrorCode, ErrorContext, Err, Ok, Result
from .builders import (
    db_connection_failed,
    duplicate_key,
    internal_error,
    token_expired,
    token_invalid,
    transaction_failed,
)

T = TypeVar("T")


class ErrorMapper(ABC, Generic[T]):
    """Abstract base for error mappers at module boundaries."""

    origin: str

    @abstractmethod
    def map_exception(self, exc: Exception) -> AppError:
        """Map a raised exception to a boundary error."""

    def map_result(self, result: Result[T, AppError]) -> Result[T, AppError]:
        """Stamp the boundary origin onto errors that have none."""
        match result:
            case Ok(_):
                return result
            case Err(e) if not e.context.origin:
                return Err(e.with_context(origin=self.origin))
        return result


class DatabaseErrorMapper(ErrorMapper[T]):
    """Maps SQLAlchemy exceptions to persistence errors."""

    def __init__(self, origin: str = "database"):
        self.origin = origin

    def map_exception(self, exc: Exception) -> AppError:
        if isinstance(exc, IntegrityError):
            return self._map_integrity_error(exc)
        if isinstance(exc, OperationalError):
            return self._map_operational_error(exc)
        if isinstance(exc, SQLAlchemyError):
            return transaction_failed(type(exc).__name__, origin=self.origin, cause=exc).error
        return internal_error(
            f"Database error: {type(exc).__name__}",
            origin=self.origin,
            cause=exc,
        ).error

    def _map_integrity_error(self, exc: IntegrityError) -> AppError:
        message = str(exc.orig) if exc.orig else str(exc)
        lowered = message.lower()

        if "unique constraint" in lowered or "duplicate key" in lowered:
            return duplicate_key("record", "unknown", "unknown", origin=self.origin).error

        code = ErrorCode.E4013_CHECK_CONSTRAINT
        if "foreign key" in lowered:
            code = ErrorCode.E4012_FOREIGN_KEY_VIOLATION
        return AppError(
            code=code,
            message="Constraint violation",
            context=ErrorContext(origin=self.origin),
            metadata={"detail": message[:200]},
            cause=exc,
        )

    def _map_operational_error(self, exc: OperationalError) -> AppError:
        message = str(exc.orig) if exc.orig else str(exc)
        if "connect" in message.lower():
            return db_connection_failed(origin=self.origin).error
        return transaction_failed(origin=self.origin, cause=exc).error


class AuthErrorMapper(ErrorMapper[T]):
    """Maps jose token exceptions to auth errors."""

    def __init__(self, origin: str = "auth"):
        self.origin = origin

    def map_exception(self, exc: Exception) -> AppError:
        if isinstance(exc, ExpiredSignatureError):
            return token_expired(origin=self.origin).error
        if isinstance(exc, JWTError):
            return token_invalid(str(exc), origin=self.origin).error
        return internal_error(
            "Authentication error",
            origin=self.origin,
            cause=exc,
        ).error


class ValidationErrorMapper:
    """Maps pydantic/FastAPI request validation errors to AppErrors."""

    def __init__(self, origin: str = "request_validation"):
        self.origin = origin

    def map_pydantic_errors(self, errors: list[dict]) -> list[AppError]:
        result = []
        for item in errors:
            field = ".".join(str(loc) for loc in item.get("loc", ()))
            msg = item.get("msg", "Validation error")
            err_type = item.get("type", "value_error")

            code = ErrorCode.E2000_VALIDATION_GENERIC
            if err_type == "missing":
                code = ErrorCode.E2001_REQUIRED_FIELD_MISSING
            elif err_type.endswith("_type") or err_type.endswith("_parsing"):
                code = ErrorCode.E2004_INVALID_TYPE
            elif err_type == "value_error":
                code = ErrorCode.E2002_INVALID_FORMAT

            result.append(AppError(
                code=code,
                message=f"{field}: {msg}",
                context=ErrorContext(origin=self.origin),
                metadata={"field": field, "error_type": err_type},
            ))
        return result

    def collapse(self, errors: list[dict]) -> AppError:
        """Fold a list of field errors into one response error."""
        mapped = self.map_pydantic_errors(errors)
        if not mapped:
            return AppError(
                code=ErrorCode.E2000_VALIDATION_GENERIC,
                message="Request validation failed",
                context=ErrorContext(origin=self.origin),
            )
        first = mapped[0]
        return AppError(
            code=first.code,
            message=first.message if len(mapped) == 1 else "Request validation failed",
            context=first.context,
            metadata={"fields": [e.metadata for e in mapped]},
        )


def map_errors(mapper: ErrorMapper[T]):
    """Decorator: convert exceptions raised inside an async Result-returning
    function into ``Err`` via ``mapper``.

    Usage:
        @map_errors(DatabaseErrorMapper("corpus_repository"))
        async def find(...) -> Result[CorpusEntry, AppError]:
            ...
    """
    def decorator(fn: Callable[..., Awaitable[Result[T, AppError]]]):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs) -> Result[T, AppError]:
            try:
                result = await fn(*args, **kwargs)
            except Exception as e:
                return Err(mapper.map_exception(e))
            return mapper.map_result(result)
        return wrapper
    return decorator


def map_db_errors(origin: str = "database"):
    """Convenience decorator for repository methods."""
    return map_errors(DatabaseErrorMapper(origin))
