"""Monadic Error Handling

Engines and repositories return ``Result[T, AppError]`` (``Ok | Err``).
Routes unwrap with ``raise_result``; registered handlers render the error.

Usage:
    from core.errors import Ok, Result, AppError, not_found

    async def find(entry_id) -> Result[CorpusEntry, AppError]:
        entry = await db.get(CorpusEntry, entry_id)
        if entry is None:
            return not_found("CorpusEntry", entry_id, origin="corpus_repository")
        return Ok(entry)
"""
from .types import (
    Result,
    Ok,
    Err,
    AppError,
    ErrorCode,
    ErrorContext,
    from_exception,
)

from .builders import (
    # Provider / network (E1xxx)
    network_error,
    connection_reset,
    timeout_error,
    external_service_unavailable,
    rate_limited,
    provider_auth_failed,
    response_malformed,
    # Validation (E2xxx)
    validation_error,
    empty_content,
    invalid_uuid,
    # Auth (E3xxx)
    auth_error,
    invalid_credentials,
    token_expired,
    token_invalid,
    token_missing,
    # Persistence (E4xxx)
    db_error,
    not_found,
    duplicate_key,
    db_connection_failed,
    transaction_failed,
    # Internal (E9xxx)
    internal_error,
)

from .boundaries import (
    ErrorMapper,
    DatabaseErrorMapper,
    AuthErrorMapper,
    ValidationErrorMapper,
    map_errors,
    map_db_errors,
)

from .handlers import (
    AppErrorException,
    register_error_handlers,
    result_to_response,
    raise_error,
    raise_result,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "AppError",
    "ErrorCode",
    "ErrorContext",
    "from_exception",
    "network_error",
    "connection_reset",
    "timeout_error",
    "external_service_unavailable",
    "rate_limited",
    "provider_auth_failed",
    "response_malformed",
    "validation_error",
    "empty_content",
    "invalid_uuid",
    "auth_error",
    "invalid_credentials",
    "token_expired",
    "token_invalid",
    "token_missing",
    "db_error",
    "not_found",
    "duplicate_key",
    "db_connection_failed",
    "transaction_failed",
    "internal_error",
    "ErrorMapper",
    "DatabaseErrorMapper",
    "AuthErrorMapper",
    "ValidationErrorMapper",
    "map_errors",
    "map_db_errors",
    "AppErrorException",
    "register_error_handlers",
    "result_to_response",
    "raise_error",
    "raise_result",
]
