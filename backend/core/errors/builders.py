"""Error Builders

Ergonomic constructors for the error kinds the corpus service surfaces.
Each returns ``Err[AppError]`` so callers can ``return`` it directly.
"""
from uuid import UUID

from .types import AppError, ErrorCode, ErrorContext, Err


# =============================================================================
# Provider / Network Errors (E1xxx)
# =============================================================================

def network_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E1000_NETWORK_GENERIC,
    status_code: int | None = None,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    """Create provider/network error."""
    meta = {"status_code": status_code, **metadata}
    return Err(AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin),
        metadata={k: v for k, v in meta.items() if v is not None},
        cause=cause,
    ))


def connection_reset(service: str, origin: str = "", cause: Exception | None = None) -> Err[AppError]:
    return network_error(
        f"Connection to '{service}' was reset",
        code=ErrorCode.E1001_CONNECTION_RESET,
        origin=origin,
        cause=cause,
        service=service,
    )


def timeout_error(
    operation: str, timeout_seconds: float, origin: str = ""
) -> Err[AppError]:
    return network_error(
        f"Operation '{operation}' timed out after {timeout_seconds}s",
        code=ErrorCode.E1002_TIMEOUT,
        origin=origin,
        operation=operation,
        timeout_seconds=timeout_seconds,
    )


def external_service_unavailable(
    service: str, reason: str = "", origin: str = "", status_code: int | None = None
) -> Err[AppError]:
    msg = f"External service '{service}' unavailable"
    if reason:
        msg += f": {reason}"
    return network_error(
        msg,
        code=ErrorCode.E1010_PROVIDER_UNAVAILABLE,
        status_code=status_code,
        origin=origin,
        service=service,
    )


def rate_limited(
    service: str, retry_after: float | None = None, origin: str = ""
) -> Err[AppError]:
    return network_error(
        f"Rate limited by '{service}'",
        code=ErrorCode.E1013_PROVIDER_RATE_LIMITED,
        origin=origin,
        service=service,
        retry_after=retry_after,
    )


def provider_auth_failed(service: str, reason: str = "", origin: str = "") -> Err[AppError]:
    msg = f"Authentication with '{service}' failed"
    if reason:
        msg += f": {reason}"
    return network_error(
        msg,
        code=ErrorCode.E1014_PROVIDER_AUTH_FAILED,
        origin=origin,
        service=service,
    )


def response_malformed(reason: str, origin: str = "", **metadata) -> Err[AppError]:
    return network_error(
        f"AI response could not be parsed: {reason}",
        code=ErrorCode.E1015_RESPONSE_MALFORMED,
        origin=origin,
        **metadata,
    )


# =============================================================================
# Validation Errors (E2xxx)
# =============================================================================

def validation_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E2000_VALIDATION_GENERIC,
    field: str | None = None,
    value: str | None = None,
    origin: str = "",
    **metadata,
) -> Err[AppError]:
    """Create validation error."""
    meta = {"field": field, "value": value, **metadata}
    return Err(AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin),
        metadata={k: v for k, v in meta.items() if v is not None},
    ))


def empty_content(field: str = "content", origin: str = "") -> Err[AppError]:
    return validation_error(
        f"'{field}' must not be empty",
        code=ErrorCode.E2006_EMPTY_CONTENT,
        field=field,
        origin=origin,
    )


def invalid_uuid(value: str, field: str = "id", origin: str = "") -> Err[AppError]:
    return validation_error(
        f"Invalid identifier format for '{field}': '{value}'",
        code=ErrorCode.E2011_INVALID_IDENTIFIER,
        field=field,
        value=value,
        origin=origin,
    )


# =============================================================================
# Authentication Errors (E3xxx)
# =============================================================================

def auth_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E3000_AUTH_GENERIC,
    user_id: str | None = None,
    origin: str = "",
    **metadata,
) -> Err[AppError]:
    return Err(AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin, user_id=user_id),
        metadata=metadata,
    ))


def invalid_credentials(origin: str = "") -> Err[AppError]:
    return auth_error(
        "Invalid username or password",
        code=ErrorCode.E3001_INVALID_CREDENTIALS,
        origin=origin,
    )


def token_expired(origin: str = "") -> Err[AppError]:
    return auth_error(
        "Authentication token has expired",
        code=ErrorCode.E3002_TOKEN_EXPIRED,
        origin=origin,
    )


def token_invalid(reason: str = "", origin: str = "") -> Err[AppError]:
    msg = "Invalid authentication token"
    if reason:
        msg += f": {reason}"
    return auth_error(msg, code=ErrorCode.E3003_TOKEN_INVALID, origin=origin)


def token_missing(origin: str = "") -> Err[AppError]:
    return auth_error(
        "Authentication required",
        code=ErrorCode.E3004_NOT_AUTHENTICATED,
        origin=origin,
    )


# =============================================================================
# Persistence Errors (E4xxx)
# =============================================================================

def db_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E4000_PERSISTENCE_GENERIC,
    table: str | None = None,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    """Create persistence error."""
    meta = {"table": table, **metadata}
    return Err(AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin),
        metadata={k: v for k, v in meta.items() if v is not None},
        cause=cause,
    ))


def not_found(
    entity: str,
    id: str | UUID | None = None,
    origin: str = "",
) -> Err[AppError]:
    msg = f"{entity} not found"
    if id:
        msg += f": {id}"
    return db_error(
        msg,
        code=ErrorCode.E4010_NOT_FOUND,
        entity=entity,
        entity_id=str(id) if id else None,
        origin=origin,
    )


def duplicate_key(entity: str, field: str, value: str, origin: str = "") -> Err[AppError]:
    return db_error(
        f"{entity} with {field}='{value}' already exists",
        code=ErrorCode.E4011_DUPLICATE_KEY,
        entity=entity,
        field=field,
        origin=origin,
    )


def db_connection_failed(reason: str = "", origin: str = "") -> Err[AppError]:
    msg = "Database connection failed"
    if reason:
        msg += f": {reason}"
    return db_error(msg, code=ErrorCode.E4001_CONNECTION_FAILED, origin=origin)


def transaction_failed(reason: str = "", origin: str = "", cause: Exception | None = None) -> Err[AppError]:
    msg = "Database transaction failed"
    if reason:
        msg += f": {reason}"
    return db_error(msg, code=ErrorCode.E4003_TRANSACTION_FAILED, origin=origin, cause=cause)


# =============================================================================
# Internal Errors (E9xxx)
# =============================================================================

def internal_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E9001_UNEXPECTED_ERROR,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    return Err(AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin),
        metadata=metadata,
        cause=cause,
    ))
