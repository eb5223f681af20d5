"""Bearer-token authentication.

Tokens are HS256 JWTs whose ``sub`` is the user id. Each request resolves
its own identity through these dependencies; nothing is kept globally.
"""
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import fetch_one, get_db, parse_uuid
from core.errors import (
    AppError,
    AuthErrorMapper,
    Err,
    ErrorCode,
    Ok,
    Result,
    raise_error,
    raise_result,
    token_invalid,
    token_missing,
)
from core.logging import auth_logger
from models.user import User

log = auth_logger()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

_auth_mapper = AuthErrorMapper("auth.token")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode({**data, "exp": expire}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Result[UUID, AppError]:
    """Verify ``token`` and return the user id it was issued for."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except Exception as e:
        return Err(_auth_mapper.map_exception(e))

    subject = payload.get("sub")
    if not subject:
        return token_invalid("missing subject", origin="auth.token")
    parsed = parse_uuid(subject, field="sub", origin="auth.token")
    if parsed.is_err():
        return token_invalid("malformed subject", origin="auth.token")
    return Ok(parsed.unwrap())


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UUID:
    """Dependency: the authenticated user's id, or a 401 error response."""
    if credentials is None or not credentials.credentials:
        raise_error(token_missing(origin="auth.dependency").error)
    result = decode_access_token(credentials.credentials)
    if result.is_err():
        log.info("token_rejected", error_code=result.unwrap_err().code.name)
    return raise_result(result)


async def get_current_user(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency: the authenticated User row.

    A valid token for a user that no longer exists is rejected as invalid.
    """
    result = await fetch_one(db, User, user_id, "User")
    # End the lookup transaction: on SQLite it holds the write lock, and
    # handlers may await the AI provider before their own unit of work.
    if result.is_ok():
        await db.commit()
    else:
        await db.rollback()
    if result.is_err() and result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND:
        raise_error(token_invalid("unknown user", origin="auth.dependency").error)
    return raise_result(result)
