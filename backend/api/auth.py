"""Authentication API

Registration, login and profile management. Tokens are bearer JWTs; every
other router resolves the caller through ``get_current_user``.
"""
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db, utc_now
from core.errors import duplicate_key, invalid_credentials, raise_error, validation_error
from core.logging import auth_logger
from core.security import create_access_token, get_current_user, get_password_hash, verify_password
from engines.schemas import CamelModel
from engines.statistics import StatisticsRefresher, get_statistics_refresher
from models.user import User

router = APIRouter()
log = auth_logger()


class UserCreate(CamelModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    email: EmailStr | None = None


class LoginRequest(CamelModel):
    username: str
    password: str


class ProfileUpdate(CamelModel):
    email: EmailStr | None = None
    current_password: str | None = None
    new_password: str | None = Field(default=None, min_length=6)


class StatisticsResponse(CamelModel):
    total_corpus: int
    total_vocabulary: int
    total_opinions: int
    last_active: datetime | None


class UserResponse(CamelModel):
    id: UUID
    username: str
    email: str | None
    statistics: StatisticsResponse
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        stats = user.statistics
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            statistics=StatisticsResponse(
                total_corpus=stats.total_corpus,
                total_vocabulary=stats.total_vocabulary,
                total_opinions=stats.total_opinions,
                last_active=stats.last_active,
            ),
            created_at=user.created_at,
        )


class AuthResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


async def _email_taken(db: AsyncSession, email: str, except_id: UUID | None = None) -> bool:
    query = select(User.id).where(User.email == email)
    if except_id is not None:
        query = query.where(User.id != except_id)
    return (await db.execute(query)).first() is not None


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new account and sign it in."""
    username = user_data.username.strip()
    existing = await db.execute(select(User.id).where(User.username == username))
    if existing.first() is not None:
        raise_error(duplicate_key("User", "username", username, origin="api.auth.register").error)
    if user_data.email and await _email_taken(db, user_data.email):
        raise_error(duplicate_key("User", "email", user_data.email, origin="api.auth.register").error)

    user = User(
        username=username,
        hashed_password=get_password_hash(user_data.password),
        email=user_data.email,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    log.info("user_registered", user_id=str(user.id))
    return AuthResponse(
        access_token=create_access_token({"sub": str(user.id)}),
        user=UserResponse.from_user(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
    refresher: StatisticsRefresher = Depends(get_statistics_refresher),
):
    """Authenticate and return an access token."""
    result = await db.execute(select(User).where(User.username == credentials.username.strip()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        log.info("login_rejected", username=credentials.username)
        raise_error(invalid_credentials(origin="api.auth.login").error)

    refresher.schedule(user.id)
    log.info("user_logged_in", user_id=str(user.id))
    return AuthResponse(
        access_token=create_access_token({"sub": str(user.id)}),
        user=UserResponse.from_user(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """The authenticated user with cached statistics."""
    return UserResponse.from_user(user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    changes: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change email and/or password. A new password needs the current one."""
    if changes.new_password is not None:
        if not changes.current_password or not verify_password(changes.current_password, user.hashed_password):
            raise_error(validation_error(
                "Current password is incorrect",
                field="currentPassword",
                origin="api.auth.profile",
            ).error)
        user.hashed_password = get_password_hash(changes.new_password)

    if "email" in changes.model_fields_set and changes.email != user.email:
        if changes.email and await _email_taken(db, changes.email, except_id=user.id):
            raise_error(duplicate_key("User", "email", changes.email, origin="api.auth.profile").error)
        user.email = changes.email

    user.updated_at = utc_now()
    await db.commit()
    await db.refresh(user)
    log.info("profile_updated", user_id=str(user.id))
    return UserResponse.from_user(user)
