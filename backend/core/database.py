"""Database Module

Async engine/session management plus small Result-returning helpers.
The ingest path relies on SAVEPOINTs, so SQLite connections are put into
driver-level autocommit and SQLAlchemy emits BEGIN IMMEDIATE itself.
Sessions that go on to wait for the AI provider must end their
transaction first, since an open one holds the SQLite write lock.
"""
from datetime import datetime, timezone
from typing import AsyncIterator, TypeVar
from uuid import UUID as PyUUID

from sqlalchemy import event
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import CHAR, TypeDecorator

from core.config import settings
from core.errors import AppError, DatabaseErrorMapper, Err, Ok, Result, invalid_uuid, not_found

T = TypeVar("T")


class GUID(TypeDecorator):
    """Platform-agnostic GUID type.

    PostgreSQL's native UUID when available, otherwise CHAR(32) hex.
    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(32))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name == "postgresql":
            return value
        if isinstance(value, PyUUID):
            return value.hex
        return PyUUID(value).hex

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, PyUUID):
            return value
        return PyUUID(value)


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    # pysqlite/aiosqlite begin transactions lazily and break SAVEPOINT;
    # take over transaction control from the driver.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    # IMMEDIATE takes the write lock up front. A deferred transaction that
    # reads and then writes cannot wait for a concurrent writer and fails
    # with "database is locked" instead of honoring the busy timeout.
    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine for ``url`` with backend-appropriate options."""
    engine_kwargs = {"echo": settings.LOG_SQL, **kwargs}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        engine_kwargs.setdefault("connect_args", {"timeout": settings.DATABASE_BUSY_TIMEOUT})
    else:
        engine_kwargs.setdefault("pool_pre_ping", True)
        engine_kwargs.setdefault("pool_size", 5)
        engine_kwargs.setdefault("max_overflow", 10)

    engine = create_async_engine(url, **engine_kwargs)
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = build_session_factory(engine)

Base = declarative_base()

_db_mapper = DatabaseErrorMapper("database")


def utc_now() -> datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_uuid(value: str | PyUUID, field: str = "id", origin: str = "") -> Result[PyUUID, AppError]:
    """Parse an identifier; malformed input is E2011, never not-found."""
    if isinstance(value, PyUUID):
        return Ok(value)
    try:
        return Ok(PyUUID(str(value)))
    except (TypeError, ValueError):
        return invalid_uuid(str(value), field=field, origin=origin)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""
    async with AsyncSessionLocal() as session:
        yield session


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def fetch_one(
    session: AsyncSession,
    model: type[T],
    id: PyUUID,
    entity_name: str | None = None,
) -> Result[T, AppError]:
    """Fetch a single entity by primary key."""
    name = entity_name or model.__name__
    try:
        entity = await session.get(model, id)
    except SQLAlchemyError as e:
        return Err(_db_mapper.map_exception(e))
    if entity is None:
        return not_found(name, id, origin="database.fetch_one")
    return Ok(entity)
