import asyncio
import uuid

from sqlalchemy import select

from core.config import Settings
from core.database import parse_uuid
from core.errors import ErrorCode
from models.user import User


async def test_sessions_that_read_before_writing_take_turns(session_factory, user):
    async def touch(n):
        async with session_factory() as session:
            stored = (await session.execute(select(User).where(User.id == user.id))).scalar_one()
            await asyncio.sleep(0)
            stored.total_corpus = n
            await session.commit()

    await asyncio.gather(*(touch(n) for n in range(1, 6)))

    async with session_factory() as session:
        assert (await session.get(User, user.id)).total_corpus in range(1, 6)


def test_parse_uuid():
    value = uuid.uuid4()
    assert parse_uuid(str(value)).unwrap() == value
    assert parse_uuid("12345").unwrap_err().code is ErrorCode.E2011_INVALID_IDENTIFIER


def test_settings_ignore_unknown_keys():
    settings = Settings(_env_file=None, DATABASE_BUSY_TIMEOUT=5, NOT_A_SETTING="x")
    assert settings.DATABASE_BUSY_TIMEOUT == 5
    assert not hasattr(settings, "NOT_A_SETTING")
    assert settings.model_config["env_file"] == ".env"
