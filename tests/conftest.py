import json

import pytest
from httpx import ASGITransport, AsyncClient

from core.database import Base, build_engine, build_session_factory, get_db
from core.errors import Ok
from core.security import create_access_token, get_password_hash
from engines.analysis import AnalysisEngine, get_analysis_engine
from engines.coordinator import IngestCoordinator
from engines.statistics import StatisticsRefresher, get_statistics_refresher
from engines.tools import TutorToolsEngine, get_tools_engine
from models.user import User


class FakeCompletionClient:
    """Replays scripted replies in order and records what it was sent.

    A ``str`` reply is returned as ``Ok``; an ``Err`` is returned as is; an
    exception instance is raised.
    """

    def __init__(self, *replies, configured: bool = True):
        self.replies = list(replies)
        self.calls: list[dict] = []
        self.configured = configured

    async def complete(self, messages, *, temperature, max_tokens, json_mode=False):
        self.calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
        })
        assert self.replies, "completion called more times than scripted"
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return Ok(reply)
        return reply


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def analysis_reply(**overrides) -> str:
    payload = {
        "vocabulary": [
            {
                "word": "gig economy",
                "meaning": "零工经济",
                "originalSentence": "The gig economy is reshaping work.",
                "collocation": "the rise of the gig economy",
                "reason": "Core topic term",
                "usageScenario": "Discussing labour markets",
            }
        ],
        "themes": {"primary": "Work & Economy", "secondary": ["Society"], "custom": ["Platform work"]},
        "tags": ["labour", "technology"],
        "summary": "Platforms are changing how people work.",
        "translation": "零工经济正在重塑工作。",
        "opinion": {
            "coreViewpoint": "Gig work trades security for flexibility.",
            "supportingEvidence": ["Drivers lack sick pay", "Hours are self-chosen"],
            "criticalQuestion": "Who bears the risk?",
            "counterargument": "Many workers value flexibility over benefits.",
        },
    }
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


@pytest.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'corpora-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def refresher(session_factory):
    return StatisticsRefresher(session_factory)


@pytest.fixture
def coordinator(db, refresher):
    return IngestCoordinator(db, refresher)


async def create_user(session_factory, username: str = "reader", password: str = "secret123") -> User:
    async with session_factory() as session:
        user = User(username=username, hashed_password=get_password_hash(password))
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
async def user(session_factory):
    return await create_user(session_factory)


@pytest.fixture
async def other_user(session_factory):
    return await create_user(session_factory, username="someone-else")


@pytest.fixture
def completion():
    return FakeCompletionClient()


@pytest.fixture
def analysis_engine(completion):
    return AnalysisEngine(completion, timeout_seconds=5, sleep=RecordingSleep())


@pytest.fixture
def tools_engine(completion):
    return TutorToolsEngine(completion, timeout_seconds=5)


@pytest.fixture
async def client(session_factory, refresher, analysis_engine, tools_engine):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def drain_refreshes(response):
        await refresher.drain()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_statistics_refresher] = lambda: refresher
    app.dependency_overrides[get_analysis_engine] = lambda: analysis_engine
    app.dependency_overrides[get_tools_engine] = lambda: tools_engine

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        event_hooks={"response": [drain_refreshes]},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
