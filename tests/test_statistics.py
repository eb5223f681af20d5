import uuid

from core.errors import ErrorCode
from engines.corpus import CorpusRepository
from engines.opinions import OpinionRepository
from engines.statistics import recompute_statistics
from models.corpus import CorpusEntry
from models.opinion import OpinionEntry
from models.user import User


def totals(stats):
    return stats.total_corpus, stats.total_vocabulary, stats.total_opinions


async def seed(db, owner_id):
    corpus = CorpusRepository(db)
    opinions = OpinionRepository(db)
    first = (await corpus.create(CorpusEntry(
        owner_id=owner_id,
        content="One",
        vocabulary=[{"word": "a"}, {"word": "b"}],
    ))).unwrap()
    await corpus.create(CorpusEntry(owner_id=owner_id, content="Two", vocabulary=[{"word": "c"}]))
    await opinions.create(OpinionEntry(owner_id=owner_id, source_id=first.id, content="View", theme="Society"))
    await db.commit()


async def test_recompute_counts_from_source_rows(db, user):
    await seed(db, user.id)
    stats = (await recompute_statistics(db, user.id)).unwrap()
    assert totals(stats) == (2, 3, 1)
    assert stats.last_active is not None


async def test_recompute_is_idempotent(db, user):
    await seed(db, user.id)
    first = (await recompute_statistics(db, user.id)).unwrap()
    second = (await recompute_statistics(db, user.id)).unwrap()
    assert totals(first) == totals(second)


async def test_recompute_ignores_other_owners(db, user, other_user):
    await seed(db, other_user.id)
    stats = (await recompute_statistics(db, user.id)).unwrap()
    assert totals(stats) == (0, 0, 0)


async def test_unknown_user(db):
    result = await recompute_statistics(db, uuid.uuid4())
    assert result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND


async def test_refresher_commits_in_its_own_session(refresher, session_factory, user):
    async with session_factory() as session:
        await seed(session, user.id)

    await refresher.schedule(user.id)

    async with session_factory() as session:
        stored = await session.get(User, user.id)
        assert stored.total_corpus == 2
        assert stored.total_vocabulary == 3


async def test_refresher_swallows_failures(refresher):
    await refresher.refresh(uuid.uuid4())
    assert refresher.pending == 0
