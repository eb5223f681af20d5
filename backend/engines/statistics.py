"""User Statistics

The counters on the user row are a cache. They are recomputed from the
corpus and opinion tables, never incremented, and refreshed in a
background task after writes. Readers must not assume they are exact.
"""
import asyncio
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.database import AsyncSessionLocal, utc_now
from core.errors import AppError, Ok, Result, map_db_errors, not_found
from core.logging import engine_logger
from models.corpus import CorpusEntry
from models.opinion import OpinionEntry
from models.user import User, UserStatistics

log = engine_logger()

ORIGIN = "statistics"


@map_db_errors(ORIGIN)
async def recompute_statistics(db: AsyncSession, user_id: UUID) -> Result[UserStatistics, AppError]:
    """Overwrite the user's counters from source-of-truth counts. Flushes only."""
    user = await db.get(User, user_id)
    if user is None:
        return not_found("User", user_id, origin=ORIGIN)

    corpus_total, vocabulary_total = (await db.execute(
        select(func.count(CorpusEntry.id), func.coalesce(func.sum(CorpusEntry.vocabulary_count), 0))
        .where(CorpusEntry.owner_id == user_id, CorpusEntry.archived.is_(False))
    )).one()
    opinions_total = (await db.execute(
        select(func.count(OpinionEntry.id))
        .where(OpinionEntry.owner_id == user_id, OpinionEntry.archived.is_(False))
    )).scalar_one()

    user.total_corpus = corpus_total
    user.total_vocabulary = int(vocabulary_total)
    user.total_opinions = opinions_total
    user.last_active = utc_now()
    await db.flush()
    return Ok(user.statistics)


class StatisticsRefresher:
    """Fire-and-forget recomputation, each run in its own session.

    Failures are logged and never reach the request that scheduled them.
    """

    __slots__ = ("_session_factory", "_tasks")

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or AsyncSessionLocal
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, user_id: UUID) -> asyncio.Task:
        task = asyncio.create_task(self.refresh(user_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def refresh(self, user_id: UUID) -> None:
        try:
            async with self._session_factory() as db:
                result = await recompute_statistics(db, user_id)
                if result.is_err():
                    error = result.unwrap_err()
                    log.warning(
                        "statistics_refresh_failed",
                        user_id=str(user_id),
                        error_code=error.code.name,
                        message=error.message,
                    )
                    await db.rollback()
                    return
                await db.commit()
        except Exception:
            log.exception("statistics_refresh_crashed", user_id=str(user_id))
            return
        log.debug("statistics_refreshed", user_id=str(user_id))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled refresh (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_refresher: StatisticsRefresher | None = None


def get_statistics_refresher() -> StatisticsRefresher:
    """Get or create the process-wide refresher."""
    global _refresher
    if _refresher is None:
        _refresher = StatisticsRefresher()
    return _refresher
