import json

from sqlalchemy import func, select

from core.errors import ErrorCode, Ok, map_db_errors, transaction_failed
from engines.coordinator import IngestCoordinator, submission_from_analysis
from engines.corpus import CorpusRepository
from engines.normalizer import normalize_analysis
from engines.opinions import OpinionRepository
from engines.schemas import CorpusSubmission, FileInfo
from models.corpus import CorpusEntry
from models.opinion import OpinionEntry
from models.user import User

from conftest import analysis_reply

GIG_TEXT = "The gig economy is reshaping work. Platforms match drivers with riders."


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class FailingOpinionRepository(OpinionRepository):
    """Inserts an opinion that violates NOT NULL on content."""

    @map_db_errors("test")
    async def create(self, opinion):
        opinion.content = None
        self._db.add(opinion)
        await self._db.flush()
        return Ok(opinion)


class FailingCorpusRepository(CorpusRepository):
    async def create(self, entry):
        return transaction_failed("disk full", origin="test")


class FailingCascadeRepository(OpinionRepository):
    async def delete_all_by_source(self, source_id):
        return transaction_failed("cascade broke", origin="test")


async def test_ingest_analysed_text(db, coordinator, refresher, user):
    analysis = normalize_analysis(json.loads(analysis_reply()), GIG_TEXT)
    submission = submission_from_analysis(GIG_TEXT, analysis, title="Gig work", file_info=FileInfo(name="gig.txt", size=71))

    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()

    assert entry.title == "Gig work"
    assert entry.theme_primary == "Work & Economy"
    assert entry.theme_secondary == ["Society"]
    assert entry.theme_custom == ["Platform work"]
    assert entry.vocabulary_count == 1
    assert entry.vocabulary[0]["collocation"] == "the rise of the gig economy"
    assert entry.file_metadata["filename"] == "gig.txt"
    assert entry.word_count == len(GIG_TEXT.split())

    opinion = (await db.execute(select(OpinionEntry))).scalar_one()
    assert opinion.source_id == entry.id
    assert opinion.content == "Gig work trades security for flexibility."
    assert opinion.theme == "Work & Economy"
    assert opinion.sub_themes == ["Society"]
    assert opinion.tags == ["labour", "technology"]
    assert opinion.supporting_facts == ["Drivers lack sick pay", "Hours are self-chosen"]


async def test_ingest_without_viewpoint_creates_no_opinion(db, coordinator, refresher, user):
    submission = CorpusSubmission.model_validate({"content": "Just a note", "opinion": {"coreViewpoint": "  "}})
    assert (await coordinator.ingest(user.id, submission)).is_ok()
    await refresher.drain()
    assert await count(db, OpinionEntry) == 0


async def test_title_falls_back_to_filename_then_untitled(coordinator, refresher, user):
    from_file = CorpusSubmission.model_validate({"content": "Body", "fileInfo": {"name": "notes.md"}})
    untitled = CorpusSubmission.model_validate({"content": "Body"})
    assert (await coordinator.ingest(user.id, from_file)).unwrap().title == "notes.md"
    await refresher.drain()
    assert (await coordinator.ingest(user.id, untitled)).unwrap().title == "Untitled document"
    await refresher.drain()


async def test_raw_text_is_used_when_content_missing(coordinator, refresher, user):
    submission = CorpusSubmission.model_validate({"rawText": "Pasted article text"})
    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()
    assert entry.content == "Pasted article text"


async def test_legacy_theme_array_round_trips(coordinator, refresher, user):
    submission = CorpusSubmission.model_validate({
        "content": "Schools and screens",
        "themes": ["Education", "Technology"],
    })
    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()
    assert entry.themes == {"primary": "Education", "secondary": ["Technology"], "custom": []}


async def test_missing_owner_and_empty_content(coordinator, user):
    missing_owner = await coordinator.ingest(None, CorpusSubmission(content="text"))
    assert missing_owner.unwrap_err().code is ErrorCode.E3004_NOT_AUTHENTICATED

    empty = await coordinator.ingest(user.id, CorpusSubmission(content=" ", raw_text=""))
    assert empty.unwrap_err().code is ErrorCode.E2006_EMPTY_CONTENT


async def test_opinion_failure_keeps_corpus_entry(db, refresher, user):
    coordinator = IngestCoordinator(db, refresher, opinions=FailingOpinionRepository(db))
    submission = CorpusSubmission.model_validate({
        "content": "Cities after remote work",
        "opinion": {"coreViewpoint": "Downtowns must reinvent themselves"},
    })

    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()

    assert entry.content == "Cities after remote work"
    assert await count(db, CorpusEntry) == 1
    assert await count(db, OpinionEntry) == 0


async def test_corpus_failure_creates_nothing(db, refresher, user):
    coordinator = IngestCoordinator(db, refresher, corpus=FailingCorpusRepository(db))
    submission = CorpusSubmission.model_validate({
        "content": "Anything",
        "opinion": {"coreViewpoint": "Never stored"},
    })

    result = await coordinator.ingest(user.id, submission)
    assert result.unwrap_err().code is ErrorCode.E4003_TRANSACTION_FAILED
    assert refresher.pending == 0
    assert await count(db, CorpusEntry) == 0
    assert await count(db, OpinionEntry) == 0


async def test_delete_cascades_to_opinions(db, coordinator, refresher, user):
    submission = CorpusSubmission.model_validate({"content": "Text", "opinion": {"coreViewpoint": "View"}})
    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()

    assert (await coordinator.delete_corpus(str(entry.id), user.id)).is_ok()
    await refresher.drain()
    assert await count(db, CorpusEntry) == 0
    assert await count(db, OpinionEntry) == 0


async def test_cascade_failure_still_deletes_corpus(db, refresher, user):
    coordinator = IngestCoordinator(db, refresher, opinions=FailingCascadeRepository(db))
    submission = CorpusSubmission.model_validate({"content": "Text", "opinion": {"coreViewpoint": "View"}})
    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()

    assert (await coordinator.delete_corpus(entry.id, user.id)).is_ok()
    await refresher.drain()
    assert await count(db, CorpusEntry) == 0
    assert await count(db, OpinionEntry) == 1


async def test_delete_unknown_entry(coordinator, refresher, user, other_user):
    entry = (await coordinator.ingest(user.id, CorpusSubmission(content="Mine"))).unwrap()
    await refresher.drain()
    result = await coordinator.delete_corpus(entry.id, other_user.id)
    assert result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND


async def test_statistics_follow_writes(db, coordinator, refresher, session_factory, user):
    analysis = normalize_analysis(json.loads(analysis_reply()), GIG_TEXT)
    await coordinator.ingest(user.id, submission_from_analysis(GIG_TEXT, analysis))
    await refresher.drain()
    await coordinator.ingest(user.id, CorpusSubmission(content="Second text"))
    await refresher.drain()

    async with session_factory() as session:
        stats = (await session.get(User, user.id)).statistics
    assert (stats.total_corpus, stats.total_vocabulary, stats.total_opinions) == (2, 1, 1)


async def test_typed_submission_gets_general_theme(db, coordinator, refresher, user):
    submission = CorpusSubmission.model_validate({
        "content": "The gig economy has grown.",
        "opinion": {"coreViewpoint": "Flexibility trades off against stability."},
    })
    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()

    assert entry.theme_primary == "General"
    opinion = (await db.execute(select(OpinionEntry))).scalar_one()
    assert opinion.theme == "General"
    assert opinion.content == "Flexibility trades off against stability."
    assert opinion.source_id == entry.id


async def test_deleted_entry_is_not_found_afterwards(coordinator, refresher, db, user):
    submission = CorpusSubmission.model_validate({"content": "Text", "opinion": {"coreViewpoint": "View"}})
    entry = (await coordinator.ingest(user.id, submission)).unwrap()
    await refresher.drain()
    await coordinator.delete_corpus(entry.id, user.id)
    await refresher.drain()

    found = await CorpusRepository(db).find_by_id(entry.id, user.id)
    assert found.unwrap_err().code is ErrorCode.E4010_NOT_FOUND
    remaining = await db.execute(select(OpinionEntry).where(OpinionEntry.source_id == entry.id))
    assert remaining.scalars().all() == []
