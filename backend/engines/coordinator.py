"""Ingest Coordinator

Owns the unit of work for every corpus/opinion write:

- ingest: the corpus entry is flushed first; a failure there rolls back
  and no opinion is attempted. The opinion runs inside a SAVEPOINT, so its
  failure is logged and rolled back alone while the corpus still commits.
- delete: the corpus row goes first; the opinion cascade runs in a
  SAVEPOINT and a cascade failure is logged, not reported.

After each commit that can change counts, the owner's statistics refresh
is scheduled in the background.
"""
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AppError, Ok, Result, empty_content, not_found, token_missing
from core.logging import engine_logger
from engines.corpus import CorpusRepository, apply_themes
from engines.normalizer import (
    dump_vocabulary,
    normalize_opinion,
    normalize_themes,
    normalize_vocabulary,
    string_list,
)
from engines.opinions import OpinionRepository
from engines.schemas import AnalysisResult, CorpusSubmission, CorpusUpdate, FileInfo, OpinionUpdate
from engines.statistics import StatisticsRefresher, get_statistics_refresher
from models.corpus import CorpusEntry
from models.opinion import OpinionEntry

log = engine_logger()

ORIGIN = "ingest_coordinator"
UNTITLED = "Untitled document"


def submission_from_analysis(
    text: str,
    analysis: AnalysisResult,
    title: str | None = None,
    file_info: FileInfo | None = None,
) -> CorpusSubmission:
    """Corpus payload for text that has just been analyzed."""
    return CorpusSubmission(
        content=text,
        title=title,
        translation=analysis.translation,
        summary=analysis.summary,
        themes=analysis.themes.model_dump(),
        tags=list(analysis.tags),
        vocabulary=[item.model_dump(by_alias=True, mode="json") for item in analysis.vocabulary],
        opinion=analysis.opinion.model_dump(by_alias=True),
        file_info=file_info,
    )


class IngestCoordinator:
    __slots__ = ("_db", "_corpus", "_opinions", "_refresher")

    def __init__(
        self,
        db: AsyncSession,
        refresher: StatisticsRefresher | None = None,
        *,
        corpus: CorpusRepository | None = None,
        opinions: OpinionRepository | None = None,
    ):
        self._db = db
        self._corpus = corpus or CorpusRepository(db)
        self._opinions = opinions or OpinionRepository(db)
        self._refresher = refresher or get_statistics_refresher()

    async def ingest(
        self, owner_id: UUID | None, submission: CorpusSubmission
    ) -> Result[CorpusEntry, AppError]:
        """Create a corpus entry and, when it carries a core viewpoint, its opinion.

        Returns the corpus entry only.
        """
        if owner_id is None:
            return token_missing(origin=ORIGIN)
        content = submission.content if submission.content and submission.content.strip() else submission.raw_text
        if not content or not content.strip():
            return empty_content(origin=ORIGIN)

        entry = self._build_entry(owner_id, content, submission)
        created = await self._corpus.create(entry)
        if created.is_err():
            await self._db.rollback()
            log.error("corpus_create_failed", owner_id=str(owner_id), error_code=created.unwrap_err().code.name)
            return created

        draft = normalize_opinion(submission.opinion)
        if draft.core_viewpoint.strip():
            opinion = OpinionEntry(
                owner_id=owner_id,
                source_id=entry.id,
                content=draft.core_viewpoint,
                theme=entry.theme_primary,
                sub_themes=list(entry.theme_secondary or []),
                tags=list(entry.tags or []),
                supporting_facts=list(draft.supporting_evidence),
                critical_question=draft.critical_question,
                counterargument=draft.counterargument,
                personal_reflection=submission.personal_reflection or "",
            )
            savepoint = await self._db.begin_nested()
            saved = await self._opinions.create(opinion)
            if saved.is_err():
                await savepoint.rollback()
                log.warning(
                    "opinion_create_failed",
                    corpus_id=str(entry.id),
                    error_code=saved.unwrap_err().code.name,
                )
            else:
                await savepoint.commit()

        await self._db.refresh(entry)
        await self._db.commit()
        log.info(
            "corpus_ingested",
            corpus_id=str(entry.id),
            owner_id=str(owner_id),
            vocabulary=entry.vocabulary_count,
            words=entry.word_count,
        )
        self._refresher.schedule(owner_id)
        return Ok(entry)

    def _build_entry(self, owner_id: UUID, content: str, submission: CorpusSubmission) -> CorpusEntry:
        file_info = submission.file_info or FileInfo()
        entry = CorpusEntry(
            owner_id=owner_id,
            title=submission.title or file_info.name or UNTITLED,
            content=content,
            translation=submission.translation or "",
            summary=submission.summary or "",
            tags=string_list(submission.tags),
            vocabulary=dump_vocabulary(normalize_vocabulary(submission.vocabulary, content)),
            filename=file_info.name or "unknown",
            file_type=file_info.type or "text",
            file_size=file_info.size or 0,
            archived=False,
        )
        apply_themes(entry, normalize_themes(submission.themes))
        return entry

    async def update_corpus(
        self, entry_id: str | UUID, owner_id: UUID, changes: CorpusUpdate
    ) -> Result[CorpusEntry, AppError]:
        updated = await self._corpus.update(entry_id, owner_id, changes)
        if updated.is_err():
            await self._db.rollback()
            return updated
        await self._db.commit()
        self._refresher.schedule(owner_id)
        return updated

    async def delete_corpus(self, entry_id: str | UUID, owner_id: UUID) -> Result[None, AppError]:
        """Hard delete plus best-effort opinion cascade, in one transaction."""
        deleted = await self._corpus.delete(entry_id, owner_id)
        if deleted.is_err():
            await self._db.rollback()
            return deleted
        if not deleted.unwrap():
            await self._db.rollback()
            return not_found("CorpusEntry", entry_id, origin=ORIGIN)

        source_id = UUID(str(entry_id))
        savepoint = await self._db.begin_nested()
        cascade = await self._opinions.delete_all_by_source(source_id)
        if cascade.is_err():
            await savepoint.rollback()
            log.error(
                "opinion_cascade_failed",
                corpus_id=str(source_id),
                error_code=cascade.unwrap_err().code.name,
            )
        else:
            await savepoint.commit()

        await self._db.commit()
        log.info("corpus_deleted", corpus_id=str(source_id), opinions_removed=cascade.unwrap_or(0))
        self._refresher.schedule(owner_id)
        return Ok(None)

    async def update_opinion(
        self, opinion_id: str | UUID, owner_id: UUID, changes: OpinionUpdate
    ) -> Result[OpinionEntry, AppError]:
        updated = await self._opinions.update(opinion_id, owner_id, changes)
        if updated.is_err():
            await self._db.rollback()
            return updated
        await self._db.commit()
        return updated

    async def delete_opinion(self, opinion_id: str | UUID, owner_id: UUID) -> Result[None, AppError]:
        deleted = await self._opinions.delete(opinion_id, owner_id)
        if deleted.is_err():
            await self._db.rollback()
            return deleted
        if not deleted.unwrap():
            await self._db.rollback()
            return not_found("OpinionEntry", opinion_id, origin=ORIGIN)

        await self._db.commit()
        self._refresher.schedule(owner_id)
        return Ok(None)
