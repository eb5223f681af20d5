"""Corpus Repository

Owner-scoped persistence for corpus entries. Methods flush but never
commit: the caller (IngestCoordinator) owns the unit of work. An entry
owned by someone else is reported exactly like a missing one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import parse_uuid, utc_now
from core.errors import AppError, Ok, Result, empty_content, map_db_errors, not_found
from engines.normalizer import dump_vocabulary, normalize_themes, normalize_vocabulary, string_list
from engines.pagination import Page, PageQuery
from engines.schemas import CorpusUpdate, ThemeSet
from models.corpus import CorpusEntry

ORIGIN = "corpus_repository"


def count_words(content: str) -> int:
    """Non-empty tokens between runs of whitespace."""
    return len(content.split())


@dataclass(frozen=True, slots=True)
class ThemeCount:
    theme: str
    count: int
    total_vocab: int = 0


@dataclass(frozen=True, slots=True)
class ThemeStats:
    total: int = 0
    by_theme: list[ThemeCount] = field(default_factory=list)
    total_vocabulary: int = 0


def apply_themes(entry: CorpusEntry, themes: ThemeSet) -> None:
    entry.theme_primary = themes.primary
    entry.theme_secondary = list(themes.secondary)
    entry.theme_custom = list(themes.custom)


def refresh_derived(entry: CorpusEntry) -> None:
    """Recompute the columns derived from content and vocabulary."""
    entry.word_count = count_words(entry.content or "")
    entry.vocabulary_count = len(entry.vocabulary or [])
    entry.updated_at = utc_now()


class CorpusRepository:
    __slots__ = ("_db",)

    def __init__(self, db: AsyncSession):
        self._db = db

    @map_db_errors(ORIGIN)
    async def create(self, entry: CorpusEntry) -> Result[CorpusEntry, AppError]:
        if not entry.content or not entry.content.strip():
            return empty_content(origin=ORIGIN)
        refresh_derived(entry)
        entry.created_at = entry.created_at or entry.updated_at
        self._db.add(entry)
        await self._db.flush()
        return Ok(entry)

    @map_db_errors(ORIGIN)
    async def find_by_id(self, entry_id: str | UUID, owner_id: UUID) -> Result[CorpusEntry, AppError]:
        parsed_id = parse_uuid(entry_id, origin=ORIGIN)
        if parsed_id.is_err():
            return parsed_id
        parsed = parsed_id.unwrap()
        entry = (await self._db.execute(
            select(CorpusEntry).where(CorpusEntry.id == parsed, CorpusEntry.owner_id == owner_id)
        )).scalar_one_or_none()
        if entry is None:
            return not_found("CorpusEntry", parsed, origin=ORIGIN)
        return Ok(entry)

    @map_db_errors(ORIGIN)
    async def list(self, owner_id: UUID, query: PageQuery) -> Result[Page[CorpusEntry], AppError]:
        conditions = [CorpusEntry.owner_id == owner_id, CorpusEntry.archived.is_(False)]
        if query.theme:
            conditions.append(CorpusEntry.theme_primary == query.theme)
        if query.search:
            conditions.append(or_(
                CorpusEntry.title.icontains(query.search, autoescape=True),
                CorpusEntry.content.icontains(query.search, autoescape=True),
            ))

        total = (await self._db.execute(
            select(func.count()).select_from(CorpusEntry).where(*conditions)
        )).scalar_one()
        rows = (await self._db.execute(
            select(CorpusEntry)
            .where(*conditions)
            .order_by(CorpusEntry.created_at.desc())
            .offset(query.offset)
            .limit(query.limit)
        )).scalars().all()

        return Ok(Page(items=list(rows), page=query.page, limit=query.limit, total=total))

    async def update(
        self, entry_id: str | UUID, owner_id: UUID, changes: CorpusUpdate
    ) -> Result[CorpusEntry, AppError]:
        """Apply only the fields present in ``changes``.

        A present ``null`` clears strings to "" and lists to []; ``content``
        may not be cleared.
        """
        provided = changes.model_fields_set
        if "content" in provided and (changes.content is None or not changes.content.strip()):
            return empty_content(origin=ORIGIN)

        found = await self.find_by_id(entry_id, owner_id)
        if found.is_err():
            return found
        return await self._apply_update(found.unwrap(), changes)

    @map_db_errors(ORIGIN)
    async def _apply_update(self, entry: CorpusEntry, changes: CorpusUpdate) -> Result[CorpusEntry, AppError]:
        provided = changes.model_fields_set
        for name in ("title", "translation", "summary"):
            if name in provided:
                setattr(entry, name, getattr(changes, name) or "")
        if "content" in provided:
            entry.content = changes.content
        if "themes" in provided:
            apply_themes(entry, normalize_themes(changes.themes))
        if "tags" in provided:
            entry.tags = string_list(changes.tags)
        if "vocabulary" in provided:
            entry.vocabulary = dump_vocabulary(normalize_vocabulary(changes.vocabulary, entry.content))

        refresh_derived(entry)
        await self._db.flush()
        return Ok(entry)

    @map_db_errors(ORIGIN)
    async def delete(self, entry_id: str | UUID, owner_id: UUID) -> Result[bool, AppError]:
        """Hard delete; Ok(False) when nothing owned by ``owner_id`` matched."""
        parsed_id = parse_uuid(entry_id, origin=ORIGIN)
        if parsed_id.is_err():
            return parsed_id
        parsed = parsed_id.unwrap()
        result = await self._db.execute(
            delete(CorpusEntry).where(CorpusEntry.id == parsed, CorpusEntry.owner_id == owner_id)
        )
        return Ok(result.rowcount > 0)

    @map_db_errors(ORIGIN)
    async def aggregate_by_theme(self, owner_id: UUID) -> Result[ThemeStats, AppError]:
        count = func.count(CorpusEntry.id).label("count")
        vocab = func.coalesce(func.sum(CorpusEntry.vocabulary_count), 0).label("total_vocab")
        rows = (await self._db.execute(
            select(CorpusEntry.theme_primary, count, vocab)
            .where(CorpusEntry.owner_id == owner_id, CorpusEntry.archived.is_(False))
            .group_by(CorpusEntry.theme_primary)
            .order_by(count.desc(), CorpusEntry.theme_primary)
        )).all()

        by_theme = [ThemeCount(theme=theme, count=n, total_vocab=int(v)) for theme, n, v in rows]
        return Ok(ThemeStats(
            total=sum(t.count for t in by_theme),
            by_theme=by_theme,
            total_vocabulary=sum(t.total_vocab for t in by_theme),
        ))
