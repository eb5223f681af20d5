"""Opinion Repository

Same ownership and pagination rules as CorpusRepository, filtering on
``theme``. Reads load the source corpus entry alongside each opinion.
``delete_all_by_source`` is the corpus-delete cascade and does not check
ownership: the coordinator has already verified the corpus.
"""
from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.database import parse_uuid, utc_now
from core.errors import AppError, Ok, Result, empty_content, map_db_errors, not_found, validation_error
from engines.corpus import ThemeCount, ThemeStats
from engines.normalizer import string_list
from engines.pagination import Page, PageQuery
from engines.schemas import OpinionUpdate
from models.opinion import OpinionEntry

ORIGIN = "opinion_repository"

_TEXT_FIELDS = ("critical_question", "counterargument", "personal_reflection")
_LIST_FIELDS = ("sub_themes", "tags", "supporting_facts")


class OpinionRepository:
    __slots__ = ("_db",)

    def __init__(self, db: AsyncSession):
        self._db = db

    @map_db_errors(ORIGIN)
    async def create(self, opinion: OpinionEntry) -> Result[OpinionEntry, AppError]:
        if not opinion.content or not opinion.content.strip():
            return empty_content(origin=ORIGIN)
        opinion.updated_at = utc_now()
        opinion.created_at = opinion.created_at or opinion.updated_at
        self._db.add(opinion)
        await self._db.flush()
        return Ok(opinion)

    @map_db_errors(ORIGIN)
    async def find_by_id(self, opinion_id: str | UUID, owner_id: UUID) -> Result[OpinionEntry, AppError]:
        parsed_id = parse_uuid(opinion_id, origin=ORIGIN)
        if parsed_id.is_err():
            return parsed_id
        parsed = parsed_id.unwrap()
        opinion = (await self._db.execute(
            select(OpinionEntry)
            .options(selectinload(OpinionEntry.source))
            .where(OpinionEntry.id == parsed, OpinionEntry.owner_id == owner_id)
        )).scalar_one_or_none()
        if opinion is None:
            return not_found("OpinionEntry", parsed, origin=ORIGIN)
        return Ok(opinion)

    @map_db_errors(ORIGIN)
    async def list(self, owner_id: UUID, query: PageQuery) -> Result[Page[OpinionEntry], AppError]:
        conditions = [OpinionEntry.owner_id == owner_id, OpinionEntry.archived.is_(False)]
        if query.theme:
            conditions.append(OpinionEntry.theme == query.theme)

        total = (await self._db.execute(
            select(func.count()).select_from(OpinionEntry).where(*conditions)
        )).scalar_one()
        rows = (await self._db.execute(
            select(OpinionEntry)
            .options(selectinload(OpinionEntry.source))
            .where(*conditions)
            .order_by(OpinionEntry.created_at.desc())
            .offset(query.offset)
            .limit(query.limit)
        )).scalars().all()

        return Ok(Page(items=list(rows), page=query.page, limit=query.limit, total=total))

    async def update(
        self, opinion_id: str | UUID, owner_id: UUID, changes: OpinionUpdate
    ) -> Result[OpinionEntry, AppError]:
        provided = changes.model_fields_set
        if "content" in provided and (changes.content is None or not changes.content.strip()):
            return empty_content(origin=ORIGIN)
        if "theme" in provided and (changes.theme is None or not changes.theme.strip()):
            return validation_error("'theme' must not be empty", field="theme", origin=ORIGIN)

        found = await self.find_by_id(opinion_id, owner_id)
        if found.is_err():
            return found
        return await self._apply_update(found.unwrap(), changes)

    @map_db_errors(ORIGIN)
    async def _apply_update(self, opinion: OpinionEntry, changes: OpinionUpdate) -> Result[OpinionEntry, AppError]:
        provided = changes.model_fields_set
        if "content" in provided:
            opinion.content = changes.content
        if "theme" in provided:
            opinion.theme = changes.theme
        for name in _TEXT_FIELDS:
            if name in provided:
                setattr(opinion, name, getattr(changes, name) or "")
        for name in _LIST_FIELDS:
            if name in provided:
                setattr(opinion, name, string_list(getattr(changes, name)))

        opinion.updated_at = utc_now()
        await self._db.flush()
        return Ok(opinion)

    @map_db_errors(ORIGIN)
    async def delete(self, opinion_id: str | UUID, owner_id: UUID) -> Result[bool, AppError]:
        parsed_id = parse_uuid(opinion_id, origin=ORIGIN)
        if parsed_id.is_err():
            return parsed_id
        result = await self._db.execute(
            delete(OpinionEntry).where(
                OpinionEntry.id == parsed_id.unwrap(), OpinionEntry.owner_id == owner_id
            )
        )
        return Ok(result.rowcount > 0)

    @map_db_errors(ORIGIN)
    async def delete_all_by_source(self, source_id: UUID) -> Result[int, AppError]:
        """Remove every opinion derived from ``source_id``; returns the count."""
        result = await self._db.execute(
            delete(OpinionEntry).where(OpinionEntry.source_id == source_id)
        )
        return Ok(result.rowcount)

    @map_db_errors(ORIGIN)
    async def aggregate_by_theme(self, owner_id: UUID) -> Result[ThemeStats, AppError]:
        count = func.count(OpinionEntry.id).label("count")
        rows = (await self._db.execute(
            select(OpinionEntry.theme, count)
            .where(OpinionEntry.owner_id == owner_id, OpinionEntry.archived.is_(False))
            .group_by(OpinionEntry.theme)
            .order_by(count.desc(), OpinionEntry.theme)
        )).all()

        by_theme = [ThemeCount(theme=theme, count=n) for theme, n in rows]
        return Ok(ThemeStats(total=sum(t.count for t in by_theme), by_theme=by_theme))
