"""Corpus API

CRUD, listing and per-theme statistics for the caller's corpus entries.
Writes go through IngestCoordinator, reads through CorpusRepository.
"""
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.errors import raise_result
from core.security import get_current_user
from engines.coordinator import IngestCoordinator
from engines.corpus import CorpusRepository
from engines.pagination import Page, PageQuery
from engines.prompts import predefined_themes
from engines.schemas import CamelModel, CorpusSubmission, CorpusUpdate, ThemeSet, VocabularyItem
from engines.statistics import StatisticsRefresher, get_statistics_refresher
from models.corpus import CorpusEntry
from models.user import User

router = APIRouter()


class FileMetadata(CamelModel):
    filename: str
    file_type: str
    file_size: int
    word_count: int


class CorpusEntryResponse(CamelModel):
    id: UUID
    owner_id: UUID
    title: str
    content: str
    translation: str
    summary: str
    themes: ThemeSet
    tags: list[str]
    vocabulary: list[VocabularyItem]
    metadata: FileMetadata
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entry(cls, entry: CorpusEntry) -> "CorpusEntryResponse":
        return cls(
            id=entry.id,
            owner_id=entry.owner_id,
            title=entry.title or "",
            content=entry.content,
            translation=entry.translation or "",
            summary=entry.summary or "",
            themes=ThemeSet(**entry.themes),
            tags=list(entry.tags or []),
            vocabulary=[VocabularyItem.model_validate(item) for item in entry.vocabulary or []],
            metadata=FileMetadata.model_validate(entry.file_metadata),
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class PaginationInfo(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page) -> "PaginationInfo":
        return cls(page=page.page, limit=page.limit, total=page.total, total_pages=page.total_pages)


class CorpusListResponse(CamelModel):
    items: list[CorpusEntryResponse] = Field(alias="list")
    pagination: PaginationInfo


class ThemeCountResponse(CamelModel):
    theme: str
    count: int
    total_vocab: int


class CorpusStatsResponse(CamelModel):
    total: int
    by_theme: list[ThemeCountResponse]
    total_vocabulary: int


class MessageResponse(CamelModel):
    message: str


def get_coordinator(
    db: AsyncSession = Depends(get_db),
    refresher: StatisticsRefresher = Depends(get_statistics_refresher),
) -> IngestCoordinator:
    return IngestCoordinator(db, refresher)


@router.post("", response_model=CorpusEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_corpus(
    submission: CorpusSubmission,
    user: User = Depends(get_current_user),
    coordinator: IngestCoordinator = Depends(get_coordinator),
):
    """Store a corpus entry and, when present, its derived opinion."""
    entry = raise_result(await coordinator.ingest(user.id, submission))
    return CorpusEntryResponse.from_entry(entry)


@router.get("", response_model=CorpusListResponse)
async def list_corpus(
    page: str | None = Query(None),
    limit: str | None = Query(None),
    theme: str | None = Query(None),
    search: str | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest first; ``search`` matches title or content case-insensitively."""
    query = PageQuery.clamp(page=page, limit=limit, theme=theme, search=search)
    result = raise_result(await CorpusRepository(db).list(user.id, query))
    return CorpusListResponse(
        items=[CorpusEntryResponse.from_entry(entry) for entry in result.items],
        pagination=PaginationInfo.from_page(result),
    )


@router.get("/stats", response_model=CorpusStatsResponse)
async def corpus_stats(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    stats = raise_result(await CorpusRepository(db).aggregate_by_theme(user.id))
    return CorpusStatsResponse(
        total=stats.total,
        by_theme=[
            ThemeCountResponse(theme=t.theme, count=t.count, total_vocab=t.total_vocab)
            for t in stats.by_theme
        ],
        total_vocabulary=stats.total_vocabulary,
    )


@router.get("/themes", response_model=list[str])
async def list_themes():
    """The predefined theme catalogue offered to the analysis prompt."""
    return predefined_themes()


@router.get("/{entry_id}", response_model=CorpusEntryResponse)
async def get_corpus(entry_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    entry = raise_result(await CorpusRepository(db).find_by_id(entry_id, user.id))
    return CorpusEntryResponse.from_entry(entry)


@router.put("/{entry_id}", response_model=CorpusEntryResponse)
@router.patch("/{entry_id}", response_model=CorpusEntryResponse)
async def update_corpus(
    entry_id: str,
    changes: CorpusUpdate,
    user: User = Depends(get_current_user),
    coordinator: IngestCoordinator = Depends(get_coordinator),
):
    """Partial update: fields absent from the body are left untouched."""
    entry = raise_result(await coordinator.update_corpus(entry_id, user.id, changes))
    return CorpusEntryResponse.from_entry(entry)


@router.delete("/{entry_id}", response_model=MessageResponse)
async def delete_corpus(
    entry_id: str,
    user: User = Depends(get_current_user),
    coordinator: IngestCoordinator = Depends(get_coordinator),
):
    """Hard delete; opinions derived from the entry go with it."""
    raise_result(await coordinator.delete_corpus(entry_id, user.id))
    return MessageResponse(message="Corpus entry deleted")
