"""Opinions API

Viewpoints extracted from corpus entries. They are created only through
corpus ingestion; this router reads, edits and deletes them.
"""
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.corpus import MessageResponse, PaginationInfo, get_coordinator
from core.database import get_db
from core.errors import raise_result
from core.security import get_current_user
from engines.coordinator import IngestCoordinator
from engines.opinions import OpinionRepository
from engines.pagination import PageQuery
from engines.schemas import CamelModel, OpinionUpdate
from models.opinion import OpinionEntry
from models.user import User

router = APIRouter()


class OpinionSource(CamelModel):
    """The corpus entry a viewpoint was drawn from."""
    id: UUID
    title: str
    content: str

    model_config = {"from_attributes": True}


class OpinionResponse(CamelModel):
    id: UUID
    owner_id: UUID
    source_id: UUID
    source: OpinionSource | None = None
    content: str
    theme: str
    sub_themes: list[str]
    tags: list[str]
    supporting_facts: list[str]
    critical_question: str
    counterargument: str
    personal_reflection: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OpinionListResponse(CamelModel):
    items: list[OpinionResponse] = Field(alias="list")
    pagination: PaginationInfo


class OpinionThemeCount(CamelModel):
    theme: str
    count: int


class OpinionStatsResponse(CamelModel):
    total: int
    by_theme: list[OpinionThemeCount]


@router.get("", response_model=OpinionListResponse)
async def list_opinions(
    page: str | None = Query(None),
    limit: str | None = Query(None),
    theme: str | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = PageQuery.clamp(page=page, limit=limit, theme=theme)
    result = raise_result(await OpinionRepository(db).list(user.id, query))
    return OpinionListResponse(
        items=[OpinionResponse.model_validate(opinion) for opinion in result.items],
        pagination=PaginationInfo.from_page(result),
    )


@router.get("/stats", response_model=OpinionStatsResponse)
async def opinion_stats(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    stats = raise_result(await OpinionRepository(db).aggregate_by_theme(user.id))
    return OpinionStatsResponse(
        total=stats.total,
        by_theme=[OpinionThemeCount(theme=t.theme, count=t.count) for t in stats.by_theme],
    )


@router.get("/{opinion_id}", response_model=OpinionResponse)
async def get_opinion(opinion_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    opinion: OpinionEntry = raise_result(await OpinionRepository(db).find_by_id(opinion_id, user.id))
    return OpinionResponse.model_validate(opinion)


@router.put("/{opinion_id}", response_model=OpinionResponse)
@router.patch("/{opinion_id}", response_model=OpinionResponse)
async def update_opinion(
    opinion_id: str,
    changes: OpinionUpdate,
    user: User = Depends(get_current_user),
    coordinator: IngestCoordinator = Depends(get_coordinator),
):
    opinion = raise_result(await coordinator.update_opinion(opinion_id, user.id, changes))
    return OpinionResponse.model_validate(opinion)


@router.delete("/{opinion_id}", response_model=MessageResponse)
async def delete_opinion(
    opinion_id: str,
    user: User = Depends(get_current_user),
    coordinator: IngestCoordinator = Depends(get_coordinator),
):
    raise_result(await coordinator.delete_opinion(opinion_id, user.id))
    return MessageResponse(message="Opinion deleted")
