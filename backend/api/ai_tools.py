"""AI Tutor Tools API

Stateless single-purpose completions for the reading view. Nothing here
touches the database.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from core.errors import raise_result
from engines.schemas import CamelModel, ContextExplanation
from engines.tools import TutorToolsEngine, get_tools_engine

router = APIRouter()


class ContextExplainRequest(CamelModel):
    word: str
    full_sentence: str


class CollocationsRequest(CamelModel):
    word: str


class CollocationsResponse(CamelModel):
    word: str
    collocations: list[str]
    count: int
    timestamp: datetime


class PolishToneRequest(CamelModel):
    original_sentence: str
    target_tone: str


class PolishToneResponse(CamelModel):
    original: str
    polished: str
    tone: str
    timestamp: datetime


class LogicCheckRequest(CamelModel):
    user_sentence: str
    native_language: str = "zh-CN"


class LogicCheckResponse(CamelModel):
    sentence: str
    native_language: str
    is_native_like: bool
    detected_l1_logic: str | None
    explanation: str
    better_alternative: str
    timestamp: datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/context-explain", response_model=ContextExplanation)
async def context_explain(
    request: ContextExplainRequest, tools: TutorToolsEngine = Depends(get_tools_engine)
):
    """Explain what a word means in this particular sentence."""
    return raise_result(await tools.explain_context(request.word, request.full_sentence))


@router.post("/collocations", response_model=CollocationsResponse)
async def collocations(request: CollocationsRequest, tools: TutorToolsEngine = Depends(get_tools_engine)):
    found = raise_result(await tools.collocations(request.word))
    return CollocationsResponse(
        word=request.word.strip(), collocations=found, count=len(found), timestamp=_now()
    )


@router.post("/polish-tone", response_model=PolishToneResponse)
async def polish_tone(request: PolishToneRequest, tools: TutorToolsEngine = Depends(get_tools_engine)):
    """Rewrite a sentence in one of the supported tones."""
    polished = raise_result(await tools.polish_tone(request.original_sentence, request.target_tone))
    return PolishToneResponse(
        original=request.original_sentence,
        polished=polished,
        tone=request.target_tone.strip().lower(),
        timestamp=_now(),
    )


@router.post("/logic-check", response_model=LogicCheckResponse)
async def logic_check(request: LogicCheckRequest, tools: TutorToolsEngine = Depends(get_tools_engine)):
    """Flag sentences that carry the learner's first-language logic."""
    check = raise_result(await tools.logic_check(request.user_sentence, request.native_language))
    return LogicCheckResponse(
        sentence=request.user_sentence,
        native_language=request.native_language,
        is_native_like=check.is_native_like,
        detected_l1_logic=check.detected_l1_logic,
        explanation=check.explanation,
        better_alternative=check.better_alternative,
        timestamp=_now(),
    )
