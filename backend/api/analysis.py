"""Analysis API

Runs the AI analysis over submitted text, either returning the normalized
result for review or persisting it straight into the corpus.
"""
from fastapi import APIRouter, Depends, status

from api.corpus import CorpusEntryResponse, get_coordinator
from core.errors import raise_result
from core.security import get_current_user
from engines.analysis import AnalysisEngine, get_analysis_engine
from engines.coordinator import IngestCoordinator, submission_from_analysis
from engines.schemas import AnalysisResult, CamelModel, FileInfo
from models.user import User

router = APIRouter()


class AnalyzeRequest(CamelModel):
    text: str


class AnalyzeAndIngestRequest(CamelModel):
    text: str
    title: str | None = None
    file_info: FileInfo | None = None


@router.post("", response_model=AnalysisResult)
async def analyze_text(
    request: AnalyzeRequest,
    user: User = Depends(get_current_user),
    engine: AnalysisEngine = Depends(get_analysis_engine),
):
    """Analyze text without storing anything."""
    return raise_result(await engine.analyze(request.text))


@router.post("/ingest", response_model=CorpusEntryResponse, status_code=status.HTTP_201_CREATED)
async def analyze_and_ingest(
    request: AnalyzeAndIngestRequest,
    user: User = Depends(get_current_user),
    engine: AnalysisEngine = Depends(get_analysis_engine),
    coordinator: IngestCoordinator = Depends(get_coordinator),
):
    """Analyze text, then store it with its vocabulary, themes and opinion."""
    analysis = raise_result(await engine.analyze(request.text))
    submission = submission_from_analysis(request.text, analysis, request.title, request.file_info)
    entry = raise_result(await coordinator.ingest(user.id, submission))
    return CorpusEntryResponse.from_entry(entry)
