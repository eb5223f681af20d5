from engines.analysis import AnalysisEngine, get_analysis_engine
from engines.coordinator import IngestCoordinator, submission_from_analysis
from engines.corpus import CorpusRepository
from engines.opinions import OpinionRepository
from engines.statistics import StatisticsRefresher, get_statistics_refresher, recompute_statistics
from engines.tools import TutorToolsEngine, get_tools_engine

__all__ = [
    "AnalysisEngine",
    "get_analysis_engine",
    "IngestCoordinator",
    "submission_from_analysis",
    "CorpusRepository",
    "OpinionRepository",
    "StatisticsRefresher",
    "get_statistics_refresher",
    "recompute_statistics",
    "TutorToolsEngine",
    "get_tools_engine",
]
