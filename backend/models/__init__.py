from models.user import User, UserStatistics
from models.corpus import CorpusEntry, DEFAULT_THEME
from models.opinion import OpinionEntry

__all__ = [
    "User", "UserStatistics",
    "CorpusEntry", "DEFAULT_THEME",
    "OpinionEntry",
]
