from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String

from core.database import GUID, Base, utc_now


@dataclass(frozen=True)
class UserStatistics:
    """Denormalized counters cached on the user row. Advisory, may be stale."""
    total_corpus: int = 0
    total_vocabulary: int = 0
    total_opinions: int = 0
    last_active: datetime | None = None


class User(Base):
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=uuid4)
    username = Column(String(50), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    email = Column(String(255))

    # Recomputed from source-of-truth counts, never incremented
    total_corpus = Column(Integer, nullable=False, default=0)
    total_vocabulary = Column(Integer, nullable=False, default=0)
    total_opinions = Column(Integer, nullable=False, default=0)
    last_active = Column(DateTime, default=utc_now)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def statistics(self) -> UserStatistics:
        return UserStatistics(
            total_corpus=self.total_corpus or 0,
            total_vocabulary=self.total_vocabulary or 0,
            total_opinions=self.total_opinions or 0,
            last_active=self.last_active,
        )
