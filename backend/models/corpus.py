from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from core.database import GUID, Base, utc_now

DEFAULT_THEME = "General"


class CorpusEntry(Base):
    """A submitted text plus the learning artifacts derived from it.

    ``vocabulary`` holds camelCase item dicts exactly as returned to clients;
    ``vocabulary_count`` mirrors its length so theme aggregates stay in SQL.
    """
    __tablename__ = "corpus_entries"

    id = Column(GUID, primary_key=True, default=uuid4)
    owner_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False, default="")
    content = Column(Text, nullable=False)
    translation = Column(Text, nullable=False, default="")
    summary = Column(Text, nullable=False, default="")

    theme_primary = Column(String(100), nullable=False, default=DEFAULT_THEME, index=True)
    theme_secondary = Column(JSON, nullable=False, default=list)
    theme_custom = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)

    vocabulary = Column(JSON, nullable=False, default=list)
    vocabulary_count = Column(Integer, nullable=False, default=0)

    filename = Column(String(255), nullable=False, default="unknown")
    file_type = Column(String(50), nullable=False, default="text")
    file_size = Column(Integer, nullable=False, default=0)
    word_count = Column(Integer, nullable=False, default=0)

    # Read paths filter on it; nothing sets it (deletes are hard deletes)
    archived = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    @property
    def themes(self) -> dict:
        return {
            "primary": self.theme_primary or DEFAULT_THEME,
            "secondary": list(self.theme_secondary or []),
            "custom": list(self.theme_custom or []),
        }

    @property
    def file_metadata(self) -> dict:
        return {
            "filename": self.filename,
            "fileType": self.file_type,
            "fileSize": self.file_size,
            "wordCount": self.word_count,
        }
