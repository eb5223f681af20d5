from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from core.database import GUID, Base, utc_now
from models.corpus import DEFAULT_THEME


class OpinionEntry(Base):
    """A viewpoint distilled from one corpus entry (the "wall of ideas")."""
    __tablename__ = "opinions"

    id = Column(GUID, primary_key=True, default=uuid4)
    owner_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    source_id = Column(GUID, ForeignKey("corpus_entries.id", ondelete="CASCADE"), nullable=False, index=True)

    content = Column(Text, nullable=False)
    theme = Column(String(100), nullable=False, default=DEFAULT_THEME, index=True)
    sub_themes = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    supporting_facts = Column(JSON, nullable=False, default=list)
    critical_question = Column(Text, nullable=False, default="")
    counterargument = Column(Text, nullable=False, default="")
    personal_reflection = Column(Text, nullable=False, default="")

    archived = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    # Load with selectinload; None once the source row is gone
    source = relationship("CorpusEntry")
