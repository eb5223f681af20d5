"""Pydantic shapes shared by the engines and the API.

Clients speak camelCase; fields are snake_case with generated aliases.
Submission models keep the loosely typed parts (themes, vocabulary,
opinion) as ``Any`` so the normalizer, not request validation, decides how
to repair them.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from models.corpus import DEFAULT_THEME


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class ThemeSet(CamelModel):
    primary: str = DEFAULT_THEME
    secondary: list[str] = Field(default_factory=list)
    custom: list[str] = Field(default_factory=list)


class VocabularyItem(CamelModel):
    word: str
    meaning: str = ""
    original_sentence: str = ""
    collocation: str = ""
    reason: str = ""
    usage_scenario: str = ""
    mastered: bool = False
    review_count: int = 0
    last_reviewed: datetime | None = None


class OpinionDraft(CamelModel):
    core_viewpoint: str = ""
    supporting_evidence: list[str] = Field(default_factory=list)
    critical_question: str = ""
    counterargument: str = ""


class AnalysisResult(CamelModel):
    """Normalized output of the AI analysis call. Every field is populated."""
    vocabulary: list[VocabularyItem] = Field(default_factory=list)
    themes: ThemeSet = Field(default_factory=ThemeSet)
    tags: list[str] = Field(default_factory=list)
    summary: str = ""
    translation: str = ""
    opinion: OpinionDraft = Field(default_factory=OpinionDraft)


class FileInfo(CamelModel):
    name: str | None = None
    type: str | None = None
    size: int | None = None


class CorpusSubmission(CamelModel):
    """Corpus-create payload, typed by a client or produced by analysis."""
    content: str | None = None
    raw_text: str | None = None
    title: str | None = None
    translation: str | None = None
    summary: str | None = None
    themes: Any = None
    tags: Any = None
    vocabulary: Any = None
    opinion: Any = None
    file_info: FileInfo | None = None
    personal_reflection: str | None = None


class CorpusUpdate(CamelModel):
    """Partial update: only keys present in the request are applied.

    An explicit ``null`` clears the field to its empty value.
    """
    title: str | None = None
    content: str | None = None
    translation: str | None = None
    summary: str | None = None
    themes: Any = None
    tags: Any = None
    vocabulary: Any = None


class OpinionUpdate(CamelModel):
    content: str | None = None
    theme: str | None = None
    sub_themes: Any = None
    tags: Any = None
    supporting_facts: Any = None
    critical_question: str | None = None
    counterargument: str | None = None
    personal_reflection: str | None = None


class ContextExplanation(CamelModel):
    word: str
    sentence: str
    explanation: str
    timestamp: datetime


class LogicCheck(CamelModel):
    is_native_like: bool
    detected_l1_logic: str | None = None
    explanation: str = ""
    better_alternative: str = ""
