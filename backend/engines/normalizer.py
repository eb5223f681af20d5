"""Response Normalizer

Decode-with-defaults over the untrusted JSON the AI provider returns.
Every function here is pure and total: any JSON value goes in, a fully
populated model comes out. Wrong-typed optional fields count as missing;
textual content is never invented beyond the documented fallbacks.
"""
from datetime import datetime
from typing import Any

from engines.schemas import AnalysisResult, OpinionDraft, ThemeSet, VocabularyItem
from models.corpus import DEFAULT_THEME

SUMMARY_PLACEHOLDER = "Summary generation failed"
DEFAULT_REASON = "Important vocabulary"
EXCERPT_LENGTH = 200


def _text(value: Any) -> str | None:
    """The value if it is a non-blank string, else None."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def _first_text(raw: dict, *keys: str) -> str | None:
    for key in keys:
        found = _text(raw.get(key))
        if found is not None:
            return found
    return None


def string_list(value: Any) -> list[str]:
    """Keep the non-blank strings of a list, in order, duplicates included."""
    if not isinstance(value, list):
        return []
    return [item for item in value if _text(item) is not None]


def excerpt(text: str) -> str:
    return text[:EXCERPT_LENGTH] + "..."


def normalize_themes(raw: Any) -> ThemeSet:
    """Accept the structured object, the legacy ``[primary, *secondary]``
    array, or a bare theme name.
    """
    if isinstance(raw, dict):
        return ThemeSet(
            primary=_text(raw.get("primary")) or DEFAULT_THEME,
            secondary=string_list(raw.get("secondary")),
            custom=string_list(raw.get("custom")),
        )
    if isinstance(raw, list) and raw:
        return ThemeSet(
            primary=_text(raw[0]) or DEFAULT_THEME,
            secondary=string_list(raw[1:]),
        )
    if _text(raw) is not None:
        return ThemeSet(primary=raw)
    return ThemeSet()


def _last_reviewed(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def normalize_vocabulary_item(raw: Any, original_text: str) -> VocabularyItem | None:
    """Repair one vocabulary entry; None when it has no usable ``word``."""
    if not isinstance(raw, dict):
        return None
    word = _text(raw.get("word"))
    if word is None:
        return None
    word = word.strip()

    collocation = _text(raw.get("collocation")) or ""
    review_count = raw.get("reviewCount")
    if isinstance(review_count, bool) or not isinstance(review_count, int) or review_count < 0:
        review_count = 0
    mastered = raw.get("mastered")

    return VocabularyItem(
        word=word,
        meaning=_text(raw.get("meaning")) or "",
        original_sentence=_first_text(raw, "originalSentence", "original_sentence") or excerpt(original_text),
        collocation=collocation,
        reason=_text(raw.get("reason")) or DEFAULT_REASON,
        usage_scenario=(
            _first_text(raw, "usageScenario", "usage_scenario") or f"Example: {collocation or word}"
        ),
        mastered=mastered if isinstance(mastered, bool) else False,
        review_count=review_count,
        last_reviewed=_last_reviewed(raw.get("lastReviewed")),
    )


def normalize_vocabulary(raw: Any, original_text: str) -> list[VocabularyItem]:
    if not isinstance(raw, list):
        return []
    items = (normalize_vocabulary_item(entry, original_text) for entry in raw)
    return [item for item in items if item is not None]


def normalize_opinion(raw: Any) -> OpinionDraft:
    """Opinion block; camelCase and snake_case keys are both accepted."""
    if not isinstance(raw, dict):
        return OpinionDraft()
    evidence = raw.get("supportingEvidence")
    if evidence is None:
        evidence = raw.get("supporting_evidence")
    return OpinionDraft(
        core_viewpoint=_first_text(raw, "coreViewpoint", "core_viewpoint") or "",
        supporting_evidence=string_list(evidence),
        critical_question=_first_text(raw, "criticalQuestion", "critical_question") or "",
        counterargument=_text(raw.get("counterargument")) or "",
    )


def normalize_analysis(raw: Any, original_text: str) -> AnalysisResult:
    """Turn a parsed AI reply into a schema-valid AnalysisResult.

    A top-level value that is not an object is treated as ``{}``.
    """
    if not isinstance(raw, dict):
        raw = {}
    return AnalysisResult(
        vocabulary=normalize_vocabulary(raw.get("vocabulary"), original_text),
        themes=normalize_themes(raw.get("themes")),
        tags=string_list(raw.get("tags")),
        summary=_text(raw.get("summary")) or SUMMARY_PLACEHOLDER,
        translation=_text(raw.get("translation")) or original_text,
        opinion=normalize_opinion(raw.get("opinion")),
    )


def dump_vocabulary(items: list[VocabularyItem]) -> list[dict]:
    """JSON-column form of vocabulary items (camelCase, ISO timestamps)."""
    return [item.model_dump(by_alias=True, mode="json") for item in items]
