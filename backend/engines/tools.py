"""Tutor Tools Engine

Four single-purpose completions exposed directly to the client: context
explanation, collocations, tone rewriting and L1-interference detection.
Each is one attempt under a timeout; the analysis engine's retry budget
does not apply here.
"""
import re
from datetime import datetime, timezone
from typing import Any

from core.config import settings
from core.errors import AppError, Ok, Result, empty_content, response_malformed, validation_error
from core.logging import ai_logger
from core.resilience import TimeoutPolicy
from engines.completion import CompletionClient, extract_json
from engines.prompts import tool_config
from engines.schemas import ContextExplanation, LogicCheck

log = ai_logger()

ORIGIN = "tutor_tools"

_EDGE_QUOTES = re.compile(r"^[\"']|[\"']$")


def supported_tones() -> list[str]:
    return list(tool_config("polish_tone")["tones"])


def _required(value: str | None, field: str) -> Result[str, AppError]:
    if value is None or not value.strip():
        return empty_content(field, origin=ORIGIN)
    return Ok(value.strip())


class TutorToolsEngine:
    __slots__ = ("_client", "_timeout")

    def __init__(self, client: CompletionClient | None = None, timeout_seconds: float | None = None):
        self._client = client or CompletionClient()
        self._timeout = timeout_seconds or settings.AI_TOOL_TIMEOUT_SECONDS

    async def _run(
        self, tool: str, system: str, user: str, *, json_mode: bool = False
    ) -> Result[str, AppError]:
        config = tool_config(tool)
        policy = TimeoutPolicy[str](self._timeout, operation_name=f"ai_{tool}")
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        result = await policy.execute(lambda: self._client.complete(
            messages,
            temperature=config["temperature"],
            max_tokens=config["max_tokens"],
            json_mode=json_mode,
        ))
        if result.is_err():
            log.warning("tool_call_failed", tool=tool, error_code=result.unwrap_err().code.name)
        return result.map(str.strip)

    async def explain_context(self, word: str | None, sentence: str | None) -> Result[ContextExplanation, AppError]:
        word_r, sentence_r = _required(word, "word"), _required(sentence, "fullSentence")
        if word_r.is_err():
            return word_r
        if sentence_r.is_err():
            return sentence_r
        word, sentence = word_r.unwrap(), sentence_r.unwrap()

        config = tool_config("context_explain")
        reply = await self._run(
            "context_explain",
            config["system"].format(word=word),
            config["user"].format(word=word, sentence=sentence),
        )
        return reply.map(lambda text: ContextExplanation(
            word=word,
            sentence=sentence,
            explanation=text,
            timestamp=datetime.now(timezone.utc),
        ))

    async def collocations(self, word: str | None) -> Result[list[str], AppError]:
        """Up to ``count`` collocations; an unparseable reply yields templated fallbacks."""
        word_r = _required(word, "word")
        if word_r.is_err():
            return word_r
        word = word_r.unwrap()

        config = tool_config("collocations")
        count = config["count"]
        reply = await self._run(
            "collocations",
            config["system"].format(word=word, count=count),
            config["user"].format(word=word),
        )
        if reply.is_err():
            return reply

        found = _collocation_list(extract_json(reply.unwrap()).unwrap_or(None))
        if not found:
            log.info("collocations_fallback", word=word)
            found = [template.format(word=word) for template in config["fallback"]]
        return Ok(found[:count])

    async def polish_tone(self, sentence: str | None, tone: str | None) -> Result[str, AppError]:
        sentence_r = _required(sentence, "originalSentence")
        if sentence_r.is_err():
            return sentence_r
        config = tool_config("polish_tone")
        tone_key = (tone or "").strip().lower()
        if tone_key not in config["tones"]:
            return validation_error(
                f"Unsupported tone '{tone}'",
                field="targetTone",
                value=tone,
                origin=ORIGIN,
                allowed=list(config["tones"]),
            )

        reply = await self._run(
            "polish_tone",
            config["system"].format(tone=tone_key, description=config["tones"][tone_key]),
            config["user"].format(tone=tone_key, sentence=sentence_r.unwrap()),
        )
        return reply.map(lambda text: _EDGE_QUOTES.sub("", text).strip())

    async def logic_check(self, sentence: str | None, native_language: str | None = None) -> Result[LogicCheck, AppError]:
        sentence_r = _required(sentence, "userSentence")
        if sentence_r.is_err():
            return sentence_r
        sentence = sentence_r.unwrap()

        config = tool_config("logic_check")
        languages = config["languages"]
        l1 = languages.get(native_language or "") or languages[config["default_language"]]
        patterns = "\n".join(f"{i}. {p}" for i, p in enumerate(l1["patterns"], start=1))

        reply = await self._run(
            "logic_check",
            config["system"].format(name=l1["name"], patterns=patterns),
            config["user"].format(name=l1["name"], sentence=sentence),
            json_mode=True,
        )
        parsed = reply.and_then(extract_json)
        if parsed.is_err():
            return parsed
        payload = parsed.unwrap()
        if not isinstance(payload, dict) or not isinstance(payload.get("isNativeLike"), bool):
            return response_malformed("logic check reply lacks 'isNativeLike'", origin=ORIGIN)

        detected = payload.get("detectedL1Logic")
        return Ok(LogicCheck(
            is_native_like=payload["isNativeLike"],
            detected_l1_logic=detected if isinstance(detected, str) and detected.strip() else None,
            explanation=_string(payload.get("explanation")),
            better_alternative=_string(payload.get("betterAlternative")) or sentence,
        ))


def _string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _collocation_list(payload: Any) -> list[str]:
    if isinstance(payload, dict):
        payload = payload.get("collocations", list(payload.values()))
    if not isinstance(payload, list):
        return []
    return [item.strip() for item in payload if isinstance(item, str) and item.strip()]


_engine: TutorToolsEngine | None = None


def get_tools_engine() -> TutorToolsEngine:
    global _engine
    if _engine is None:
        _engine = TutorToolsEngine()
    return _engine
