"""Analysis Engine

Runs the full-text analysis call: bounded timeout per attempt, bounded
retries for malformed replies and dropped connections, JSON extraction
from markdown, then normalization. Provider auth, rate-limit and 5xx
failures return on the first attempt.
"""
from typing import Any

from core.config import settings
from core.errors import (
    AppError,
    Err,
    ErrorCode,
    Ok,
    Result,
    empty_content,
    external_service_unavailable,
    provider_auth_failed,
)
from core.logging import ai_logger
from core.resilience import CombinedPolicy, RetryConfig
from core.resilience.retry import Sleeper
from engines.completion import SERVICE, CompletionClient, extract_json
from engines.normalizer import normalize_analysis
from engines.prompts import analysis_system_prompt
from engines.schemas import AnalysisResult

log = ai_logger()

_CONNECTION_CODES = (ErrorCode.E1000_NETWORK_GENERIC, ErrorCode.E1001_CONNECTION_RESET)


def analysis_retry_config(timeout_seconds: float) -> RetryConfig:
    # A retry only starts while the whole call is still inside one attempt's
    # timeout, so an attempt that ran out its full timeout fails at once.
    network_delay = settings.AI_NETWORK_RETRY_DELAY
    return RetryConfig(
        max_attempts=settings.AI_MAX_RETRIES + 1,
        max_total_seconds=timeout_seconds,
        base_delay_seconds=settings.AI_PARSE_RETRY_DELAY,
        delay_overrides={
            ErrorCode.E1015_RESPONSE_MALFORMED: settings.AI_PARSE_RETRY_DELAY,
            ErrorCode.E1000_NETWORK_GENERIC: network_delay,
            ErrorCode.E1001_CONNECTION_RESET: network_delay,
            ErrorCode.E1002_TIMEOUT: network_delay,
        },
    )


class AnalysisEngine:
    """Text in, normalized AnalysisResult (or a classified AppError) out."""

    __slots__ = ("_client", "_policy")

    def __init__(
        self,
        client: CompletionClient | None = None,
        *,
        retry_config: RetryConfig | None = None,
        timeout_seconds: float | None = None,
        sleep: Sleeper | None = None,
    ):
        self._client = client or CompletionClient()
        timeout_seconds = timeout_seconds or settings.AI_TIMEOUT_SECONDS
        self._policy = CombinedPolicy[Any](
            timeout_seconds,
            retry_config or analysis_retry_config(timeout_seconds),
            operation_name="ai_analysis",
            sleep=sleep,
        )

    async def analyze(self, text: str) -> Result[AnalysisResult, AppError]:
        if not text or not text.strip():
            return empty_content("text", origin="analysis_engine")
        if not self._client.configured:
            return provider_auth_failed(SERVICE, "API key not configured", origin="analysis_engine")

        log.info("analysis_started", text_length=len(text))
        outcome = await self._policy.execute(lambda: self._attempt(text), on_retry=self._on_retry)

        match outcome.result:
            case Ok(payload):
                result = normalize_analysis(payload, text)
                log.info(
                    "analysis_completed",
                    attempts=outcome.attempt_count,
                    vocabulary=len(result.vocabulary),
                    primary_theme=result.themes.primary,
                )
                return Ok(result)
            case Err(error):
                log.warning(
                    "analysis_failed",
                    attempts=outcome.attempt_count,
                    error_code=error.code.name,
                )
                if error.code in _CONNECTION_CODES:
                    return external_service_unavailable(
                        SERVICE, "connection failed after retries", origin="analysis_engine"
                    )
                return Err(error)
        return outcome.result

    async def _attempt(self, text: str) -> Result[Any, AppError]:
        messages = [
            {"role": "system", "content": analysis_system_prompt(settings.AI_TARGET_LANGUAGE)},
            {"role": "user", "content": text},
        ]
        completion = await self._client.complete(
            messages,
            temperature=settings.AI_TEMPERATURE,
            max_tokens=settings.AI_MAX_TOKENS,
            json_mode=settings.AI_JSON_MODE,
        )
        return completion.and_then(extract_json)

    async def _on_retry(self, attempt: int, error: AppError, delay: float) -> None:
        log.warning(
            "analysis_retry",
            attempt=attempt,
            error_code=error.code.name,
            delay_seconds=delay,
        )


_engine: AnalysisEngine | None = None


def get_analysis_engine() -> AnalysisEngine:
    """Get or create the analysis engine singleton."""
    global _engine
    if _engine is None:
        _engine = AnalysisEngine()
    return _engine
