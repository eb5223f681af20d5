"""Completion Client

Thin wrapper over ``AsyncOpenAI`` chat completions: text in, text out, or
an AppError classified by how the caller should react (retry or not).
Retries are owned by the caller's RetryPolicy, so the SDK's own retries
are disabled.
"""
import json
import re
from typing import Any

import openai
from openai import AsyncOpenAI

from core.config import settings
from core.errors import (
    AppError,
    Ok,
    Result,
    connection_reset,
    external_service_unavailable,
    network_error,
    provider_auth_failed,
    rate_limited,
    response_malformed,
    timeout_error,
    ErrorCode,
)
from core.logging import ai_logger

log = ai_logger()

SERVICE = "ai_provider"

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class CompletionClient:
    """Sends chat messages to an OpenAI-compatible endpoint."""

    __slots__ = ("_client", "_model", "_timeout")

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ):
        key = api_key if api_key is not None else settings.AI_API_KEY
        self._model = model or settings.AI_MODEL_ID
        self._timeout = timeout_seconds or settings.AI_TIMEOUT_SECONDS
        self._client = (
            AsyncOpenAI(
                api_key=key,
                base_url=base_url or settings.AI_BASE_URL,
                max_retries=0,
                timeout=self._timeout,
            )
            if key
            else None
        )
        log.debug("completion_client_initialized", model=self._model, has_key=bool(key))

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> Result[str, AppError]:
        if self._client is None:
            return provider_auth_failed(SERVICE, "API key not configured", origin="completion")

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            return self._map_exception(e)

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            return response_malformed("empty completion", origin="completion")

        log.debug(
            "completion_received",
            model=self._model,
            tokens=response.usage.total_tokens if response.usage else 0,
        )
        return Ok(content)

    def _map_exception(self, exc: openai.APIError) -> Result[str, AppError]:
        origin = "completion"
        # APITimeoutError subclasses APIConnectionError: check it first
        if isinstance(exc, openai.APITimeoutError):
            return timeout_error("ai_completion", self._timeout, origin=origin)
        if isinstance(exc, openai.APIConnectionError):
            return connection_reset(SERVICE, origin=origin, cause=exc)
        if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return provider_auth_failed(SERVICE, origin=origin)
        if isinstance(exc, openai.RateLimitError):
            return rate_limited(SERVICE, origin=origin)
        if isinstance(exc, openai.APIStatusError):
            if exc.status_code >= 500:
                return external_service_unavailable(
                    SERVICE, f"HTTP {exc.status_code}", origin=origin, status_code=exc.status_code
                )
            return network_error(
                f"AI provider rejected the request (HTTP {exc.status_code})",
                code=ErrorCode.E1020_PROVIDER_REJECTED,
                status_code=exc.status_code,
                origin=origin,
                cause=exc,
            )
        return network_error(
            "AI provider request failed",
            code=ErrorCode.E1011_PROVIDER_ERROR,
            origin=origin,
            cause=exc,
        )


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def extract_json(text: str) -> Result[Any, AppError]:
    """Parse a JSON value out of a possibly markdown-wrapped reply.

    Tries the fence-stripped text first, then the widest ``{...}`` or
    ``[...]`` span inside it.
    """
    cleaned = strip_code_fences(text)
    try:
        return Ok(json.loads(cleaned))
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = cleaned.find(opener), cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return Ok(json.loads(cleaned[start:end + 1]))
            except json.JSONDecodeError:
                continue

    log.debug("json_extraction_failed", preview=cleaned[:120])
    return response_malformed("no JSON value found", origin="completion")
