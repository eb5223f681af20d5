"""Bounded Retry and Timeout Policies

Retries are an explicit loop with an attempt counter. The delay before a
retry depends on the error kind: a malformed AI reply is retried quickly,
a dropped connection waits longer. Anything not listed as retryable fails
on the first attempt, and no retry starts once the elapsed time plus its
delay would exceed ``max_total_seconds``.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Generic, Mapping, TypeVar

from core.errors import AppError, ErrorCode, Err, Ok, Result, from_exception, timeout_error

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    ``max_attempts`` counts the first call, so two retries means three
    attempts. ``delay_overrides`` pins the delay for specific codes.
    """
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    max_total_seconds: float | None = None
    retryable_codes: frozenset[ErrorCode] = field(
        default_factory=lambda: frozenset({
            ErrorCode.E1000_NETWORK_GENERIC,
            ErrorCode.E1001_CONNECTION_RESET,
            ErrorCode.E1002_TIMEOUT,
            ErrorCode.E1015_RESPONSE_MALFORMED,
        })
    )
    delay_overrides: Mapping[ErrorCode, float] = field(default_factory=dict)

    def delay_for(self, error: AppError) -> float:
        base = self.delay_overrides.get(error.code, self.base_delay_seconds)
        return max(0.0, min(base, self.max_delay_seconds))


@dataclass
class RetryAttempt:
    attempt_number: int
    started_at: datetime
    error: AppError | None = None


@dataclass
class RetryResult(Generic[T]):
    """Final result plus the history of attempts that produced it."""
    result: Result[T, AppError]
    attempts: list[RetryAttempt]
    total_duration_seconds: float

    @property
    def succeeded(self) -> bool:
        return self.result.is_ok()

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


class RetryPolicy(Generic[T]):
    """Runs a Result-returning coroutine factory up to ``max_attempts`` times.

    Usage:
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        outcome = await policy.execute(lambda: client.complete(prompt))
        match outcome.result:
            case Ok(text): ...
            case Err(error): ...
    """

    def __init__(self, config: RetryConfig | None = None, sleep: Sleeper | None = None):
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep

    def should_retry(self, error: AppError, attempt: int) -> bool:
        if attempt >= self.config.max_attempts:
            return False
        return error.code in self.config.retryable_codes

    async def execute(
        self,
        fn: Callable[[], Awaitable[Result[T, AppError]]],
        on_retry: Callable[[int, AppError, float], Awaitable[None]] | None = None,
    ) -> RetryResult[T]:
        """Execute ``fn`` under the policy.

        Args:
            fn: zero-argument callable returning a fresh awaitable per attempt
            on_retry: awaited before each retry with (attempt, error, delay)
        """
        attempts: list[RetryAttempt] = []
        start_time = datetime.now(timezone.utc)
        started = time.monotonic()
        result: Result[T, AppError] = Err(AppError(
            code=ErrorCode.E9001_UNEXPECTED_ERROR,
            message="Retry policy made no attempts",
        ))

        for attempt in range(1, max(self.config.max_attempts, 1) + 1):
            attempt_start = datetime.now(timezone.utc)
            try:
                result = await fn()
            except Exception as e:
                result = from_exception(e, origin="retry_policy")

            match result:
                case Ok(_):
                    attempts.append(RetryAttempt(attempt, attempt_start))
                    break
                case Err(error):
                    attempts.append(RetryAttempt(attempt, attempt_start, error))
                    if not self.should_retry(error, attempt):
                        break
                    delay = self.config.delay_for(error)
                    budget = self.config.max_total_seconds
                    if budget is not None and time.monotonic() - started + delay >= budget:
                        break
                    if on_retry:
                        await on_retry(attempt, error, delay)
                    await self._sleep(delay)

        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
        return RetryResult(result=result, attempts=attempts, total_duration_seconds=elapsed)


class TimeoutPolicy(Generic[T]):
    """Bounds a single awaitable; expiry becomes an E1002 timeout error.

    ``asyncio.wait_for`` cancels the awaiting coroutine, which is as far as
    cancellation reaches toward the outbound request.
    """

    def __init__(self, timeout_seconds: float, operation_name: str = "operation"):
        self.timeout_seconds = timeout_seconds
        self.operation_name = operation_name

    async def execute(
        self,
        fn: Callable[[], Awaitable[Result[T, AppError]]],
    ) -> Result[T, AppError]:
        try:
            return await asyncio.wait_for(fn(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return timeout_error(
                self.operation_name,
                self.timeout_seconds,
                origin="timeout_policy",
            )


class CombinedPolicy(Generic[T]):
    """Timeout per attempt, retried under a RetryPolicy."""

    def __init__(
        self,
        timeout_seconds: float,
        retry_config: RetryConfig | None = None,
        operation_name: str = "operation",
        sleep: Sleeper | None = None,
    ):
        self.timeout = TimeoutPolicy[T](timeout_seconds, operation_name)
        self.retry = RetryPolicy[T](retry_config, sleep=sleep)

    async def execute(
        self,
        fn: Callable[[], Awaitable[Result[T, AppError]]],
        on_retry: Callable[[int, AppError, float], Awaitable[None]] | None = None,
    ) -> RetryResult[T]:
        async def timed_fn() -> Result[T, AppError]:
            return await self.timeout.execute(fn)

        return await self.retry.execute(timed_fn, on_retry)
