import asyncio

from core.errors import ErrorCode, Ok, connection_reset, rate_limited, response_malformed
from core.resilience import RetryConfig, RetryPolicy, TimeoutPolicy

from conftest import RecordingSleep


def _scripted(*results):
    queue = list(results)

    async def call():
        return queue.pop(0)

    return call


async def test_retries_until_success():
    sleep = RecordingSleep()
    policy = RetryPolicy(RetryConfig(max_attempts=3, base_delay_seconds=1.0), sleep=sleep)
    outcome = await policy.execute(_scripted(response_malformed("bad"), Ok("fine")))
    assert outcome.succeeded
    assert outcome.result.unwrap() == "fine"
    assert outcome.attempt_count == 2
    assert sleep.delays == [1.0]


async def test_attempts_are_bounded():
    sleep = RecordingSleep()
    policy = RetryPolicy(RetryConfig(max_attempts=3), sleep=sleep)
    outcome = await policy.execute(_scripted(*(connection_reset("ai") for _ in range(3))))
    assert not outcome.succeeded
    assert outcome.attempt_count == 3
    assert len(sleep.delays) == 2


async def test_non_retryable_errors_return_immediately():
    sleep = RecordingSleep()
    policy = RetryPolicy(RetryConfig(max_attempts=3), sleep=sleep)
    outcome = await policy.execute(_scripted(rate_limited("ai")))
    assert outcome.attempt_count == 1
    assert outcome.result.unwrap_err().code is ErrorCode.E1013_PROVIDER_RATE_LIMITED
    assert sleep.delays == []


async def test_delay_overrides_per_code():
    sleep = RecordingSleep()
    config = RetryConfig(
        max_attempts=3,
        base_delay_seconds=1.0,
        delay_overrides={ErrorCode.E1001_CONNECTION_RESET: 2.0},
    )
    policy = RetryPolicy(config, sleep=sleep)
    await policy.execute(_scripted(connection_reset("ai"), response_malformed("bad"), Ok(1)))
    assert sleep.delays == [2.0, 1.0]


def test_delay_is_capped():
    config = RetryConfig(base_delay_seconds=45, max_delay_seconds=10)
    assert config.delay_for(connection_reset("ai").unwrap_err()) == 10


async def test_no_retry_past_the_total_budget():
    sleep = RecordingSleep()
    policy = RetryPolicy(
        RetryConfig(max_attempts=3, max_total_seconds=1.5, delay_overrides={ErrorCode.E1001_CONNECTION_RESET: 2.0}),
        sleep=sleep,
    )
    outcome = await policy.execute(_scripted(connection_reset("ai"), Ok("never reached")))
    assert outcome.attempt_count == 1
    assert outcome.result.unwrap_err().code is ErrorCode.E1001_CONNECTION_RESET
    assert sleep.delays == []


async def test_retries_inside_the_total_budget():
    sleep = RecordingSleep()
    policy = RetryPolicy(RetryConfig(max_attempts=3, max_total_seconds=60), sleep=sleep)
    outcome = await policy.execute(_scripted(connection_reset("ai"), Ok("fine")))
    assert outcome.succeeded
    assert sleep.delays == [1.0]


async def test_exceptions_become_errors():
    async def boom():
        raise RuntimeError("socket closed")

    outcome = await RetryPolicy(RetryConfig(max_attempts=1)).execute(boom)
    assert outcome.result.is_err()
    assert outcome.attempt_count == 1


async def test_timeout_policy():
    async def slow():
        await asyncio.sleep(1)
        return Ok("late")

    result = await TimeoutPolicy(0.01, operation_name="slow_call").execute(slow)
    error = result.unwrap_err()
    assert error.code is ErrorCode.E1002_TIMEOUT
    assert error.metadata["operation"] == "slow_call"
