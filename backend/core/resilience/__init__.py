"""Resilience Patterns

Bounded retry with per-error backoff, and per-attempt timeouts, for calls
to the AI completion provider.
"""
from .retry import (
    CombinedPolicy,
    RetryConfig,
    RetryPolicy,
    RetryResult,
    TimeoutPolicy,
)

__all__ = [
    "CombinedPolicy",
    "RetryConfig",
    "RetryPolicy",
    "RetryResult",
    "TimeoutPolicy",
]
