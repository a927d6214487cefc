"""Retry helpers for calls to external providers."""

from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from curriculum_rag.config import RetrySettings
from curriculum_rag.utils.errors import TransientProviderError
from curriculum_rag.utils.logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    logger.warning(
        f"Transient provider failure (attempt {retry_state.attempt_number}), retrying: {error}"
    )


def build_retrying(retry_settings: Optional[RetrySettings] = None) -> AsyncRetrying:
    """
    Build a tenacity retrier that only retries TransientProviderError.

    Permanent errors propagate on the first attempt without consuming the retry
    budget. The last exception is re-raised once attempts are exhausted.
    """
    cfg = retry_settings or RetrySettings()
    return AsyncRetrying(
        reraise=True,
        stop=stop_after_attempt(max(1, cfg.max_attempts)),
        wait=wait_exponential(
            multiplier=cfg.initial_delay,
            exp_base=cfg.multiplier,
            max=cfg.max_delay,
        ),
        retry=retry_if_exception_type(TransientProviderError),
        before_sleep=_log_retry,
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retry_settings: Optional[RetrySettings] = None,
) -> T:
    """Run an async operation under the transient-only retry policy."""
    async for attempt in build_retrying(retry_settings):
        with attempt:
            return await operation()
    # unreachable: reraise=True
    raise TransientProviderError("Retries exhausted")
