"""
Retry strategies for evaluations that hit dependency failures.

Only EvaluationError is retryable: no state was mutated, so re-running the
whole evaluation is idempotent. Configuration errors, cancellation and
optimistic-lock conflicts are never retried here.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from phasegate.exceptions import EvaluationError
from phasegate.models import RetryConfig
from phasegate.utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def build_evaluation_retrying(config: Optional[RetryConfig] = None) -> AsyncRetrying:
    """
    Create a tenacity AsyncRetrying for evaluation calls.

    Args:
        config: Retry configuration (uses defaults if None)

    Returns:
        AsyncRetrying that re-raises the last EvaluationError once attempts run out
    """
    if config is None:
        config = RetryConfig()

    return AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.initial_delay,
            min=config.initial_delay,
            max=config.max_delay,
        ),
        retry=retry_if_exception_type(EvaluationError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


async def retry_evaluation(
    call: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
) -> T:
    """Run ``call`` until it succeeds or the attempts configured in ``config`` run out."""
    async for attempt in build_evaluation_retrying(config):
        with attempt:
            return await call()
    raise RuntimeError("retry_evaluation exhausted without a result")
