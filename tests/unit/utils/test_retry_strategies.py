"""
Unit tests for evaluation retry strategies.
"""

import pytest

from phasegate.exceptions import ConfigurationError, EvaluationError
from phasegate.models import RetryConfig
from phasegate.utils.retry_strategies import build_evaluation_retrying, retry_evaluation

FAST = RetryConfig(max_attempts=3, initial_delay=0.0, max_delay=0.0)


@pytest.mark.asyncio
async def test_retry_until_success():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise EvaluationError("store unavailable", gate="g", collection="rfi")
        return "ok"

    assert await retry_evaluation(flaky, FAST) == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_last_error_reraised_when_attempts_run_out():
    calls = []

    async def always_fails():
        calls.append(1)
        raise EvaluationError(f"attempt {len(calls)}")

    with pytest.raises(EvaluationError, match="attempt 3"):
        await retry_evaluation(always_fails, FAST)


@pytest.mark.asyncio
async def test_non_retryable_errors_propagate_immediately():
    calls = []

    async def misconfigured():
        calls.append(1)
        raise ConfigurationError("no gate")

    with pytest.raises(ConfigurationError):
        await retry_evaluation(misconfigured, FAST)
    assert len(calls) == 1


def test_default_config():
    retrying = build_evaluation_retrying()
    assert retrying.stop.max_attempt_number == RetryConfig().max_attempts
