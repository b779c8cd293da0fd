"""
Unit tests for RetryPolicy and the backoff functions.
"""

import pytest

from ggetracker.core.http.retry_policy import RetryPolicy, exponential_backoff, no_backoff


class Flaky:
    def __init__(self, failures, error=RuntimeError("transient")):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestExecute:
    async def test_success_first_try(self):
        operation = Flaky(0)
        assert await RetryPolicy().execute(operation, "op") == "ok"
        assert operation.calls == 1

    async def test_recovers_within_attempts(self, caplog):
        operation = Flaky(2)
        assert await RetryPolicy(max_attempts=3).execute(operation, "op") == "ok"
        assert operation.calls == 3
        warnings = [r for r in caplog.records if r.getMessage() == "Operation failed, retrying"]
        assert len(warnings) == 2

    async def test_exhaustion_reraises_last_error(self):
        operation = Flaky(5)
        with pytest.raises(RuntimeError, match="transient"):
            await RetryPolicy(max_attempts=3).execute(operation, "op")
        assert operation.calls == 3

    async def test_non_retryable_error_is_raised_immediately(self):
        operation = Flaky(5, error=KeyError("fatal"))
        policy = RetryPolicy(max_attempts=3, retry_on=(RuntimeError,))
        with pytest.raises(KeyError):
            await policy.execute(operation, "op")
        assert operation.calls == 1

    async def test_max_attempts_override(self):
        operation = Flaky(5)
        with pytest.raises(RuntimeError):
            await RetryPolicy(max_attempts=3).execute(operation, "op", max_attempts=1)
        assert operation.calls == 1

    async def test_backoff_delays_are_slept(self, mocker):
        sleep = mocker.patch("ggetracker.core.http.retry_policy.asyncio.sleep")
        policy = RetryPolicy(max_attempts=3, backoff=exponential_backoff(initial=0.1, jitter=False))

        await policy.execute(Flaky(2), "op")

        assert [call.args[0] for call in sleep.call_args_list] == [0.1, 0.2]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestBackoff:
    def test_no_backoff(self):
        assert no_backoff(1) == 0.0
        assert no_backoff(10) == 0.0

    def test_exponential_is_capped(self):
        backoff = exponential_backoff(initial=0.5, multiplier=2.0, max_delay=1.5, jitter=False)
        assert [backoff(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 1.5, 1.5]

    def test_jitter_stays_within_cap(self):
        backoff = exponential_backoff(initial=0.1, multiplier=2.0, max_delay=2.0, jitter=True)
        for attempt in range(1, 10):
            assert 0.0 <= backoff(attempt) <= 2.2
