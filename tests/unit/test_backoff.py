"""Unit tests for the rate-limit backoff helper and error classification."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from conftest import RateLimitError, RecordingSleep

from tenant_rag.backoff import RetryPolicy, retry_with_backoff
from tenant_rag.errors import RateLimited, VectorStoreFailure, is_rate_limited


class _Flaky:
    """Callable raising the queued errors before returning ``"ok"``."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestRetryWithBackoff:
    async def test_first_attempt_success_does_not_sleep(
        self, retry_policy: RetryPolicy, sleep: RecordingSleep
    ) -> None:
        op = _Flaky()
        assert await retry_with_backoff(op, retry_policy) == "ok"
        assert op.calls == 1
        assert sleep.delays == []

    async def test_retries_rate_limits_with_doubling_delay(
        self, retry_policy: RetryPolicy, sleep: RecordingSleep
    ) -> None:
        op = _Flaky(RateLimitError("slow down"), RateLimitError("slow down"))
        assert await retry_with_backoff(op, retry_policy) == "ok"
        assert op.calls == 3
        assert sleep.delays == [1.0, 2.0]

    async def test_exhaustion_raises_rate_limited_after_five_attempts(
        self, retry_policy: RetryPolicy, sleep: RecordingSleep
    ) -> None:
        last = RateLimitError("still throttled")
        op = _Flaky(*[RateLimitError("throttled")] * 4, last)
        with pytest.raises(RateLimited) as excinfo:
            await retry_with_backoff(op, retry_policy, label="upsert")
        assert op.calls == 5
        assert sleep.delays == [1.0, 2.0, 4.0, 8.0]
        assert excinfo.value.__cause__ is last

    async def test_other_errors_propagate_immediately(
        self, retry_policy: RetryPolicy, sleep: RecordingSleep
    ) -> None:
        op = _Flaky(KeyError("boom"))
        with pytest.raises(KeyError):
            await retry_with_backoff(op, retry_policy)
        assert op.calls == 1
        assert sleep.delays == []

    async def test_custom_classifier_and_attempts(self, sleep: RecordingSleep) -> None:
        policy = RetryPolicy(
            max_attempts=2,
            base_delay=0.5,
            classifier=lambda exc: isinstance(exc, TimeoutError),
            sleep=sleep,
        )
        op = _Flaky(TimeoutError(), TimeoutError())
        with pytest.raises(RateLimited):
            await retry_with_backoff(op, policy)
        assert sleep.delays == [0.5]

    def test_delay_schedule(self) -> None:
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.delay_for(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]


class TestIsRateLimited:
    def test_status_code_429(self) -> None:
        assert is_rate_limited(RateLimitError("x"))

    def test_status_attribute_429(self) -> None:
        exc = Exception("Too many")
        exc.status = 429  # type: ignore[attr-defined]
        assert is_rate_limited(exc)

    def test_message_match(self) -> None:
        assert is_rate_limited(RuntimeError("Request failed: rate limit exceeded"))

    def test_other_status_is_not_rate_limited(self) -> None:
        assert not is_rate_limited(SimpleNamespace(status_code=500))  # type: ignore[arg-type]
        assert not is_rate_limited(ValueError("bad input"))

    def test_own_errors_are_never_retried(self) -> None:
        assert not is_rate_limited(RateLimited("still rate limited after 5 attempts"))
        assert not is_rate_limited(VectorStoreFailure("rate limit exceeded"))
