"""
Retry Unit Tests
Tests for census/retry.py
"""
import pytest

from census.retry import RetryPolicy, call_with_retries, is_retryable
from census.schemas.errors import FeedDataError, FeedUnavailable, HashError


class Flaky:
    def __init__(self, failures: int, error=None):
        self.failures = failures
        self.error = error or FeedUnavailable("down")
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestRetryPolicy:

    def test_exponential_delays(self):
        policy = RetryPolicy(initial_delay=1.0, backoff_factor=2.0, max_delay=10.0)
        assert [policy.delay_for(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_none(self):
        assert RetryPolicy.none().max_retries == 0


class TestCallWithRetries:

    def test_succeeds_after_transient_failures(self):
        delays = []
        fn = Flaky(failures=2)
        result = call_with_retries(fn, RetryPolicy(max_retries=3), sleep=delays.append)
        assert result == "ok"
        assert fn.calls == 3
        assert delays == [1.0, 2.0]

    def test_exhausted_retries_reraise(self):
        fn = Flaky(failures=10)
        with pytest.raises(FeedUnavailable):
            call_with_retries(fn, RetryPolicy(max_retries=2), sleep=lambda s: None)
        assert fn.calls == 3

    def test_non_retryable_not_retried(self):
        fn = Flaky(failures=1, error=FeedDataError("bad payload"))
        with pytest.raises(FeedDataError):
            call_with_retries(fn, RetryPolicy(max_retries=5), sleep=lambda s: None)
        assert fn.calls == 1

    def test_foreign_exceptions_propagate(self):
        fn = Flaky(failures=1, error=RuntimeError("bug"))
        with pytest.raises(RuntimeError):
            call_with_retries(fn, RetryPolicy(max_retries=5), sleep=lambda s: None)
        assert fn.calls == 1

    def test_hash_errors_are_retryable(self):
        assert is_retryable(HashError("transient"))
        assert not is_retryable(FeedDataError("bad"))
        assert not is_retryable(ValueError("x"))
