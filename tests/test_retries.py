from __future__ import annotations

import pytest

from reliefdesk.core.fetch import RetryConfig, call_with_retry


def test_call_with_retry_recovers():
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("reset")
        return "ok"

    config = RetryConfig(max_attempts=3, min_wait=0, max_wait=0)
    assert call_with_retry(flaky, config=config) == "ok"
    assert len(attempts) == 3


def test_only_listed_exceptions_are_retried():
    attempts = []

    def rejects():
        attempts.append(1)
        raise KeyError("not transient")

    config = RetryConfig(max_attempts=5, min_wait=0, max_wait=0, retry_exceptions=(ConnectionError,))
    with pytest.raises(KeyError):
        call_with_retry(rejects, config=config)
    assert len(attempts) == 1


def test_last_error_is_reraised():
    def always_down():
        raise TimeoutError("still down")

    with pytest.raises(TimeoutError, match="still down"):
        call_with_retry(always_down, config=RetryConfig(max_attempts=2, min_wait=0, max_wait=0))
