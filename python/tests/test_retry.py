"""Tests for bounded exponential backoff."""

import httpx
import pytest

from zeal.services.retry import (
    TransferError,
    backoff_delay,
    is_transient_error,
    retry_with_backoff,
)


class TestTransientClassification:
    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("reset"),
            httpx.ReadTimeout("slow"),
            httpx.RemoteProtocolError("aborted"),
            TransferError("bad gateway", status_code=502),
        ],
    )
    def test_transient(self, exc):
        assert is_transient_error(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            TransferError("forbidden", status_code=403),
            TransferError("no etag"),
            ValueError("bug"),
        ],
    )
    def test_not_transient(self, exc):
        assert not is_transient_error(exc)


class TestRetryWithBackoff:
    def test_delays_double(self):
        assert [backoff_delay(n, 1.0) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_retries_then_succeeds(self):
        calls = []
        sleeps = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise httpx.ConnectError("reset")
            return "ok"

        result = retry_with_backoff(flaky, attempts=3, base_delay=1.0, sleep=sleeps.append)

        assert result == "ok"
        assert sleeps == [1.0, 2.0]

    def test_gives_up_after_attempts(self):
        sleeps = []

        def always_fails():
            raise TransferError("unavailable", status_code=503)

        with pytest.raises(TransferError):
            retry_with_backoff(always_fails, attempts=3, base_delay=0.5, sleep=sleeps.append)
        assert sleeps == [0.5, 1.0]

    def test_permanent_failure_not_retried(self):
        sleeps = []

        def forbidden():
            raise TransferError("forbidden", status_code=403)

        with pytest.raises(TransferError):
            retry_with_backoff(forbidden, attempts=3, sleep=sleeps.append)
        assert sleeps == []

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            retry_with_backoff(lambda: None, attempts=0)
