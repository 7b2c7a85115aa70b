"""Bounded exponential backoff for transient transfer failures.

Only the chunked part-upload procedure retries; every other storage call
site fails fast.
"""

import time
from collections.abc import Callable
from typing import TypeVar

import httpx

from zeal.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_HTTPX_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class TransferError(Exception):
    """A part transfer failed with an HTTP status or malformed response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def is_transient_error(exc: BaseException) -> bool:
    """Connection resets, timeouts, DNS failures, aborted requests and 5xx are transient.

    httpx reports DNS failures and resets as ConnectError / ReadError, both
    NetworkError subclasses.
    """
    if isinstance(exc, TRANSIENT_HTTPX_ERRORS):
        return True
    status_code = getattr(exc, "status_code", None)
    if status_code is None and isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
    return status_code is not None and 500 <= status_code < 600


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before retrying after the given (1-based) failed attempt."""
    return base_delay * (2 ** (attempt - 1))


def retry_with_backoff(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    sleep: Callable[[float], None] = time.sleep,
    operation: str = "operation",
) -> T:
    """Call fn until it succeeds, retrying retryable failures.

    Args:
        fn: Zero-argument callable to invoke.
        attempts: Total attempts, including the first.
        base_delay: Delay after the first failure; doubles each retry.
        is_retryable: Predicate deciding whether a failure is retried.
        sleep: Injected for tests.
        operation: Label for log events.

    Raises:
        The last exception once attempts are exhausted, or the first
        non-retryable exception immediately.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as e:
            if attempt >= attempts or not is_retryable(e):
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "retry_scheduled",
                operation=operation,
                attempt=attempt,
                max_attempts=attempts,
                delay_s=delay,
                error=str(e),
            )
            sleep(delay)

    raise AssertionError("unreachable")
