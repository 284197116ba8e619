"""Unit tests for rate limiting, per-attempt deadlines and backoff."""

from __future__ import annotations

import threading

import httpx
import pytest

from drive_course_import.infrastructure.remote.errors import (
    OperationTimeoutError,
    RemoteAuthError,
    RemoteProviderError,
    RemoteRateLimitError,
    RemoteRequestError,
    RemoteServerError,
)
from drive_course_import.infrastructure.remote.retry import (
    RateLimiter,
    RetryExecutor,
    RetryPolicy,
    compute_backoff_ms,
    is_rate_limit_error,
    is_retryable_remote_error,
)


def test_rate_limit_backoff_is_non_decreasing_and_capped() -> None:
    delays = [
        compute_backoff_ms(
            attempt,
            base_delay_ms=300,
            rate_limited=True,
            max_rate_limit_backoff_ms=8000,
        )
        for attempt in range(1, 8)
    ]

    assert delays == [600, 1200, 2400, 4800, 8000, 8000, 8000]
    assert delays == sorted(delays)


def test_generic_backoff_is_linear() -> None:
    for attempt in range(1, 6):
        delay = compute_backoff_ms(
            attempt,
            base_delay_ms=300,
            rate_limited=False,
            max_rate_limit_backoff_ms=8000,
        )
        assert delay == max(300, 300 * attempt)


def test_rate_limit_classification_prefers_structured_signals() -> None:
    assert is_rate_limit_error(RemoteRateLimitError("throttled"))
    assert is_rate_limit_error(RemoteProviderError("quota", status_code=429))
    assert is_rate_limit_error(RemoteProviderError("quota", reason="userRateLimitExceeded"))
    assert is_rate_limit_error(RuntimeError("User Rate Limit Exceeded"))
    assert not is_rate_limit_error(RemoteServerError("boom", status_code=503))


def test_retryable_classification_rejects_client_and_auth_errors() -> None:
    assert is_retryable_remote_error(RemoteServerError("boom", status_code=500))
    assert is_retryable_remote_error(httpx.ReadTimeout("slow"))
    assert not is_retryable_remote_error(RemoteAuthError("denied", status_code=401))
    assert not is_retryable_remote_error(RemoteRequestError("missing", status_code=404))


def test_execute_retries_generic_error_with_linear_delay() -> None:
    attempts = {"count": 0}
    sleep_calls: list[float] = []

    def action() -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise RemoteServerError("unavailable", status_code=503)
        return "ok"

    executor = _make_executor(sleep_calls, retries=4)

    assert executor.execute("drive.list:root", action) == "ok"
    assert attempts["count"] == 3
    assert sleep_calls == [0.3, 0.6]


def test_execute_retries_rate_limit_with_exponential_delay() -> None:
    attempts = {"count": 0}
    sleep_calls: list[float] = []

    def action() -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise RemoteRateLimitError("429", status_code=429)
        return "ok"

    executor = _make_executor(sleep_calls, retries=4)

    assert executor.execute("drive.list:root", action) == "ok"
    assert sleep_calls == [0.6, 1.2]


def test_execute_raises_last_error_when_attempts_exhausted() -> None:
    attempts = {"count": 0}
    sleep_calls: list[float] = []

    def action() -> str:
        attempts["count"] += 1
        raise RemoteServerError(f"boom {attempts['count']}", status_code=500)

    executor = _make_executor(sleep_calls, retries=3)

    with pytest.raises(RemoteServerError, match="boom 3"):
        executor.execute("drive.export:file", action)
    assert attempts["count"] == 3
    assert len(sleep_calls) == 2


def test_execute_does_not_retry_auth_error() -> None:
    attempts = {"count": 0}
    sleep_calls: list[float] = []

    def action() -> str:
        attempts["count"] += 1
        raise RemoteAuthError("denied", status_code=401)

    executor = _make_executor(sleep_calls, retries=5)

    with pytest.raises(RemoteAuthError):
        executor.execute("drive.list:root", action)
    assert attempts["count"] == 1
    assert sleep_calls == []


def test_execute_rejects_zero_retries() -> None:
    executor = _make_executor([], retries=2)

    with pytest.raises(ValueError):
        executor.execute("drive.list:root", lambda: "ok", retries=0)
    with pytest.raises(ValueError):
        RetryExecutor(RetryPolicy(retries=0))


def test_execute_times_out_single_attempt_and_retries() -> None:
    release = threading.Event()
    attempts = {"count": 0}
    sleep_calls: list[float] = []

    def action() -> str:
        attempts["count"] += 1
        if attempts["count"] == 1:
            release.wait(2.0)
            return "late"
        return "ok"

    executor = RetryExecutor(
        RetryPolicy(retries=2, base_delay_ms=10, timeout_ms=50),
        rate_limiter=RateLimiter(0),
        sleep=sleep_calls.append,
    )
    try:
        assert executor.execute("drive.export:slow", action) == "ok"
    finally:
        release.set()
        executor.close()

    assert attempts["count"] == 2
    assert sleep_calls == [0.01]


def test_execute_raises_timeout_error_with_label() -> None:
    release = threading.Event()
    executor = RetryExecutor(
        RetryPolicy(retries=1, base_delay_ms=0, timeout_ms=50),
        rate_limiter=RateLimiter(0),
        sleep=lambda _: None,
    )
    try:
        with pytest.raises(OperationTimeoutError) as exc_info:
            executor.execute("drive.list:stuck", lambda: release.wait(2.0))
    finally:
        release.set()
        executor.close()

    assert isinstance(exc_info.value, TimeoutError)
    assert exc_info.value.label == "drive.list:stuck"
    assert exc_info.value.timeout_ms == 50


def test_rate_limiter_spaces_consecutive_calls() -> None:
    clock = _FakeClock()
    limiter = RateLimiter(200, monotonic=clock.monotonic, sleep=clock.sleep)

    waits = [limiter.acquire() for _ in range(3)]

    assert waits == pytest.approx([0.0, 0.2, 0.2])
    assert clock.now == pytest.approx(0.4)


def test_rate_limiter_reserves_distinct_slots_for_concurrent_callers() -> None:
    waits: list[float] = []
    lock = threading.Lock()
    limiter = RateLimiter(200, monotonic=lambda: 0.0, sleep=lambda _: None)

    def worker() -> None:
        waited = limiter.acquire()
        with lock:
            waits.append(waited)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(waits) == pytest.approx([0.0, 0.2, 0.4, 0.6, 0.8])


def _make_executor(sleep_calls: list[float], *, retries: int) -> RetryExecutor:
    return RetryExecutor(
        RetryPolicy(retries=retries, base_delay_ms=300, timeout_ms=None),
        rate_limiter=RateLimiter(0),
        sleep=sleep_calls.append,
    )


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds
