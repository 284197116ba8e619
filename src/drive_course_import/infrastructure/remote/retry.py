"""Rate-limited, time-bounded retry execution for remote provider calls."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import TypeVar

import httpx

from drive_course_import.infrastructure.remote.errors import (
    RATE_LIMIT_REASONS,
    OperationTimeoutError,
    RemoteAuthError,
    RemoteRateLimitError,
    RemoteRequestError,
    RemoteResponseError,
)

LOGGER = logging.getLogger(__name__)

TResult = TypeVar("TResult")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget, per-attempt timeout and backoff curves."""

    retries: int = 6
    base_delay_ms: int = 300
    timeout_ms: int | None = 60_000
    max_rate_limit_backoff_ms: int = 8_000


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify an error as provider throttling."""
    if isinstance(error, RemoteRateLimitError):
        return True
    status_code = getattr(error, "status_code", None)
    if status_code == 429:
        return True
    if getattr(error, "reason", None) in RATE_LIMIT_REASONS:
        return True
    # Free-text fallback for errors that carry no structured code.
    return "rate limit" in str(error).lower()


def is_retryable_remote_error(error: Exception) -> bool:
    """Return whether a failed attempt may be retried."""
    if is_rate_limit_error(error):
        return True
    return not isinstance(
        error,
        (RemoteAuthError, RemoteRequestError, RemoteResponseError, httpx.HTTPStatusError),
    )


def compute_backoff_ms(
    attempt: int,
    *,
    base_delay_ms: int,
    rate_limited: bool,
    max_rate_limit_backoff_ms: int,
) -> int:
    """Delay before the next attempt; ``attempt`` counts failures starting at 1."""
    if rate_limited:
        return min(max_rate_limit_backoff_ms, max(base_delay_ms, base_delay_ms * 2**attempt))
    return max(base_delay_ms, base_delay_ms * attempt)


class RateLimiter:
    """Global pacing of outbound calls with FIFO slot reservation.

    Each caller reserves the next free slot under the lock, then sleeps outside of it
    until its slot starts, so concurrent callers are spaced by ``interval_ms`` in the
    order they reserved.
    """

    def __init__(
        self,
        interval_ms: int = 200,
        *,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")

        self._interval_seconds = interval_ms / 1000
        self._monotonic = monotonic
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_slot: float | None = None

    def acquire(self) -> float:
        """Wait for this caller's slot; returns the seconds waited."""
        with self._lock:
            now = self._monotonic()
            if self._last_slot is None:
                slot = now
            else:
                slot = max(now, self._last_slot + self._interval_seconds)
            self._last_slot = slot

        wait_seconds = slot - now
        if wait_seconds > 0:
            self._sleep(wait_seconds)
        return wait_seconds


class RetryExecutor:
    """Execute remote calls through the rate limiter with timeout and backoff."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 4,
    ) -> None:
        resolved_policy = policy or RetryPolicy()
        _validate_policy(resolved_policy)

        self._policy = resolved_policy
        self._rate_limiter = rate_limiter or RateLimiter()
        self._sleep = sleep
        self._max_workers = max_workers
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def execute(
        self,
        label: str,
        action: Callable[[], TResult],
        *,
        retries: int | None = None,
        base_delay_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> TResult:
        """Run ``action``; raise the last error once the attempt budget is spent."""
        attempts_allowed = self._policy.retries if retries is None else retries
        base_delay = self._policy.base_delay_ms if base_delay_ms is None else base_delay_ms
        timeout = self._policy.timeout_ms if timeout_ms is None else timeout_ms
        if attempts_allowed < 1:
            raise ValueError("retries must be >= 1")

        attempt = 1
        while True:
            self._rate_limiter.acquire()
            try:
                return self._run_attempt(label, action, timeout)
            except Exception as exc:
                if not is_retryable_remote_error(exc) or attempt >= attempts_allowed:
                    raise

                rate_limited = is_rate_limit_error(exc)
                delay_ms = compute_backoff_ms(
                    attempt,
                    base_delay_ms=base_delay,
                    rate_limited=rate_limited,
                    max_rate_limit_backoff_ms=self._policy.max_rate_limit_backoff_ms,
                )
                LOGGER.warning(
                    (
                        "event=remote_call_retry label=%s attempt=%s max_attempts=%s "
                        "rate_limited=%s delay_ms=%s error_type=%s"
                    ),
                    label,
                    attempt,
                    attempts_allowed,
                    rate_limited,
                    delay_ms,
                    exc.__class__.__name__,
                )
                self._sleep(delay_ms / 1000)
                attempt += 1

    def close(self) -> None:
        """Release worker threads used for per-attempt deadlines."""
        with self._pool_lock:
            pool = self._pool
            self._pool = None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)

    def _run_attempt(
        self,
        label: str,
        action: Callable[[], TResult],
        timeout_ms: int | None,
    ) -> TResult:
        if timeout_ms is None:
            return action()

        future: Future[TResult] = self._require_pool().submit(action)
        try:
            return future.result(timeout=timeout_ms / 1000)
        except FutureTimeoutError as exc:
            future.cancel()
            raise OperationTimeoutError(label, timeout_ms) from exc

    def _require_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="remote-call",
                )
            return self._pool


def _validate_policy(policy: RetryPolicy) -> None:
    if policy.retries < 1:
        raise ValueError("retries must be >= 1")
    if policy.base_delay_ms < 0:
        raise ValueError("base_delay_ms must be >= 0")
    if policy.timeout_ms is not None and policy.timeout_ms <= 0:
        raise ValueError("timeout_ms must be > 0")
    if policy.max_rate_limit_backoff_ms < 0:
        raise ValueError("max_rate_limit_backoff_ms must be >= 0")
