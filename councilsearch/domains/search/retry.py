"""
Retry Policy - Exponential backoff for search engine cold starts.

The search engine (and the ranking model attached to it) can answer with
transient errors while nodes or model deployments are still warming up.
This module decides which failures are worth another attempt and runs an
operation under tenacity with a bounded backoff.

Only wrap operations that are safe to repeat: searches, count-only queries
and replace-by-value writes.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from councilsearch.config.errors import TransientInfraError

if TYPE_CHECKING:
    from councilsearch.config.settings import Settings

logger = logging.getLogger(__name__)

__all__ = ["RetryEvent", "RetryPolicy", "is_retryable", "summarize_error"]

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 503, 504})

# Cold-start symptoms reported by the engine or an attached inference model
COLD_START_MARKERS = (
    "model is being loaded",
    "model_loading",
    "deployment not found",
    "inference",
    "not ready",
    "starting",
    "allocat",
)

CONNECTION_MARKERS = (
    "econnrefused",
    "connection refused",
    "econnreset",
    "connection reset",
    "etimedout",
    "timed out",
    "socket hang up",
    "no living connections",
    "request aborted",
)

_CONNECTION_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)

_SECRET_PATTERNS = (
    (re.compile(r"(ApiKey|Bearer|Basic)\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE), r"\1 ***"),
    (re.compile(r"((?:api_?)?key|token|password)=([^&\s]+)", re.IGNORECASE), r"\1=***"),
    (re.compile(r"://[^/\s:@]+:[^/\s@]+@"), "://***:***@"),
)

MAX_SUMMARY_LENGTH = 300


def _status_code(error: BaseException) -> int | None:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable(error: BaseException) -> bool:
    """Return True when ``error`` looks transient (cold start or connectivity)."""
    if isinstance(error, TransientInfraError):
        return True
    if isinstance(error, _CONNECTION_ERRORS):
        return True

    status = _status_code(error)
    if status is not None:
        if status in RETRYABLE_STATUS_CODES:
            return True
        text = " ".join(
            str(part)
            for part in (
                getattr(error, "reason", ""),
                getattr(error, "error_type", ""),
                error,
            )
        ).lower()
        return any(marker in text for marker in COLD_START_MARKERS)

    message = str(error).lower()
    return any(marker in message for marker in CONNECTION_MARKERS)


def summarize_error(error: BaseException) -> str:
    """Short, credential-free description of an error for logs."""
    status = _status_code(error)
    text = f"Status {status}: {error}" if status is not None else f"{type(error).__name__}: {error}"
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    if len(text) > MAX_SUMMARY_LENGTH:
        text = text[: MAX_SUMMARY_LENGTH - 3] + "..."
    return text


@dataclass(frozen=True)
class RetryEvent:
    """Emitted before each retry."""

    context: str
    attempt: int
    delay_ms: int
    error_summary: str


def _log_retry(event: RetryEvent) -> None:
    logger.warning(
        "[%s] Retry attempt %d after %dms delay. Error: %s",
        event.context,
        event.attempt,
        event.delay_ms,
        event.error_summary,
    )


class RetryPolicy:
    """
    Retry wrapper for idempotent search engine and count operations.

    Example:
        >>> policy = RetryPolicy()
        >>> response = await policy.execute(lambda: client.search(index, body), "Search")
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay_ms: int = 2000,
        max_delay_ms: int = 10000,
        backoff_multiplier: float = 2.0,
        on_retry: Callable[[RetryEvent], None] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        classifier: Callable[[BaseException], bool] = is_retryable,
    ) -> None:
        """
        Initialize retry policy.

        Args:
            max_attempts: Total attempts, including the first
            initial_delay_ms: Delay before the first retry
            max_delay_ms: Upper bound for any single delay
            backoff_multiplier: Growth factor between delays
            on_retry: Observability callback, defaults to a warning log
            sleep: Awaitable sleep, replaceable in tests
            classifier: Decides whether an error is retryable
        """
        self.max_attempts = max_attempts
        self.initial_delay_ms = initial_delay_ms
        self.max_delay_ms = max_delay_ms
        self.backoff_multiplier = backoff_multiplier
        self._on_retry = on_retry or _log_retry
        self._sleep = sleep
        self._classifier = classifier

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay_ms=settings.retry_initial_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            backoff_multiplier=settings.retry_backoff_multiplier,
            **kwargs,
        )

    def delay_ms(self, attempt: int) -> int:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        delay = self.initial_delay_ms * self.backoff_multiplier ** (attempt - 1)
        return int(min(delay, self.max_delay_ms))

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str = "Elasticsearch operation",
        timeout: float | None = None,
    ) -> T:
        """
        Run ``operation`` with retries.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt
            context: Label used in retry logs
            timeout: Overall deadline in seconds, backoff sleeps included

        Returns:
            The operation's result

        Raises:
            The last error when it is not retryable or attempts run out;
            asyncio.TimeoutError when the deadline passes first.
        """
        if timeout is not None:
            return await asyncio.wait_for(self._run(operation, context), timeout)
        return await self._run(operation, context)

    async def _run(self, operation: Callable[[], Awaitable[T]], context: str) -> T:
        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            delay = state.next_action.sleep if state.next_action else 0.0
            self._on_retry(
                RetryEvent(
                    context=context,
                    attempt=state.attempt_number,
                    delay_ms=int(round(delay * 1000)),
                    error_summary=summarize_error(error) if error else "unknown error",
                )
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception(self._classifier),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay_ms / 1000,
                exp_base=self.backoff_multiplier,
                max=self.max_delay_ms / 1000,
            ),
            before_sleep=before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(operation)
