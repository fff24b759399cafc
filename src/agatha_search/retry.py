"""Bounded retry with exponential backoff, gated by error classification."""

import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import classify, should_retry
from .exceptions import RetryExhaustedError, SearchCancelledError, UnknownError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryOptions(BaseModel):
    """Retry policy. Delays are in milliseconds."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay: int = Field(default=1000, ge=0)
    max_delay: int = Field(default=30000, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    jitter: bool = True

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryOptions":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return self

    def merged(self, **overrides: Any) -> "RetryOptions":
        """Return a validated copy with the given fields replaced."""
        if not overrides:
            return self
        return RetryOptions.model_validate({**self.model_dump(), **overrides})


DEFAULT_RETRY_OPTIONS = RetryOptions()

NETWORK_RETRY = RetryOptions(max_attempts=3, base_delay=1000, max_delay=10000, backoff_factor=2, jitter=True)
API_RETRY = RetryOptions(max_attempts=2, base_delay=2000, max_delay=15000, backoff_factor=3, jitter=True)
CONTENT_RETRY = RetryOptions(max_attempts=2, base_delay=500, max_delay=5000, backoff_factor=2, jitter=False)


@dataclass(frozen=True)
class RetryEvent:
    """Emitted every time a failed attempt is scheduled for retry."""

    attempt: int
    max_attempts: int
    delay: int
    message: str


RetryCallback = Callable[[RetryEvent], None]


def compute_delay(attempt: int, options: RetryOptions) -> int:
    """Backoff delay in milliseconds after the given (1-based) failed attempt."""
    delay = min(options.base_delay * math.pow(options.backoff_factor, attempt - 1), options.max_delay)
    if options.jitter:
        delay *= random.uniform(0.5, 1.0)
    return math.floor(delay)


async def _backoff(delay_ms: int, cancel_event: asyncio.Event | None) -> None:
    if cancel_event is None:
        await asyncio.sleep(delay_ms / 1000)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay_ms / 1000)
    except TimeoutError:
        return
    raise SearchCancelledError()


def _notify(on_retry: RetryCallback | None, event: RetryEvent) -> None:
    logger.warning(
        f"Operation failed (attempt {event.attempt}/{event.max_attempts}), retrying in {event.delay}ms: {event.message}"
    )
    if on_retry is None:
        return
    try:
        on_retry(event)
    except Exception:
        logger.exception("Retry callback failed")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    *,
    cancel_event: asyncio.Event | None = None,
    on_retry: RetryCallback | None = None,
    **overrides: Any,
) -> T:
    """Run ``operation`` until it succeeds or the retry policy gives up.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per attempt.
        options: Base policy, defaults to DEFAULT_RETRY_OPTIONS.
        cancel_event: When set, no further attempt is started and the backoff sleep ends early.
        on_retry: Called with a RetryEvent before each backoff sleep.
        **overrides: Individual RetryOptions fields to replace.

    Raises:
        The original error when it is classified and not retry-eligible.
        RetryExhaustedError: When every attempt failed.
        SearchCancelledError: When cancel_event was set.
    """
    config = (options or DEFAULT_RETRY_OPTIONS).merged(**overrides)

    for attempt in range(1, config.max_attempts + 1):
        if cancel_event is not None and cancel_event.is_set():
            raise SearchCancelledError()

        try:
            return await operation()
        except (SearchCancelledError, RetryExhaustedError):
            raise
        except Exception as e:
            classified = classify(e)
            if not isinstance(classified, UnknownError) and not should_retry(classified):
                raise

            if attempt == config.max_attempts:
                raise RetryExhaustedError(config.max_attempts, e) from e

            delay = compute_delay(attempt, config)
            _notify(on_retry, RetryEvent(attempt, config.max_attempts, delay, str(e)))

        await _backoff(delay, cancel_event)

    # max_attempts >= 1 guarantees the loop returns or raises
    raise AssertionError("unreachable")


async def retry_network_operation(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = NETWORK_RETRY.max_attempts,
    *,
    cancel_event: asyncio.Event | None = None,
    on_retry: RetryCallback | None = None,
) -> T:
    """Retry with the network preset (3 attempts, 1s base, 10s cap, x2, jitter)."""
    return await with_retry(operation, NETWORK_RETRY, cancel_event=cancel_event, on_retry=on_retry, max_attempts=max_attempts)


async def retry_api_operation(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = API_RETRY.max_attempts,
    *,
    cancel_event: asyncio.Event | None = None,
    on_retry: RetryCallback | None = None,
) -> T:
    """Retry with the provider API preset (2 attempts, 2s base, 15s cap, x3, jitter)."""
    return await with_retry(operation, API_RETRY, cancel_event=cancel_event, on_retry=on_retry, max_attempts=max_attempts)


async def retry_content_operation(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = CONTENT_RETRY.max_attempts,
    *,
    cancel_event: asyncio.Event | None = None,
    on_retry: RetryCallback | None = None,
) -> T:
    """Retry with the content extraction preset (2 attempts, 0.5s base, 5s cap, x2, no jitter)."""
    return await with_retry(operation, CONTENT_RETRY, cancel_event=cancel_event, on_retry=on_retry, max_attempts=max_attempts)
