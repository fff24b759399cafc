"""Tests for the retry/backoff engine."""

import asyncio

import pytest
from pydantic import ValidationError

from agatha_search.exceptions import (
    RetryExhaustedError,
    SearchCancelledError,
    create_api_error,
    create_configuration_error,
    create_content_error,
    create_network_error,
)
from agatha_search.retry import (
    API_RETRY,
    CONTENT_RETRY,
    DEFAULT_RETRY_OPTIONS,
    NETWORK_RETRY,
    RetryOptions,
    compute_delay,
    retry_api_operation,
    retry_content_operation,
    retry_network_operation,
    with_retry,
)

NO_WAIT = RetryOptions(base_delay=0, max_delay=0, jitter=False)


class Flaky:
    """Awaitable operation failing with the given errors before succeeding."""

    def __init__(self, *errors: BaseException, result: str = "success"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestWithRetry:
    async def test_success_on_first_attempt(self):
        operation = Flaky()
        assert await with_retry(operation, NO_WAIT) == "success"
        assert operation.calls == 1

    async def test_fails_once_then_succeeds(self):
        operation = Flaky(RuntimeError("transient"))
        assert await with_retry(operation, NO_WAIT.merged(max_attempts=3)) == "success"
        assert operation.calls == 2

    @pytest.mark.parametrize("attempts", [1, 2, 4])
    async def test_always_failing_exhausts_attempts(self, attempts):
        errors = [RuntimeError(f"failure {i}") for i in range(attempts)]
        operation = Flaky(*errors)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await with_retry(operation, NO_WAIT, max_attempts=attempts)

        assert operation.calls == attempts
        assert exc_info.value.attempts == attempts
        assert exc_info.value.last_error is errors[-1]

    async def test_non_retryable_network_error_short_circuits(self):
        error = create_network_error("Not found", 404)
        operation = Flaky(error)

        with pytest.raises(type(error)) as exc_info:
            await with_retry(operation, NO_WAIT, max_attempts=5)

        assert exc_info.value is error
        assert operation.calls == 1

    async def test_configuration_error_is_never_retried(self):
        operation = Flaky(create_configuration_error("Missing key", "api_key", "required"))
        with pytest.raises(Exception, match="Missing key"):
            await with_retry(operation, NO_WAIT, max_attempts=3)
        assert operation.calls == 1

    async def test_rate_limited_api_error_is_not_retried(self):
        operation = Flaky(create_api_error("Slow down", "anthropic", 429, rate_limited=True))
        with pytest.raises(Exception, match="Slow down"):
            await with_retry(operation, NO_WAIT)
        assert operation.calls == 1

    async def test_retryable_classified_errors_are_retried(self):
        operation = Flaky(
            create_network_error("Bad gateway", 502),
            create_content_error("Timed out", "https://example.com", "timeout"),
        )
        assert await with_retry(operation, NO_WAIT, max_attempts=3) == "success"
        assert operation.calls == 3

    async def test_non_retryable_error_on_later_attempt(self):
        error = create_api_error("Unauthorized", "openai", 401)
        operation = Flaky(create_api_error("Overloaded", "openai", 503), error)
        with pytest.raises(type(error)):
            await with_retry(operation, NO_WAIT, max_attempts=5)
        assert operation.calls == 2

    async def test_on_retry_receives_events(self):
        events = []
        operation = Flaky(RuntimeError("first"), RuntimeError("second"))

        await with_retry(operation, NO_WAIT, max_attempts=3, on_retry=events.append)

        assert [(e.attempt, e.max_attempts, e.delay) for e in events] == [(1, 3, 0), (2, 3, 0)]
        assert [e.message for e in events] == ["first", "second"]

    async def test_failing_on_retry_callback_does_not_stop_retrying(self):
        def explode(event):
            raise RuntimeError("observer bug")

        operation = Flaky(RuntimeError("transient"))
        assert await with_retry(operation, NO_WAIT, on_retry=explode) == "success"

    async def test_cancelled_before_first_attempt(self):
        cancel = asyncio.Event()
        cancel.set()
        operation = Flaky()

        with pytest.raises(SearchCancelledError):
            await with_retry(operation, NO_WAIT, cancel_event=cancel)
        assert operation.calls == 0

    async def test_cancel_during_backoff_suppresses_next_attempt(self):
        cancel = asyncio.Event()
        operation = Flaky(RuntimeError("transient"))
        slow = RetryOptions(max_attempts=3, base_delay=10_000, max_delay=10_000, jitter=False)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            cancel.set()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(SearchCancelledError):
            await asyncio.wait_for(with_retry(operation, slow, cancel_event=cancel), timeout=2)
        await canceller
        assert operation.calls == 1

    async def test_asyncio_cancellation_propagates(self):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(with_retry(hang, NO_WAIT))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestComputeDelay:
    def test_exponential_growth(self):
        options = RetryOptions(base_delay=1000, max_delay=30000, backoff_factor=2, jitter=False)
        assert [compute_delay(a, options) for a in range(1, 5)] == [1000, 2000, 4000, 8000]

    def test_capped_at_max_delay(self):
        options = RetryOptions(base_delay=1000, max_delay=5000, backoff_factor=3, jitter=False)
        assert [compute_delay(a, options) for a in range(1, 5)] == [1000, 3000, 5000, 5000]

    def test_non_decreasing_without_jitter(self):
        options = RetryOptions(base_delay=300, max_delay=20000, backoff_factor=1.5, jitter=False)
        delays = [compute_delay(a, options) for a in range(1, 15)]
        assert delays == sorted(delays)
        assert all(d <= options.max_delay for d in delays)

    def test_jitter_stays_within_bounds(self):
        options = RetryOptions(base_delay=1000, max_delay=30000, backoff_factor=2, jitter=True)
        for attempt in range(1, 8):
            undelayed = min(1000 * 2 ** (attempt - 1), 30000)
            for _ in range(20):
                delay = compute_delay(attempt, options)
                assert undelayed // 2 <= delay <= undelayed

    def test_floors_to_integer(self):
        options = RetryOptions(base_delay=1, max_delay=100, backoff_factor=1.5, jitter=False)
        assert compute_delay(2, options) == 1
        assert isinstance(compute_delay(3, options), int)


class TestRetryOptions:
    def test_defaults(self):
        assert DEFAULT_RETRY_OPTIONS == RetryOptions(max_attempts=3, base_delay=1000, max_delay=30000, backoff_factor=2, jitter=True)

    def test_presets(self):
        assert (NETWORK_RETRY.max_attempts, NETWORK_RETRY.base_delay, NETWORK_RETRY.max_delay) == (3, 1000, 10000)
        assert (NETWORK_RETRY.backoff_factor, NETWORK_RETRY.jitter) == (2, True)
        assert (API_RETRY.max_attempts, API_RETRY.base_delay, API_RETRY.max_delay) == (2, 2000, 15000)
        assert (API_RETRY.backoff_factor, API_RETRY.jitter) == (3, True)
        assert (CONTENT_RETRY.max_attempts, CONTENT_RETRY.base_delay, CONTENT_RETRY.max_delay) == (2, 500, 5000)
        assert (CONTENT_RETRY.backoff_factor, CONTENT_RETRY.jitter) == (2, False)

    def test_merged_overrides_fields(self):
        merged = DEFAULT_RETRY_OPTIONS.merged(max_attempts=5, jitter=False)
        assert merged.max_attempts == 5
        assert merged.jitter is False
        assert merged.base_delay == DEFAULT_RETRY_OPTIONS.base_delay

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay": -1},
            {"backoff_factor": 0.5},
            {"base_delay": 2000, "max_delay": 1000},
        ],
    )
    def test_invalid_options_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            RetryOptions(**kwargs)


class TestPresetFunctions:
    async def test_network_preset_success(self):
        operation = Flaky()
        assert await retry_network_operation(operation) == "success"
        assert operation.calls == 1

    async def test_api_preset_stops_on_client_error(self):
        operation = Flaky(create_api_error("Forbidden", "openai", 403))
        with pytest.raises(Exception, match="Forbidden"):
            await retry_api_operation(operation)
        assert operation.calls == 1

    async def test_content_preset_respects_max_attempts_override(self):
        operation = Flaky(RuntimeError("broken page"))
        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_content_operation(operation, max_attempts=1)
        assert exc_info.value.attempts == 1
        assert operation.calls == 1
