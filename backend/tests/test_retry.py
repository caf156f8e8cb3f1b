"""
Statement Relay: Resilient Caller Unit Tests
============================================

What:  Tests for ResilientCaller / RetryPolicy / classify_failure.
How:   Operations are AsyncMocks with scripted side effects; the sleep
       function is a recorder, so backoff is asserted without waiting.

What we test:
    ✅ Always-transient upstream: exactly N attempts, increasing waits, failure
    ✅ Two transient failures then success: result returned, no extra attempt
    ✅ Permanent failure: exactly one attempt, no wait
    ✅ Transport faults retried and reported as unreachable
    ✅ RelayError from the client passed through untouched
"""

import logging
from unittest.mock import AsyncMock

import pytest
from google.api_core import exceptions as google_exceptions

from statement_relay.exceptions import (
    EmptyResultError,
    PermanentServiceError,
    TransientServiceError,
    UpstreamTransportError,
)
from statement_relay.services.retry import (
    OutcomeKind,
    ResilientCaller,
    RetryPolicy,
    classify_failure,
    status_of,
)
from tests.stubs import FakeHTTPError, SleepRecorder

TRANSIENT = frozenset({429, 503})


class TestRetryPolicy:

    def test_backoff_grows_by_multiplier(self):
        policy = RetryPolicy(max_attempts=4, initial_backoff=2.0, backoff_multiplier=1.5)
        assert [policy.backoff_for(n) for n in (1, 2, 3)] == pytest.approx([2.0, 3.0, 4.5])

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"initial_backoff": -1.0},
            {"backoff_multiplier": 1.0},
        ],
    )
    def test_rejects_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_from_settings(self, settings):
        policy = RetryPolicy.from_settings(settings)
        assert policy.max_attempts == 3
        assert policy.initial_backoff == 0.5
        assert policy.backoff_multiplier == 1.5
        assert policy.transient_status_codes == frozenset({429, 503})


class TestClassifyFailure:

    def test_overloaded_is_retryable(self):
        outcome = classify_failure(google_exceptions.ServiceUnavailable("overloaded"), TRANSIENT)
        assert outcome.kind is OutcomeKind.RETRYABLE
        assert outcome.status == 503

    def test_rate_limited_is_retryable(self):
        outcome = classify_failure(google_exceptions.ResourceExhausted("quota"), TRANSIENT)
        assert outcome.kind is OutcomeKind.RETRYABLE
        assert outcome.status == 429

    def test_invalid_argument_is_fatal(self):
        outcome = classify_failure(google_exceptions.InvalidArgument("bad image"), TRANSIENT)
        assert outcome.kind is OutcomeKind.FATAL
        assert outcome.status == 400

    def test_status_code_attribute_is_used(self):
        assert classify_failure(FakeHTTPError(429), TRANSIENT).retryable
        assert not classify_failure(FakeHTTPError(404), TRANSIENT).retryable

    def test_transport_errors_are_retryable(self):
        for exc in (ConnectionError("reset"), TimeoutError("slow")):
            outcome = classify_failure(exc, TRANSIENT)
            assert outcome.retryable
            assert outcome.transport

    def test_deadline_exceeded_is_transport_fault(self):
        outcome = classify_failure(google_exceptions.DeadlineExceeded("timeout"), TRANSIENT)
        assert outcome.kind is OutcomeKind.RETRYABLE
        assert outcome.transport
        assert outcome.status == 504

    def test_gateway_timeout_retried_outside_transient_set(self):
        outcome = classify_failure(FakeHTTPError(504), frozenset({429}))
        assert outcome.retryable
        assert outcome.transport

    def test_relay_errors_are_fatal(self):
        outcome = classify_failure(EmptyResultError(), TRANSIENT)
        assert outcome.kind is OutcomeKind.FATAL

    def test_unknown_errors_are_fatal(self):
        assert classify_failure(ValueError("boom"), TRANSIENT).kind is OutcomeKind.FATAL

    def test_status_of_ignores_non_integer_codes(self):
        exc = ValueError("x")
        exc.code = "UNAVAILABLE"
        assert status_of(exc) is None


class TestResilientCaller:

    def setup_method(self):
        self.sleep = SleepRecorder()
        self.policy = RetryPolicy(max_attempts=3, initial_backoff=0.5, backoff_multiplier=1.5)
        self.caller = ResilientCaller(self.policy, sleep=self.sleep)

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        operation = AsyncMock(return_value="ok")

        assert await self.caller.call(operation) == "ok"
        assert operation.await_count == 1
        assert self.sleep.durations == []

    @pytest.mark.asyncio
    async def test_always_transient_makes_exactly_max_attempts(self):
        operation = AsyncMock(side_effect=google_exceptions.ServiceUnavailable("overloaded"))

        with pytest.raises(TransientServiceError) as exc_info:
            await self.caller.call(operation)

        assert operation.await_count == 3
        # Waits only between attempts, each longer than the previous
        assert self.sleep.durations == pytest.approx([0.5, 0.75])
        assert self.sleep.durations[0] < self.sleep.durations[1]
        assert exc_info.value.context["attempts"] == 3
        assert exc_info.value.context["status"] == 503
        assert not isinstance(exc_info.value, UpstreamTransportError)

    @pytest.mark.asyncio
    async def test_two_transient_failures_then_success(self):
        operation = AsyncMock(
            side_effect=[
                google_exceptions.ResourceExhausted("slow down"),
                google_exceptions.ServiceUnavailable("overloaded"),
                "recovered",
            ]
        )

        assert await self.caller.call(operation) == "recovered"
        assert operation.await_count == 3
        assert self.sleep.durations == pytest.approx([0.5, 0.75])

    @pytest.mark.asyncio
    async def test_permanent_failure_is_not_retried(self):
        operation = AsyncMock(side_effect=google_exceptions.InvalidArgument("bad request"))

        with pytest.raises(PermanentServiceError) as exc_info:
            await self.caller.call(operation)

        assert operation.await_count == 1
        assert self.sleep.durations == []
        assert exc_info.value.context["status"] == 400
        # Downstream text is diagnostic context only, never the caller-facing message
        assert "bad request" not in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, google_exceptions.InvalidArgument)

    @pytest.mark.asyncio
    async def test_transport_fault_retried_then_succeeds(self):
        operation = AsyncMock(side_effect=[ConnectionError("connection reset"), "ok"])

        assert await self.caller.call(operation) == "ok"
        assert operation.await_count == 2
        assert self.sleep.durations == pytest.approx([0.5])

    @pytest.mark.asyncio
    async def test_transport_fault_exhausted(self):
        operation = AsyncMock(side_effect=TimeoutError("read timeout"))

        with pytest.raises(UpstreamTransportError) as exc_info:
            await self.caller.call(operation)

        assert operation.await_count == 3
        assert exc_info.value.context["error_type"] == "TimeoutError"

    @pytest.mark.asyncio
    async def test_relay_error_passes_through(self):
        original = EmptyResultError(context={"reason": "no_text"})
        operation = AsyncMock(side_effect=original)

        with pytest.raises(EmptyResultError) as exc_info:
            await self.caller.call(operation)

        assert exc_info.value is original
        assert operation.await_count == 1
        assert exc_info.value.context["attempts"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_permanent(self):
        operation = AsyncMock(side_effect=ValueError("sdk bug"))

        with pytest.raises(PermanentServiceError) as exc_info:
            await self.caller.call(operation)

        assert operation.await_count == 1
        assert exc_info.value.context["error_type"] == "ValueError"

    @pytest.mark.asyncio
    async def test_single_attempt_policy_never_sleeps(self):
        caller = ResilientCaller(RetryPolicy(max_attempts=1), sleep=self.sleep)
        operation = AsyncMock(side_effect=FakeHTTPError(503))

        with pytest.raises(TransientServiceError):
            await caller.call(operation)

        assert operation.await_count == 1
        assert self.sleep.durations == []

    @pytest.mark.asyncio
    async def test_custom_transient_codes(self):
        policy = RetryPolicy(max_attempts=2, transient_status_codes=frozenset({500}))
        caller = ResilientCaller(policy, sleep=self.sleep)
        operation = AsyncMock(side_effect=[FakeHTTPError(500), "ok"])

        assert await caller.call(operation) == "ok"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_sdk_timeout_exhausted_as_unreachable(self):
        operation = AsyncMock(side_effect=google_exceptions.DeadlineExceeded("timeout"))

        with pytest.raises(UpstreamTransportError) as exc_info:
            await self.caller.call(operation)

        assert operation.await_count == 3
        assert self.sleep.durations == pytest.approx([0.5, 0.75])
        assert exc_info.value.code == "upstream_unreachable"
        assert exc_info.value.context["status"] == 504

    @pytest.mark.asyncio
    async def test_sdk_timeout_then_success(self):
        operation = AsyncMock(side_effect=[google_exceptions.DeadlineExceeded("timeout"), "ok"])

        assert await self.caller.call(operation) == "ok"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_each_wait_logged_once(self, caplog):
        operation = AsyncMock(side_effect=google_exceptions.ServiceUnavailable("overloaded"))

        with caplog.at_level(logging.WARNING, logger="statement_relay.services.retry"):
            with pytest.raises(TransientServiceError):
                await self.caller.call(operation)

        warnings = [
            record for record in caplog.records
            if record.name == "statement_relay.services.retry"
            and record.levelno >= logging.WARNING
        ]
        # One line per wait between attempts, none per failed attempt
        assert len(warnings) == 2
        assert all(record.getMessage().startswith("Retrying") for record in warnings)
