"""
Statement Relay: Resilient Call Wrapper
=======================================

What:  Runs the outbound Gemini call with bounded exponential backoff.
Why:   Gemini regularly answers 503 (overloaded) or 429 (rate-limited) under
       load; those usually clear within seconds. A 400 never will, so
       retrying it only wastes time and hides the real problem.
How:   Every attempt is converted into a typed AttemptOutcome:
           SUCCESS    → stop, return the value
           RETRYABLE  → wait, try again while attempts remain
           FATAL      → stop immediately
       Tenacity drives the loop on that outcome (retry_if_result), so no
       exception is used to force another iteration.

State machine (max_attempts=N, initial backoff D, multiplier m):

    Attempting ──success──────────────────────────▶ Done(ok)
        │  ──fatal─────────────────────────────────▶ Done(error)
        │  ──retryable, attempts left──▶ Waiting
        │  ──retryable, attempt N──────────────────▶ Done(last error)
    Waiting: sleep D * m ** (attempt - 1) ──▶ Attempting

    Defaults (3, 1.0s, 1.5): attempt, 1.0s, attempt, 1.5s, attempt.

Concurrency:
    RetryPolicy is immutable and a fresh tenacity controller is built per
    call, so concurrent requests share nothing.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, FrozenSet, Optional

from google.api_core import exceptions as google_exceptions
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from statement_relay.config import Settings
from statement_relay.exceptions import (
    PermanentServiceError,
    RelayError,
    TransientServiceError,
    UpstreamTransportError,
)

logger = logging.getLogger(__name__)

# Network-level faults and per-attempt timeouts: the request may never have
# reached Gemini, or Gemini did not answer in time
TRANSPORT_ERRORS = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    google_exceptions.DeadlineExceeded,
)
GATEWAY_TIMEOUT = 504


class OutcomeKind(str, enum.Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of a single attempt, inspected by the retry loop."""

    kind: OutcomeKind
    value: Any = field(default=None, repr=False)
    error: Optional[BaseException] = None
    status: Optional[int] = None
    transport: bool = False

    @property
    def retryable(self) -> bool:
        return self.kind is OutcomeKind.RETRYABLE


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry parameters.

    Attributes:
        max_attempts:           Total attempts including the first one (>= 1)
        initial_backoff:        Seconds to wait after the first failed attempt
        backoff_multiplier:     Growth factor applied to each subsequent wait
        transient_status_codes: Upstream HTTP statuses that are worth retrying
    """

    max_attempts: int = 3
    initial_backoff: float = 1.0
    backoff_multiplier: float = 1.5
    transient_status_codes: FrozenSet[int] = frozenset({429, 503})

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_backoff < 0:
            raise ValueError("initial_backoff must not be negative")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be greater than 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_backoff=settings.retry_initial_backoff,
            backoff_multiplier=settings.retry_backoff_multiplier,
            transient_status_codes=settings.transient_status_code_set,
        )

    def backoff_for(self, attempt_number: int) -> float:
        """Seconds to wait after failed attempt `attempt_number` (1-based)."""
        return self.initial_backoff * self.backoff_multiplier ** (attempt_number - 1)


def status_of(exc: BaseException) -> Optional[int]:
    """
    Extracts an HTTP status from a provider exception, if it carries one.

    google.api_core exceptions expose it as `code`, HTTP client errors as
    `status_code` or `response.status_code`.
    """
    candidates = (
        getattr(exc, "code", None),
        getattr(exc, "status_code", None),
        getattr(getattr(exc, "response", None), "status_code", None),
    )
    for value in candidates:
        if isinstance(value, int) and not isinstance(value, bool):
            return int(value)
    return None


def classify_failure(exc: BaseException, transient_status_codes: FrozenSet[int]) -> AttemptOutcome:
    """
    Maps an exception raised by one attempt to a RETRYABLE or FATAL outcome.

    Order matters: timeouts carry a status (DeadlineExceeded is 504), but are
    transport faults regardless of the configured transient status set.
    """
    if isinstance(exc, RelayError):
        # Already translated by the client (e.g. EmptyResultError)
        return AttemptOutcome(kind=OutcomeKind.FATAL, error=exc)

    status = status_of(exc)
    if isinstance(exc, TRANSPORT_ERRORS) or status == GATEWAY_TIMEOUT:
        return AttemptOutcome(
            kind=OutcomeKind.RETRYABLE, error=exc, status=status, transport=True
        )

    if status is not None:
        kind = OutcomeKind.RETRYABLE if status in transient_status_codes else OutcomeKind.FATAL
        return AttemptOutcome(kind=kind, error=exc, status=status)

    return AttemptOutcome(kind=OutcomeKind.FATAL, error=exc)


class ResilientCaller:
    """
    Executes an async operation under a RetryPolicy.

    Usage:
        caller = ResilientCaller(RetryPolicy(max_attempts=3))
        result = await caller.call(lambda: client.generate(request))

    Args:
        policy: Retry parameters.
        sleep:  Awaitable sleep used between attempts. Tests pass a recorder
                so backoff can be asserted without real waiting.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = policy
        self._sleep = sleep

    async def call(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run `operation` until it succeeds, fails permanently, or attempts run out.

        Returns:
            Whatever the operation returned on its successful attempt.

        Raises:
            TransientServiceError:   Still overloaded/rate-limited after max_attempts.
            UpstreamTransportError:  Still unreachable after max_attempts.
            PermanentServiceError:   Non-retryable upstream failure (first occurrence).
            RelayError:              Any RelayError raised by the operation, unchanged.
        """
        retrying = AsyncRetrying(
            retry=retry_if_result(lambda outcome: outcome.retryable),
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_exponential(
                multiplier=self.policy.initial_backoff,
                exp_base=self.policy.backoff_multiplier,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            # Exhausted: hand back the last outcome instead of raising RetryError
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            sleep=self._sleep,
        )

        attempts = 0

        async def attempt() -> AttemptOutcome:
            nonlocal attempts
            attempts += 1
            return await self._attempt(operation)

        outcome: AttemptOutcome = await retrying(attempt)

        if outcome.kind is OutcomeKind.SUCCESS:
            if attempts > 1:
                logger.info("Upstream call succeeded on attempt %d", attempts)
            return outcome.value

        error = self._to_error(outcome, attempts)
        if error is outcome.error:
            raise error
        raise error from outcome.error

    async def _attempt(self, operation: Callable[[], Awaitable[Any]]) -> AttemptOutcome:
        try:
            value = await operation()
        except Exception as exc:
            outcome = classify_failure(exc, self.policy.transient_status_codes)
            # Retry waits are logged by before_sleep_log
            logger.debug(
                "Upstream attempt failed (%s, status=%s): %s",
                outcome.kind.value,
                outcome.status,
                exc,
            )
            return outcome
        return AttemptOutcome(kind=OutcomeKind.SUCCESS, value=value)

    def _to_error(self, outcome: AttemptOutcome, attempts: int) -> RelayError:
        if isinstance(outcome.error, RelayError):
            outcome.error.context.setdefault("attempts", attempts)
            return outcome.error

        context = {
            "attempts": attempts,
            "status": outcome.status,
            "error_type": type(outcome.error).__name__,
            "error": str(outcome.error),
        }
        if outcome.retryable and outcome.transport:
            return UpstreamTransportError(context=context)
        if outcome.retryable:
            return TransientServiceError(context=context)
        return PermanentServiceError(context=context)
