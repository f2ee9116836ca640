"""Retry policies and the coordinator that applies them to a dispatch callable.

A policy is the triple (``max_attempts``, ``should_retry``, ``delay``). The
coordinator offers every outcome of an attempt to ``should_retry``: a
returned ``httpx.Response`` of any status, or the exception the attempt
raised. Timeouts therefore go through the same predicate as a 503 does.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Iterable, Protocol, Union

import httpx

from .cancellation import CancellationToken, run_cancellable
from .exceptions import CancellationFailure, ConfigurationError, TransportFailure


logger = logging.getLogger(__name__)

Outcome = Union[httpx.Response, Exception]
Delay = Union[float, timedelta]
Dispatch = Callable[[], Awaitable[httpx.Response]]

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504, 520, 521, 522, 524})
RETRY_AFTER_STATUS_CODES = frozenset({429, 503})
MAX_RETRY_AFTER = 60.0


def parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait according to a ``Retry-After`` value.

    Accepts delta-seconds or an HTTP date; dates in the past give ``0.0``.
    Anything unparseable gives ``None``.
    """
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError, OverflowError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - datetime.now(timezone.utc)).total_seconds()
    return max(0.0, seconds)


def is_transient(outcome: Outcome) -> bool:
    """Return whether an outcome looks like a transient failure worth retrying."""
    if isinstance(outcome, Exception):
        return isinstance(outcome, (TransportFailure, httpx.TransportError))
    return outcome.status_code in RETRYABLE_STATUS_CODES


def exponential_backoff(
    base: float = 0.4,
    max_delay: float = 10.0,
    jitter: float = 0.35,
) -> Callable[[int, Outcome], float]:
    """Build a delay function with jittered exponential backoff.

    A ``Retry-After`` header on a 429 or 503 response takes precedence,
    capped at 60 seconds.
    """

    def delay(attempt: int, outcome: Outcome) -> float:
        if isinstance(outcome, httpx.Response) and outcome.status_code in RETRY_AFTER_STATUS_CODES:
            retry_after = parse_retry_after(outcome.headers.get("Retry-After"))
            if retry_after is not None:
                return min(retry_after, MAX_RETRY_AFTER)
        backoff = base * (2 ** max(0, attempt - 1))
        return min(max_delay, backoff + random.uniform(0, jitter))

    return delay


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    should_retry: Callable[[Outcome], bool] = is_transient
    delay: Callable[[int, Outcome], Delay] = exponential_backoff()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")

    @classmethod
    def from_intervals(cls, should_retry: Callable[[Outcome], bool], *intervals: Delay) -> RetryPolicy:
        """Retry once per interval, waiting ``intervals[n - 1]`` before retry ``n``."""
        waits = tuple(intervals)
        return cls(
            max_attempts=len(waits) + 1,
            should_retry=should_retry,
            delay=lambda attempt, _outcome: waits[attempt - 1],
        )

    def get_delay(self, attempt: int, outcome: Outcome) -> float:
        value = self.delay(attempt, outcome)
        if isinstance(value, timedelta):
            value = value.total_seconds()
        return max(0.0, float(value))


class RequestCoordinator(Protocol):
    """Anything that turns a dispatch callable into a final response.

    Plug one in with ``Request.with_request_coordinator`` or
    ``FluentClient.set_request_coordinator`` to take over retries entirely.
    """

    async def execute(
        self,
        dispatch: Dispatch,
        cancellation: CancellationToken | None = None,
    ) -> httpx.Response: ...


class RetryCoordinator:
    """Dispatches a request until no policy wants another attempt.

    After each attempt the first policy whose ``should_retry`` accepts the
    outcome decides the attempt limit and the delay. Without policies
    exactly one attempt is made and no predicate or delay is consulted.
    """

    def __init__(self, policies: RetryPolicy | Iterable[RetryPolicy | None] | None = None) -> None:
        if policies is None:
            policies = ()
        elif isinstance(policies, RetryPolicy):
            policies = (policies,)
        self.policies: tuple[RetryPolicy, ...] = tuple(p for p in policies if p is not None)

    def __repr__(self) -> str:
        return f"RetryCoordinator({list(self.policies)!r})"

    async def execute(
        self,
        dispatch: Dispatch,
        cancellation: CancellationToken | None = None,
    ) -> httpx.Response:
        if not self.policies:
            return await run_cancellable(dispatch(), cancellation)

        attempt = 0
        while True:
            attempt += 1
            outcome: Outcome
            try:
                outcome = await run_cancellable(dispatch(), cancellation)
            except (CancellationFailure, ConfigurationError):
                raise
            except Exception as exc:
                outcome = exc

            policy = self._select(outcome)
            if policy is None:
                return _settle(outcome)
            if attempt >= policy.max_attempts:
                logger.debug("Giving up after %d attempts", attempt)
                return _settle(outcome)

            wait = policy.get_delay(attempt, outcome)
            logger.debug("Retrying request in %.2fs (attempt %d failed: %s)", wait, attempt, _describe(outcome))
            if wait > 0:
                await run_cancellable(asyncio.sleep(wait), cancellation)
            elif cancellation is not None:
                cancellation.raise_if_cancellation_requested()

    def _select(self, outcome: Outcome) -> RetryPolicy | None:
        for policy in self.policies:
            if policy.should_retry(outcome):
                return policy
        return None


def _settle(outcome: Outcome) -> httpx.Response:
    if isinstance(outcome, Exception):
        raise outcome
    return outcome


def _describe(outcome: Outcome) -> str:
    if isinstance(outcome, Exception):
        return f"{type(outcome).__name__}: {outcome}"
    return f"HTTP {outcome.status_code}"
