from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from fluent_http.cancellation import CancellationToken
from fluent_http.exceptions import CancellationFailure, ConfigurationError, TransportFailure, TransportTimeout
from fluent_http.retry import RetryCoordinator, RetryPolicy, exponential_backoff, is_transient, parse_retry_after


def _no_delay(attempt: int, outcome: object) -> float:
    return 0.0


def _retry_unless_ok(outcome: object) -> bool:
    return not (isinstance(outcome, httpx.Response) and outcome.status_code == 200)


class ScriptedDispatch:
    """Returns (or raises) the scripted outcomes in order, repeating the last one."""

    def __init__(self, *outcomes: object) -> None:
        self.outcomes = list(outcomes)
        self.attempts = 0

    async def __call__(self) -> httpx.Response:
        outcome = self.outcomes[min(self.attempts, len(self.outcomes) - 1)]
        self.attempts += 1
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome)


def test_retries_until_success() -> None:
    dispatch = ScriptedDispatch(503, 503, 200)
    coordinator = RetryCoordinator(RetryPolicy(max_attempts=3, should_retry=_retry_unless_ok, delay=_no_delay))

    response = asyncio.run(coordinator.execute(dispatch))

    assert dispatch.attempts == 3
    assert response.status_code == 200


def test_exhausted_retries_return_last_response() -> None:
    dispatch = ScriptedDispatch(500, 502)
    coordinator = RetryCoordinator(RetryPolicy(max_attempts=2, should_retry=_retry_unless_ok, delay=_no_delay))

    response = asyncio.run(coordinator.execute(dispatch))

    assert dispatch.attempts == 2
    assert response.status_code == 502


def test_exhausted_retries_reraise_last_failure() -> None:
    first = TransportFailure("first")
    last = TransportTimeout("second")
    dispatch = ScriptedDispatch(first, last)
    coordinator = RetryCoordinator(RetryPolicy(max_attempts=2, should_retry=_retry_unless_ok, delay=_no_delay))

    with pytest.raises(TransportTimeout) as exc_info:
        asyncio.run(coordinator.execute(dispatch))

    assert exc_info.value is last
    assert dispatch.attempts == 2


def test_timeout_is_offered_to_the_predicate() -> None:
    seen: list[object] = []

    def should_retry(outcome: object) -> bool:
        seen.append(outcome)
        return isinstance(outcome, TransportTimeout)

    dispatch = ScriptedDispatch(TransportTimeout("slow"), 200)
    coordinator = RetryCoordinator(RetryPolicy(max_attempts=3, should_retry=should_retry, delay=_no_delay))

    response = asyncio.run(coordinator.execute(dispatch))

    assert response.status_code == 200
    assert isinstance(seen[0], TransportTimeout)
    assert isinstance(seen[1], httpx.Response)


def test_non_retryable_failure_propagates_after_one_attempt() -> None:
    dispatch = ScriptedDispatch(TransportTimeout("slow"), 200)
    policy = RetryPolicy(
        max_attempts=3,
        should_retry=lambda outcome: isinstance(outcome, httpx.Response) and outcome.status_code != 200,
        delay=_no_delay,
    )

    with pytest.raises(TransportTimeout):
        asyncio.run(RetryCoordinator(policy).execute(dispatch))

    assert dispatch.attempts == 1


def test_configuration_errors_are_never_retried() -> None:
    dispatch = ScriptedDispatch(ConfigurationError("bad"), 200)
    policy = RetryPolicy(max_attempts=3, should_retry=lambda outcome: True, delay=_no_delay)

    with pytest.raises(ConfigurationError):
        asyncio.run(RetryCoordinator(policy).execute(dispatch))

    assert dispatch.attempts == 1


def test_without_policy_makes_exactly_one_attempt() -> None:
    dispatch = ScriptedDispatch(503, 200)

    response = asyncio.run(RetryCoordinator().execute(dispatch))

    assert dispatch.attempts == 1
    assert response.status_code == 503


def test_delay_receives_attempt_number_and_outcome() -> None:
    calls: list[tuple[int, int]] = []

    def delay(attempt: int, outcome: httpx.Response) -> timedelta:
        calls.append((attempt, outcome.status_code))
        return timedelta(0)

    dispatch = ScriptedDispatch(500, 503, 200)
    policy = RetryPolicy(max_attempts=5, should_retry=_retry_unless_ok, delay=delay)

    asyncio.run(RetryCoordinator(policy).execute(dispatch))

    assert calls == [(1, 500), (2, 503)]


def test_cancelling_during_delay_prevents_next_attempt() -> None:
    token = CancellationToken()

    async def dispatch() -> httpx.Response:
        dispatch.attempts += 1
        token.cancel()
        return httpx.Response(503)

    dispatch.attempts = 0
    policy = RetryPolicy(max_attempts=3, should_retry=_retry_unless_ok, delay=lambda attempt, outcome: 30.0)

    with pytest.raises(CancellationFailure):
        asyncio.run(RetryCoordinator(policy).execute(dispatch, token))

    assert dispatch.attempts == 1


def test_cancelling_during_dispatch_aborts_the_attempt() -> None:
    async def run() -> int:
        token = CancellationToken()
        started = 0

        async def dispatch() -> httpx.Response:
            nonlocal started
            started += 1
            await asyncio.sleep(30)
            return httpx.Response(200)

        token.cancel_after(0.01)
        policy = RetryPolicy(max_attempts=3, should_retry=lambda outcome: True, delay=_no_delay)
        with pytest.raises(CancellationFailure):
            await RetryCoordinator(policy).execute(dispatch, token)
        return started

    assert asyncio.run(run()) == 1


def test_already_cancelled_token_dispatches_nothing() -> None:
    token = CancellationToken()
    token.cancel()
    dispatch = ScriptedDispatch(200)

    with pytest.raises(CancellationFailure):
        asyncio.run(RetryCoordinator().execute(dispatch, token))

    assert dispatch.attempts == 0


def test_policy_from_intervals() -> None:
    policy = RetryPolicy.from_intervals(_retry_unless_ok, timedelta(milliseconds=5), 0.25)

    assert policy.max_attempts == 3
    assert policy.get_delay(1, httpx.Response(500)) == pytest.approx(0.005)
    assert policy.get_delay(2, httpx.Response(500)) == 0.25


def test_policy_rejects_zero_attempts() -> None:
    with pytest.raises(ConfigurationError):
        RetryPolicy(max_attempts=0)


def test_is_transient() -> None:
    assert is_transient(httpx.Response(503))
    assert is_transient(httpx.Response(429))
    assert not is_transient(httpx.Response(404))
    assert not is_transient(httpx.Response(200))
    assert is_transient(TransportTimeout("slow"))
    assert not is_transient(ValueError("bad"))


def test_exponential_backoff_grows_and_caps() -> None:
    delay = exponential_backoff(base=1.0, max_delay=5.0, jitter=0.0)
    response = httpx.Response(500)

    assert delay(1, response) == 1.0
    assert delay(2, response) == 2.0
    assert delay(3, response) == 4.0
    assert delay(4, response) == 5.0


def test_exponential_backoff_honours_retry_after() -> None:
    delay = exponential_backoff(base=1.0, jitter=0.0)

    assert delay(1, httpx.Response(429, headers={"Retry-After": "7"})) == 7.0
    assert delay(1, httpx.Response(503, headers={"Retry-After": "600"})) == 60.0
    assert delay(1, httpx.Response(500, headers={"Retry-After": "7"})) == 1.0


def test_first_matching_policy_decides_delay() -> None:
    delays: list[str] = []

    def recording_delay(name: str):
        def delay(attempt: int, outcome: object) -> float:
            delays.append(name)
            return 0.0

        return delay

    on_status = RetryPolicy(
        max_attempts=3,
        should_retry=lambda outcome: isinstance(outcome, httpx.Response) and outcome.status_code == 503,
        delay=recording_delay("status"),
    )
    on_timeout = RetryPolicy(
        max_attempts=3,
        should_retry=lambda outcome: isinstance(outcome, TransportTimeout),
        delay=recording_delay("timeout"),
    )
    dispatch = ScriptedDispatch(TransportTimeout("slow"), 503, 200)

    response = asyncio.run(RetryCoordinator([on_status, on_timeout]).execute(dispatch))

    assert response.status_code == 200
    assert dispatch.attempts == 3
    assert delays == ["timeout", "status"]


def test_first_matching_policy_decides_attempt_limit() -> None:
    strict = RetryPolicy(max_attempts=2, should_retry=lambda outcome: True, delay=_no_delay)
    lenient = RetryPolicy(max_attempts=5, should_retry=lambda outcome: True, delay=_no_delay)
    dispatch = ScriptedDispatch(503)

    response = asyncio.run(RetryCoordinator([strict, lenient]).execute(dispatch))

    assert response.status_code == 503
    assert dispatch.attempts == 2


def test_coordinator_ignores_missing_policies() -> None:
    policy = RetryPolicy(max_attempts=2, should_retry=_retry_unless_ok, delay=_no_delay)

    assert RetryCoordinator([None, policy]).policies == (policy,)
    assert RetryCoordinator(None).policies == ()
    assert RetryCoordinator(policy).policies == (policy,)


def test_parse_retry_after() -> None:
    assert parse_retry_after("7") == 7.0
    assert parse_retry_after(" 1.5 ") == 1.5
    assert parse_retry_after("-3") == 0.0
    assert parse_retry_after(None) is None
    assert parse_retry_after("  ") is None
    assert parse_retry_after("soon") is None
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0

    later = format_datetime(datetime.now(timezone.utc) + timedelta(seconds=120), usegmt=True)
    assert parse_retry_after(later) == pytest.approx(120, abs=5)
