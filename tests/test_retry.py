from __future__ import annotations

import asyncio
import socket

import pytest

from toolsign import (
    CancelledError,
    RetryExhaustedError,
    TransportError,
    create_abort_controller,
    is_retryable_error,
    with_retry,
)
from toolsign.retry import compute_backoff_delay

from .helpers import record_sleeps


def _flaky(failures: list[Exception], result: str = "ok"):
    calls = {"count": 0}

    async def operation() -> str:
        calls["count"] += 1
        if failures:
            raise failures.pop(0)
        return result

    return operation, calls


@pytest.mark.asyncio
async def test_success_on_first_attempt_makes_one_call_and_no_delay(monkeypatch) -> None:
    delays = record_sleeps(monkeypatch)
    attempts: list[int] = []
    operation, calls = _flaky([])

    assert await with_retry(operation, on_attempt=attempts.append) == "ok"
    assert calls["count"] == 1
    assert delays == []
    assert attempts == []


@pytest.mark.asyncio
async def test_fatal_error_propagates_after_one_attempt(monkeypatch) -> None:
    delays = record_sleeps(monkeypatch)
    operation, calls = _flaky([ValueError("HTTP 400: Bad Request")])

    with pytest.raises(ValueError, match="HTTP 400"):
        await with_retry(operation)

    assert calls["count"] == 1
    assert delays == []


@pytest.mark.asyncio
async def test_fatal_error_after_a_retry_is_not_wrapped(monkeypatch) -> None:
    delays = record_sleeps(monkeypatch)
    operation, calls = _flaky([TransportError("slow", "TIMEOUT"), ValueError("HTTP 400: Bad Request")])

    with pytest.raises(ValueError, match="HTTP 400"):
        await with_retry(operation, max_retries=2)

    assert calls["count"] == 2
    assert delays == [1.0]


@pytest.mark.asyncio
async def test_succeeds_on_third_attempt_and_reports_attempts_2_and_3(monkeypatch) -> None:
    delays = record_sleeps(monkeypatch)
    attempts: list[int] = []
    operation, calls = _flaky([Exception("HTTP 504: Gateway Timeout"), Exception("socket timeout")])

    assert await with_retry(operation, max_retries=3, on_attempt=attempts.append) == "ok"
    assert calls["count"] == 3
    assert attempts == [2, 3]
    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhaustion_raises_terminal_error_after_exactly_three_attempts(monkeypatch) -> None:
    delays = record_sleeps(monkeypatch)
    last = TransportError("Request timeout calling https://t.example", "TIMEOUT")
    operation, calls = _flaky([TransportError("first", "TIMEOUT"), TransportError("second", "TIMEOUT"), last])

    with pytest.raises(RetryExhaustedError) as excinfo:
        await with_retry(operation, max_retries=3, operation_name='Calling tool "Weather"')

    error = excinfo.value
    assert calls["count"] == 3
    assert delays == [1.0, 2.0]
    assert error.attempts == 3
    assert error.last_error is last
    assert error.__cause__ is last
    assert str(error) == 'Calling tool "Weather" failed after 3 attempts: Request timeout calling https://t.example'


@pytest.mark.asyncio
async def test_backoff_is_capped_by_max_delay(monkeypatch) -> None:
    delays = record_sleeps(monkeypatch)
    operation, _ = _flaky([Exception("ECONNRESET")] * 5)

    with pytest.raises(RetryExhaustedError):
        await with_retry(operation, max_retries=5, max_delay=3)

    assert delays == [1.0, 2.0, 3.0, 3.0]


@pytest.mark.asyncio
async def test_async_progress_callback_is_awaited(monkeypatch) -> None:
    record_sleeps(monkeypatch)
    seen: list[int] = []

    async def on_attempt(attempt: int) -> None:
        await asyncio.sleep(0)
        seen.append(attempt)

    operation, _ = _flaky([Exception("getaddrinfo ENOTFOUND tools.example")])

    assert await with_retry(operation, on_attempt=on_attempt) == "ok"
    assert seen == [2]


@pytest.mark.asyncio
async def test_max_retries_of_one_does_not_retry(monkeypatch) -> None:
    delays = record_sleeps(monkeypatch)
    operation, calls = _flaky([Exception("timeout")])

    with pytest.raises(RetryExhaustedError):
        await with_retry(operation, max_retries=1)

    assert calls["count"] == 1
    assert delays == []


@pytest.mark.parametrize(
    "error",
    [
        Exception("HTTP 504: Gateway Timeout"),
        Exception("connect timeout"),
        Exception("read ECONNRESET"),
        Exception("getaddrinfo ENOTFOUND example.invalid"),
        TransportError("x", "TIMEOUT"),
        TransportError("x", "CONNECTION_RESET"),
        TransportError("x", "DNS_FAILURE"),
        TransportError("HTTP 504: Gateway Timeout", "GATEWAY_TIMEOUT", 504),
        TimeoutError(),
        ConnectionResetError(),
        socket.gaierror(-2, "Name or service not known"),
    ],
)
def test_retryable_errors(error: Exception) -> None:
    assert is_retryable_error(error)


@pytest.mark.parametrize(
    "error",
    [
        Exception("HTTP 500: Internal Server Error"),
        Exception("HTTP 503: Service Unavailable"),
        Exception("Timeout"),
        ValueError("bad parameters"),
        TransportError("HTTP 500: Internal Server Error", "HTTP_ERROR", 500),
        TransportError("proxy said timeout", "HTTP_ERROR", 502),
        CancelledError(),
    ],
)
def test_fatal_errors(error: Exception) -> None:
    assert not is_retryable_error(error)


def test_unknown_transport_kind_falls_back_to_message() -> None:
    assert is_retryable_error(TransportError("upstream timeout", "UNKNOWN"))
    assert not is_retryable_error(TransportError("Unable to connect to host", "UNKNOWN"))


def test_compute_backoff_delay_doubles_and_caps() -> None:
    assert [compute_backoff_delay(n, 5.0) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_compute_backoff_delay_jitter_stays_in_range() -> None:
    for _ in range(100):
        delay = compute_backoff_delay(2, 5.0, jitter_ratio=0.5)
        assert 1.0 <= delay <= 3.0


@pytest.mark.asyncio
async def test_abort_during_backoff_stops_retrying() -> None:
    controller = create_abort_controller()
    calls = {"count": 0}

    async def operation() -> str:
        calls["count"] += 1
        raise TransportError("Request timeout", "TIMEOUT")

    async def abort_soon() -> None:
        await asyncio.sleep(0.05)
        controller.abort("step abandoned")

    aborter = asyncio.create_task(abort_soon())
    with pytest.raises(CancelledError, match="step abandoned"):
        await with_retry(operation, max_retries=3, signal=controller.signal)
    await aborter

    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_abort_interrupts_in_flight_attempt() -> None:
    controller = create_abort_controller()
    finished = asyncio.Event()

    async def operation() -> str:
        try:
            await asyncio.sleep(10)
        finally:
            finished.set()
        return "never"

    async def abort_soon() -> None:
        await asyncio.sleep(0.01)
        controller.abort()

    aborter = asyncio.create_task(abort_soon())
    with pytest.raises(CancelledError):
        await with_retry(operation, signal=controller.signal)
    await aborter
    await asyncio.wait_for(finished.wait(), timeout=1)


@pytest.mark.asyncio
async def test_already_aborted_signal_never_calls_operation() -> None:
    controller = create_abort_controller()
    controller.abort()
    operation, calls = _flaky([])

    with pytest.raises(CancelledError):
        await with_retry(operation, signal=controller.signal)

    assert calls["count"] == 0
