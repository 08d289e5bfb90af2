"""Bounded exponential-backoff retry for outbound tool calls.

Only transient delivery failures are retried: timeouts, connection
resets, DNS failures and HTTP 504. Everything else propagates after the
first attempt. When the attempt budget runs out the last error is wrapped
in RetryExhaustedError so "never succeeded after N tries" is
distinguishable from a single hard failure.
"""

from __future__ import annotations

import asyncio
import logging
import random
import socket
from typing import Any, Awaitable, Callable, TypeVar

from toolsign.abort import sleep_with_abort, race_with_abort
from toolsign.dotdict import DotDict
from toolsign.errors import CancelledError, RetryExhaustedError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_DELAY = 1.0

RETRYABLE_KINDS = frozenset({"TIMEOUT", "CONNECTION_RESET", "DNS_FAILURE", "GATEWAY_TIMEOUT"})

# Fallback for errors that carry no structured kind
RETRYABLE_MESSAGE_MARKERS = ("HTTP 504", "timeout", "ECONNRESET", "ENOTFOUND")


async def maybe_await(value: Any) -> Any:
    if asyncio.isfuture(value) or asyncio.iscoroutine(value):
        return await value
    return value


def is_retryable_error(error: BaseException) -> bool:
    """Classify an error as a transient delivery failure."""
    if isinstance(error, CancelledError):
        return False

    if isinstance(error, TransportError) and error.kind != "UNKNOWN":
        return error.kind in RETRYABLE_KINDS

    if isinstance(error, (TimeoutError, ConnectionResetError, socket.gaierror)):
        return True

    message = str(error)
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


def compute_backoff_delay(attempt: int, max_delay: float, jitter_ratio: float = 0.0) -> float:
    """Delay in seconds after the given 1-indexed attempt failed."""
    bounded = min(BASE_DELAY * (2 ** max(0, attempt - 1)), max(0.0, float(max_delay)))

    if jitter_ratio <= 0:
        return bounded

    jitter_offset = (random.random() * 2 - 1) * min(jitter_ratio, 1.0)
    return max(0.0, bounded * (1 + jitter_offset))


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    max_delay: float = 5.0,
    on_attempt: Callable[[int], Any] | None = None,
    operation_name: str = "operation",
    signal: DotDict | None = None,
    jitter_ratio: float = 0.0,
) -> T:
    """Run ``operation`` with up to ``max_retries`` attempts.

    ``on_attempt(attempt)`` runs before every attempt after the first,
    once the backoff delay has elapsed; it may be sync or async.
    Aborting ``signal`` interrupts both the delay and the running attempt.
    """
    max_retries = max(1, int(max_retries))
    attempt = 1

    while True:
        if attempt > 1 and on_attempt is not None:
            await maybe_await(on_attempt(attempt))

        try:
            return await race_with_abort(signal, operation)
        except CancelledError:
            raise
        except Exception as error:
            if not is_retryable_error(error):
                raise
            if attempt >= max_retries:
                logger.error("%s failed after %d attempts: %s", operation_name, max_retries, error)
                raise RetryExhaustedError(operation_name, max_retries, error) from error
            last_error = error

        delay = compute_backoff_delay(attempt, max_delay, jitter_ratio)
        logger.warning(
            "%s failed on attempt %d/%d, retrying in %.2fs: %s",
            operation_name,
            attempt,
            max_retries,
            delay,
            last_error,
        )
        await sleep_with_abort(delay, signal)
        attempt += 1
