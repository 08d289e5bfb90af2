"""Abort controller for cooperative cancellation of tool calls.

A signal is handed to ``with_retry`` and the tool bridge; aborting it stops
both the backoff sleep and any in-flight HTTP attempt.

Example:
    controller = create_abort_controller()
    task = asyncio.create_task(tools["search"].execute(params, signal=controller.signal))
    controller.abort("generation step abandoned")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from toolsign.dotdict import DotDict
from toolsign.errors import CancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _create_abort_signal() -> DotDict:
    event = asyncio.Event()
    signal = DotDict({"aborted": False, "reason": None})

    def abort(reason: Any = None) -> None:
        if signal.aborted:
            return

        signal.aborted = True
        signal.reason = reason
        event.set()

    async def wait() -> None:
        await event.wait()

    signal.abort = abort
    signal.wait = wait
    return signal


def create_abort_controller() -> DotDict:
    """Create an abort controller with ``signal`` and ``abort(reason)``."""
    signal = _create_abort_signal()

    def abort(reason: Any = None) -> None:
        signal.abort(reason)

    return DotDict({"signal": signal, "abort": abort})


def is_aborted(signal: DotDict | None) -> bool:
    return bool(signal is not None and signal.aborted)


def raise_if_aborted(signal: DotDict | None) -> None:
    if is_aborted(signal):
        raise CancelledError(_cancel_message(signal))


def _cancel_message(signal: DotDict | None) -> str:
    reason = signal.reason if signal is not None else None
    if reason:
        return f"Tool call cancelled by caller: {reason}"
    return "Tool call cancelled by caller"


async def _wait_for_abort(signal: DotDict | None) -> None:
    if signal is None:
        await asyncio.Future()
        return
    await signal.wait()


async def race_with_abort(signal: DotDict | None, fn: Callable[[], Awaitable[T]]) -> T:
    """Await ``fn()`` unless the signal aborts first, cancelling the loser."""
    raise_if_aborted(signal)
    if signal is None:
        return await fn()

    fn_task = asyncio.ensure_future(fn())
    abort_task = asyncio.ensure_future(_wait_for_abort(signal))

    try:
        done, _ = await asyncio.wait({fn_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        fn_task.cancel()
        abort_task.cancel()
        raise

    if fn_task in done:
        abort_task.cancel()
        return fn_task.result()

    fn_task.cancel()
    logger.debug("Abandoning in-flight call: %s", signal.reason)
    raise CancelledError(_cancel_message(signal))


async def sleep_with_abort(seconds: float, signal: DotDict | None = None) -> None:
    """Sleep for ``seconds``, returning early with CancelledError on abort."""
    if seconds <= 0:
        raise_if_aborted(signal)
        return

    await race_with_abort(signal, lambda: asyncio.sleep(seconds))
