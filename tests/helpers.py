from __future__ import annotations

import json
from typing import Any, Callable

import httpx

from toolsign import create_http_transport

APP_SECRET = "S"


class RecordingSink:
    """In-memory event sink that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._next_id = 0

    def create_pending(self, status: dict[str, Any]) -> str:
        self._next_id += 1
        handle = f"pending-{self._next_id}"
        self.calls.append(("create_pending", (status,)))
        return handle

    def update_pending(self, handle: Any, status: dict[str, Any]) -> None:
        self.calls.append(("update_pending", (handle, status)))

    def emit(self, payload: dict[str, Any], options: dict[str, Any]) -> None:
        self.calls.append(("emit", (payload, options)))

    def cancel_pending(self, handle: Any, reason: str) -> None:
        self.calls.append(("cancel_pending", (handle, reason)))

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]


class AsyncRecordingSink(RecordingSink):
    """Same as RecordingSink, but every method is a coroutine."""

    async def create_pending(self, status: dict[str, Any]) -> str:  # type: ignore[override]
        return RecordingSink.create_pending(self, status)

    async def update_pending(self, handle: Any, status: dict[str, Any]) -> None:  # type: ignore[override]
        RecordingSink.update_pending(self, handle, status)

    async def emit(self, payload: dict[str, Any], options: dict[str, Any]) -> None:  # type: ignore[override]
        RecordingSink.emit(self, payload, options)

    async def cancel_pending(self, handle: Any, reason: str) -> None:  # type: ignore[override]
        RecordingSink.cancel_pending(self, handle, reason)


def mock_transport(handler: Callable[[httpx.Request], httpx.Response]) -> dict[str, Any]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return create_http_transport(timeout=5.0, client=client)


def json_response(status_code: int, body: Any) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body).encode("utf-8"), headers={"Content-Type": "application/json"})


def record_sleeps(monkeypatch: Any) -> list[float]:
    """Replace the retry backoff sleep with a recorder."""
    import toolsign.retry as retry_module

    delays: list[float] = []

    async def fake_sleep(seconds: float, signal: Any = None) -> None:
        delays.append(seconds)

    monkeypatch.setattr(retry_module, "sleep_with_abort", fake_sleep)
    return delays


def fixed_clock(now: int) -> Callable[[], float]:
    return lambda: float(now)
