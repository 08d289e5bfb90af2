"""HTTP transport for signed tool calls.

Failures are raised as TransportError tagged with a structured kind so the
retry executor classifies them without parsing message text.
"""

from __future__ import annotations

import socket
from typing import Any
from urllib.parse import urlsplit

import httpx

from toolsign.config import DEFAULT_REQUEST_TIMEOUT
from toolsign.errors import TransportError
from toolsign.types import TransportErrorKind

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "no address associated",
    "temporary failure in name resolution",
)


def _exception_chain(error: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = error
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def _is_dns_failure(error: BaseException) -> bool:
    for item in _exception_chain(error):
        if isinstance(item, socket.gaierror):
            return True
        if any(marker in str(item).lower() for marker in _DNS_FAILURE_MARKERS):
            return True
    return False


def _is_connection_reset(error: BaseException) -> bool:
    for item in _exception_chain(error):
        if isinstance(item, ConnectionResetError):
            return True
        text = str(item).lower()
        if "connection reset" in text or "server disconnected" in text:
            return True
    return False


def _status_kind(status_code: int) -> TransportErrorKind:
    return "GATEWAY_TIMEOUT" if status_code == 504 else "HTTP_ERROR"


def _map_http_error(error: httpx.HTTPError, url: str) -> TransportError:
    host = urlsplit(url).hostname or url

    if isinstance(error, httpx.TimeoutException):
        return TransportError(f"Request timeout calling {url}", "TIMEOUT")
    if isinstance(error, httpx.ConnectError):
        if _is_dns_failure(error):
            return TransportError(f"Host not found: {host}", "DNS_FAILURE")
        if _is_connection_reset(error):
            return TransportError(f"Connection reset by {host}", "CONNECTION_RESET")
        return TransportError("Unable to connect to tool endpoint", "UNKNOWN")
    if isinstance(error, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)) and _is_connection_reset(error):
        return TransportError(f"Connection reset by {host}", "CONNECTION_RESET")
    return TransportError(f"Tool request failed: {type(error).__name__}", "UNKNOWN")


def create_http_transport(
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Create the transport used by the tool bridge.

    ``timeout`` is the deadline for each individual attempt. Pass ``client``
    to reuse a connection pool (or an ``httpx.MockTransport`` in tests);
    otherwise a client is opened per request.

    Returns a dict with a ``post`` coroutine function.
    """

    async def _send(http: httpx.AsyncClient, url: str, content: bytes, headers: dict[str, str]) -> httpx.Response:
        return await http.post(url, content=content, headers=headers, timeout=httpx.Timeout(timeout))

    async def post(url: str, content: bytes, headers: dict[str, str]) -> Any:
        try:
            if client is not None:
                response = await _send(client, url, content, headers)
            else:
                async with httpx.AsyncClient() as http:
                    response = await _send(http, url, content, headers)
        except httpx.HTTPError as error:
            raise _map_http_error(error, url) from error

        if not response.is_success:
            raise TransportError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                _status_kind(response.status_code),
                response.status_code,
                response_body=response.text,
            )

        try:
            return response.json()
        except ValueError as error:
            raise TransportError(
                "Invalid JSON in tool response",
                "UNKNOWN",
                response.status_code,
                response_body=response.text,
            ) from error

    return {"post": post}
