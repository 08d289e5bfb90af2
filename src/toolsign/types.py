"""Toolsign Type Definitions."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Literal, Mapping, Protocol, TypedDict

from toolsign.dotdict import DotDict


ErrorCode = Literal[
    "UNAUTHORIZED",
    "CONFIGURATION_ERROR",
    "INVALID_REQUEST",
    "VALIDATION_ERROR",
    "NOT_FOUND",
    "NETWORK_ERROR",
    "RETRY_EXHAUSTED",
    "CANCELLED",
    "GENERATION_FAILED",
    "UNKNOWN_ERROR",
]

# Structured transport failure categories
TransportErrorKind = Literal[
    "TIMEOUT",
    "CONNECTION_RESET",
    "DNS_FAILURE",
    "GATEWAY_TIMEOUT",
    "HTTP_ERROR",
    "UNKNOWN",
]


# Configuration
class ToolsignConfig(TypedDict, total=False):
    application_secret: str | None
    max_retries: int
    max_delay: float
    request_timeout: float
    tolerance_seconds: int


# Tool descriptor published by a tool endpoint and consumed by the bridge
class ToolDescriptor(TypedDict, total=False):
    identifier: str
    name: str
    description: str
    schema: dict[str, Any]
    url: str
    slug: str


# Platform block as seen by a tool endpoint at sync time
class ToolBlock(TypedDict, total=False):
    id: str
    name: str
    description: str
    config: dict[str, Any]
    url: str | None


# Outbound request body
class ToolCallBody(TypedDict):
    parameters: dict[str, Any]
    eventId: str


# Verified inbound request - uses DotDict so both info["event_id"] and info.event_id work
class SignedRequest(DotDict):
    event_id: str
    timestamp: int
    signature: str
    body: bytes


# Response handed to the HTTP responder
class GateResponse(DotDict):
    status: int
    body: dict[str, Any]
    headers: dict[str, str]


class PendingStatus(TypedDict, total=False):
    statusDescription: str


class EmitOptions(TypedDict, total=False):
    complete: Any
    echo: bool
    secondaryParentEventIds: list[str]


class EventSink(Protocol):
    """Event/pending-operation collaborator. Each method may be sync or async."""

    def create_pending(self, status: PendingStatus) -> Any: ...

    def update_pending(self, handle: Any, status: PendingStatus) -> Any: ...

    def emit(self, payload: dict[str, Any], options: EmitOptions) -> Any: ...

    def cancel_pending(self, handle: Any, reason: str) -> Any: ...


Responder = Callable[[str, GateResponse], Any | Awaitable[Any]]
HeadersLike = Mapping[str, str]
SecretSource = str | bytes | Callable[[], str | bytes | None] | None


class Usage(TypedDict):
    promptTokens: int
    completionTokens: int
    totalTokens: int


class GenerationRequest(TypedDict, total=False):
    model: str
    prompt: str
    messages: list[dict[str, str]]
    system: str
    maxSteps: int
    maxRetries: int
    maxTokens: int
    temperature: float
    tools: dict[str, DotDict]
    schema: dict[str, Any]


class GenerationResult(TypedDict, total=False):
    text: str
    object: Any
    usage: Usage
