"""Tool Invocation Bridge - signed, retried calls to tool endpoints.

Example:
    tools = create_tools_from_config(
        descriptors,
        event_id=event["id"],
        application_secret=signals["toolSecuritySecret"],
        sink=sink,
        pending_id=pending_id,
    )
    output = await tools["lookup_order"].execute({"orderId": "A-17"})
"""

from __future__ import annotations

import json
import logging
import re
import time
import unicodedata
from typing import Any, Iterable

from toolsign.config import DEFAULT_MAX_DELAY, DEFAULT_MAX_RETRIES, DEFAULT_REQUEST_TIMEOUT
from toolsign.dotdict import DotDict
from toolsign.errors import ConfigurationError, ValidationError
from toolsign.http_client import create_http_transport
from toolsign.retry import maybe_await, with_retry
from toolsign.security import build_signed_headers
from toolsign.types import EventSink, ToolBlock, ToolCallBody, ToolDescriptor

logger = logging.getLogger(__name__)


def slugify_tool_name(name: str) -> str:
    """Model-facing tool key: lowercase ascii words joined by underscores."""
    result = unicodedata.normalize("NFD", name.lower())
    result = re.sub(r"[\u0300-\u036f]", "", result)
    result = result.strip().replace("&", "_and_")
    result = re.sub(r"[^a-z0-9]+", "_", result)
    return result.strip("_")


def tool_definition(block: ToolBlock) -> ToolDescriptor:
    """Descriptor a tool endpoint publishes so generation steps can call it."""
    name = block.get("name") or ""
    if not block.get("id"):
        raise ValidationError("Tool block id is required")
    if not name:
        raise ValidationError("Tool name is required")

    config = block.get("config") or {}
    return ToolDescriptor(
        slug=slugify_tool_name(name),
        identifier=block["id"],
        name=name,
        description=block.get("description") or "",
        schema=config.get("schema") or {},
        url=block.get("url") or "",
    )


def _validate_descriptor(tool: ToolDescriptor) -> None:
    for key in ("identifier", "name", "url"):
        if not tool.get(key):
            raise ValidationError(f"Tool descriptor is missing '{key}'", {"tool": tool.get("name")})


def _tool_key(tool: ToolDescriptor) -> str:
    return tool.get("slug") or slugify_tool_name(tool["name"])


def create_tool(
    tool: ToolDescriptor,
    event_id: str,
    application_secret: str | bytes,
    sink: EventSink | None = None,
    pending_id: Any = None,
    transport: dict[str, Any] | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    max_delay: float = DEFAULT_MAX_DELAY,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    signal: DotDict | None = None,
) -> DotDict:
    """Build the callable handle for one tool descriptor.

    The handle exposes ``description``, ``parameters`` (the tool's JSON
    schema, passed through untouched) and ``execute(parameters)``, which
    returns the endpoint's ``result`` serialized as JSON text.
    """
    if not application_secret:
        raise ConfigurationError("Tool security secret not available. App may not be synchronized properly.")
    _validate_descriptor(tool)
    http = transport or create_http_transport(request_timeout)
    operation_name = f'Calling tool "{tool["name"]}"'

    async def report_attempt(attempt: int) -> None:
        if sink is None or pending_id is None:
            return
        await maybe_await(
            sink.update_pending(pending_id, {"statusDescription": f"{operation_name} (attempt {attempt})..."})
        )

    async def execute(parameters: dict[str, Any], signal: DotDict | None = signal) -> str:
        async def call() -> str:
            payload: ToolCallBody = {"parameters": parameters, "eventId": event_id}
            body = json.dumps(payload).encode("utf-8")
            headers = build_signed_headers(
                body,
                event_id=event_id,
                endpoint_id=tool["identifier"],
                application_secret=application_secret,
                timestamp=int(time.time()),
            )
            data = await http["post"](tool["url"], body, headers)
            result = data.get("result") if isinstance(data, dict) else None
            return json.dumps(result)

        logger.debug("Invoking tool %s for event %s", tool["name"], event_id)
        return await with_retry(
            call,
            max_retries=max_retries,
            max_delay=max_delay,
            on_attempt=report_attempt,
            operation_name=operation_name,
            signal=signal,
        )

    return DotDict(
        {
            "name": tool["name"],
            "description": tool.get("description", ""),
            "parameters": tool.get("schema") or {},
            "execute": execute,
        }
    )


def create_tools_from_config(
    tools: Iterable[ToolDescriptor] | None,
    event_id: str,
    application_secret: str | bytes,
    sink: EventSink | None = None,
    pending_id: Any = None,
    transport: dict[str, Any] | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    max_delay: float = DEFAULT_MAX_DELAY,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    signal: DotDict | None = None,
) -> dict[str, DotDict]:
    """Map each configured tool's slug to its signed, retried handle."""
    http = transport or create_http_transport(request_timeout)
    handles: dict[str, DotDict] = {}

    for tool in tools or []:
        key = _tool_key(tool)
        if key in handles:
            raise ValidationError(f"Duplicate tool name: {key}")
        handles[key] = create_tool(
            tool,
            event_id,
            application_secret,
            sink=sink,
            pending_id=pending_id,
            transport=http,
            max_retries=max_retries,
            max_delay=max_delay,
            request_timeout=request_timeout,
            signal=signal,
        )

    return handles
