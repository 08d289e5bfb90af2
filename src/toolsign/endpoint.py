"""Tool endpoint - the receiving side of a signed tool call.

A request is authenticated by the verification gate, then forwarded to the
platform as an echo event. The platform later feeds the tool's output back
through ``process_result``, which answers the still-open HTTP request.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from toolsign.config import DEFAULT_TOLERANCE_SECONDS
from toolsign.dotdict import DotDict
from toolsign.errors import ValidationError
from toolsign.gate import create_verification_gate
from toolsign.retry import maybe_await
from toolsign.tools import tool_definition
from toolsign.types import EventSink, GateResponse, HeadersLike, Responder, SecretSource, ToolBlock

logger = logging.getLogger(__name__)


def create_tool_endpoint(
    block: ToolBlock,
    application_secret: SecretSource,
    sink: EventSink,
    respond: Responder,
    clock: Callable[[], float] | None = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> DotDict:
    """Create the handlers for one tool block.

    ``respond(request_id, response)`` delivers a GateResponse to the open
    HTTP request; it may be sync or async.
    """
    if not block.get("id"):
        raise ValidationError("Tool block id is required")

    gate = create_verification_gate(block["id"], application_secret, clock=clock, tolerance_seconds=tolerance_seconds)

    async def on_request(request_id: str, headers: HeadersLike, raw_body: str | bytes) -> bool:
        """Handle an inbound call. Returns True when the request was admitted."""
        signed, rejection = gate.check(headers, raw_body)
        if rejection is not None:
            await maybe_await(respond(request_id, rejection))
            return False

        try:
            body = json.loads(signed.body)
        except ValueError:
            body = None

        if not isinstance(body, dict):
            await maybe_await(respond(request_id, GateResponse(status=400, body={"error": "Invalid JSON body"})))
            return False

        parameters = body.get("parameters") or {}
        parent_event_id = body.get("eventId") or signed.event_id

        logger.info("Admitted call to tool %s (event %s)", block.get("name"), parent_event_id)
        await maybe_await(
            sink.emit(
                {"requestId": request_id, "parameters": parameters},
                {"echo": True, "secondaryParentEventIds": [parent_event_id]},
            )
        )
        return True

    async def process_result(echo: dict[str, Any] | None, result: Any) -> None:
        """Send the tool's result back to the caller waiting on the echoed request."""
        if not echo:
            raise ValidationError("This block should not be called directly")

        request_id = (echo.get("body") or {}).get("requestId")
        if not request_id:
            raise ValidationError("Echo event does not carry a request id")

        await maybe_await(
            respond(
                request_id,
                GateResponse(
                    status=200,
                    headers={"Content-Type": "application/json"},
                    body={"result": result},
                ),
            )
        )

    def sync(current: ToolBlock | None = None) -> dict[str, Any]:
        """Publish this tool's descriptor for generation steps to discover."""
        return {
            "newStatus": "ready",
            "signalUpdates": {"definition": tool_definition(current or block)},
        }

    return DotDict(
        {
            "gate": gate,
            "on_request": on_request,
            "process_result": process_result,
            "sync": sync,
        }
    )
