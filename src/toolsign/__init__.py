"""toolsign - signed, retried HTTP tool calls for LLM generation steps.

Example:
    import asyncio
    import os

    from toolsign import create_tools_from_config, create_verification_gate

    async def main():
        tools = create_tools_from_config(
            [{
                "identifier": "block-42",
                "name": "Lookup order",
                "description": "Find an order by id",
                "schema": {"type": "object", "properties": {"orderId": {"type": "string"}}},
                "url": "https://tools.example.com/block-42",
            }],
            event_id="evt-1",
            application_secret=os.environ["TOOLSIGN_APPLICATION_SECRET"],
        )
        print(await tools["lookup_order"].execute({"orderId": "A-17"}))

    asyncio.run(main())

    # Receiving side, inside the endpoint's request handler
    gate = create_verification_gate("block-42", os.environ["TOOLSIGN_APPLICATION_SECRET"])
    signed, rejection = gate.check(request.headers, await request.body())
"""

# Signing
from toolsign.security import (
    EVENT_ID_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    build_signed_headers,
    derive_endpoint_secret,
    sign_request,
    verify_signature,
)

# Delivery
from toolsign.abort import create_abort_controller
from toolsign.http_client import create_http_transport
from toolsign.retry import is_retryable_error, with_retry
from toolsign.tools import create_tool, create_tools_from_config, slugify_tool_name, tool_definition

# Receiving side
from toolsign.endpoint import create_tool_endpoint
from toolsign.gate import create_verification_gate

# Generation step
from toolsign.generation import format_error_message, run_generation

# Configuration
from toolsign.config import generate_application_secret, load_config, sync_application_secret

# Errors
from toolsign.errors import (
    AuthenticationError,
    CancelledError,
    ConfigurationError,
    GenerationError,
    RetryExhaustedError,
    ToolsignError,
    TransportError,
    ValidationError,
)

# Types
from toolsign.types import (
    ErrorCode,
    EventSink,
    GateResponse,
    SignedRequest,
    ToolBlock,
    ToolDescriptor,
    ToolsignConfig,
    TransportErrorKind,
)

__all__ = [
    # Signing
    "EVENT_ID_HEADER",
    "TIMESTAMP_HEADER",
    "SIGNATURE_HEADER",
    "derive_endpoint_secret",
    "sign_request",
    "verify_signature",
    "build_signed_headers",
    # Delivery
    "create_abort_controller",
    "create_http_transport",
    "is_retryable_error",
    "with_retry",
    "create_tool",
    "create_tools_from_config",
    "slugify_tool_name",
    "tool_definition",
    # Receiving side
    "create_tool_endpoint",
    "create_verification_gate",
    # Generation step
    "format_error_message",
    "run_generation",
    # Configuration
    "generate_application_secret",
    "load_config",
    "sync_application_secret",
    # Errors
    "ToolsignError",
    "AuthenticationError",
    "CancelledError",
    "ConfigurationError",
    "GenerationError",
    "RetryExhaustedError",
    "TransportError",
    "ValidationError",
    # Types
    "ErrorCode",
    "EventSink",
    "GateResponse",
    "SignedRequest",
    "ToolBlock",
    "ToolDescriptor",
    "ToolsignConfig",
    "TransportErrorKind",
]
