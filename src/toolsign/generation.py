"""Generation step - pending-operation lifecycle around one model call.

The model call itself is injected (``generate`` and optionally
``generate_object``); this module wires the configured tools into it and
makes sure the pending operation always ends up complete or cancelled.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from toolsign.config import DEFAULT_MAX_DELAY, DEFAULT_MAX_RETRIES, DEFAULT_REQUEST_TIMEOUT
from toolsign.dotdict import DotDict
from toolsign.errors import ConfigurationError, GenerationError, ValidationError
from toolsign.retry import maybe_await
from toolsign.tools import create_tools_from_config
from toolsign.types import EventSink, GenerationRequest, GenerationResult, Usage

logger = logging.getLogger(__name__)

Generator = Callable[[GenerationRequest], GenerationResult | Awaitable[GenerationResult]]

_PASSTHROUGH_OPTIONS = ("system", "maxSteps", "maxRetries", "maxTokens", "temperature")


def format_error_message(error: BaseException) -> str:
    """Human-readable failure text, including the provider's response body if any."""
    message = str(error) or "Unknown error"

    response_body = getattr(error, "response_body", None) or getattr(
        getattr(error, "last_error", None), "response_body", None
    )
    if not response_body:
        return message

    try:
        data = json.loads(response_body)
    except (TypeError, ValueError):
        return f"{message}\n\nProvider Response: {response_body}"
    return f"{message}\n\nProvider Error: {json.dumps(data, indent=2)}"


def _add_usage(total: Usage, extra: Usage | None) -> Usage:
    extra = extra or {}
    return Usage(
        promptTokens=total["promptTokens"] + int(extra.get("promptTokens", 0)),
        completionTokens=total["completionTokens"] + int(extra.get("completionTokens", 0)),
        totalTokens=total["totalTokens"] + int(extra.get("totalTokens", 0)),
    )


def _build_request(input_config: dict[str, Any], tools: dict[str, DotDict]) -> GenerationRequest:
    request = GenerationRequest(model=input_config["model"], tools=tools)

    if input_config.get("prompt"):
        request["prompt"] = input_config["prompt"]
    elif input_config.get("messages"):
        request["messages"] = list(input_config["messages"])
    else:
        raise ValidationError("Either 'prompt' or 'messages' must be provided.")

    for key in _PASSTHROUGH_OPTIONS:
        if input_config.get(key) is not None:
            request[key] = input_config[key]  # type: ignore[literal-required]
    return request


async def run_generation(
    event_id: str,
    input_config: dict[str, Any],
    application_secret: str | bytes | None,
    sink: EventSink,
    generate: Generator,
    generate_object: Generator | None = None,
    transport: dict[str, Any] | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    max_delay: float = DEFAULT_MAX_DELAY,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    signal: DotDict | None = None,
) -> dict[str, Any]:
    """Run one generation step with signed tool calls.

    ``input_config`` holds ``model``, ``prompt`` or ``messages``, and the
    optional ``system``, ``schema``, ``tools`` (list of ToolDescriptor),
    ``maxSteps``, ``maxRetries``, ``maxTokens`` and ``temperature``.

    The emitted (and returned) payload has ``model``, ``usage`` and either
    ``text`` or, when a schema is given, ``object``. On failure the pending
    operation is cancelled with the error text and GenerationError raised.
    """
    if not application_secret:
        raise ConfigurationError("Tool security secret not available. App may not be synchronized properly.")
    if not input_config.get("model"):
        raise ValidationError("Model is required")

    model = input_config["model"]
    pending_id = await maybe_await(sink.create_pending({"statusDescription": "Working..."}))

    try:
        tools = create_tools_from_config(
            input_config.get("tools"),
            event_id,
            application_secret,
            sink=sink,
            pending_id=pending_id,
            transport=transport,
            max_retries=max_retries,
            max_delay=max_delay,
            request_timeout=request_timeout,
            signal=signal,
        )
        request = _build_request(input_config, tools)

        result = await maybe_await(generate(request))
        text = result.get("text", "")
        usage = _add_usage(Usage(promptTokens=0, completionTokens=0, totalTokens=0), result.get("usage"))

        output: dict[str, Any] = {}
        schema = input_config.get("schema")
        if schema:
            if generate_object is None:
                raise ValidationError("A schema was given but no object generator is configured")

            await maybe_await(sink.update_pending(pending_id, {"statusDescription": "Generating object..."}))
            object_result = await maybe_await(
                generate_object(GenerationRequest(model=model, prompt=text, schema=schema))
            )
            output["object"] = object_result.get("object")
            usage = _add_usage(usage, object_result.get("usage"))
        else:
            output["text"] = text

        payload = {**output, "model": model, "usage": usage}
        await maybe_await(sink.emit(payload, {"complete": pending_id}))
        return payload

    except asyncio.CancelledError:
        await maybe_await(sink.cancel_pending(pending_id, "Error: Generation cancelled"))
        raise
    except Exception as error:
        message = format_error_message(error)
        logger.error("Generation for event %s failed: %s", event_id, message)
        await maybe_await(sink.cancel_pending(pending_id, f"Error: {message}"))
        raise GenerationError(message, {"code": getattr(error, "code", None)}) from error
