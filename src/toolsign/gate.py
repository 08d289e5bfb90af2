"""Inbound Verification Gate - authenticate signed requests at a tool endpoint.

Checks run in a fixed order and the first failure wins:

1. application secret available   (else 500, setup incomplete)
2. X-Event-Id, X-Timestamp and X-Signature all present   (else 401)
3. |now - timestamp| <= tolerance, 300 seconds by default   (else 401)
4. signature matches HMAC(derived endpoint key, body + timestamp)   (else 401)

Rejections returned to callers carry a generic message only; the specific
reason is logged.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable

import httpx

from toolsign.config import DEFAULT_TOLERANCE_SECONDS, resolve_secret
from toolsign.dotdict import DotDict
from toolsign.errors import AuthenticationError, ConfigurationError
from toolsign.security import (
    EVENT_ID_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    derive_endpoint_secret,
    verify_signature,
)
from toolsign.types import GateResponse, HeadersLike, SecretSource, SignedRequest

logger = logging.getLogger(__name__)

_TIMESTAMP_PATTERN = re.compile(r"-?\d{1,15}", re.ASCII)

UNAUTHORIZED_BODY = {"error": "Unauthorized"}
MISCONFIGURED_BODY = {"error": "Server configuration incomplete"}


def _to_bytes(raw_body: str | bytes) -> bytes:
    if isinstance(raw_body, bytes):
        return raw_body
    return raw_body.encode("utf-8")


def create_verification_gate(
    endpoint_id: str,
    application_secret: SecretSource,
    clock: Callable[[], float] | None = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> DotDict:
    """Create the gate for one endpoint.

    ``application_secret`` may be the secret itself or a zero-argument
    callable returning it, so a secret written after the gate is built
    (first sync) is picked up. ``clock`` returns unix seconds.

    Returns a DotDict with ``verify`` (raises) and ``check`` (returns a
    response instead of raising).
    """
    now = clock or time.time

    def verify(headers: HeadersLike, raw_body: str | bytes) -> SignedRequest:
        secret = resolve_secret(application_secret)
        if not secret:
            raise ConfigurationError("App security secret not available")

        try:
            normalized = httpx.Headers(headers)
        except UnicodeEncodeError as error:
            raise AuthenticationError("Malformed security headers") from error

        event_id = normalized.get(EVENT_ID_HEADER)
        timestamp_text = normalized.get(TIMESTAMP_HEADER)
        signature = normalized.get(SIGNATURE_HEADER)

        if not event_id or not timestamp_text or not signature:
            raise AuthenticationError("Missing required security headers")

        if not _TIMESTAMP_PATTERN.fullmatch(timestamp_text.strip()):
            raise AuthenticationError("Malformed request timestamp")

        timestamp = int(timestamp_text)
        skew = abs(int(now()) - timestamp)
        if skew > tolerance_seconds:
            raise AuthenticationError(f"Request timestamp outside freshness window ({skew}s)")

        body = _to_bytes(raw_body)
        endpoint_secret = derive_endpoint_secret(endpoint_id, secret)
        if not verify_signature(body, timestamp, signature, endpoint_secret):
            raise AuthenticationError("Invalid request signature")

        return SignedRequest(event_id=event_id, timestamp=timestamp, signature=signature, body=body)

    def check(headers: HeadersLike, raw_body: str | bytes) -> tuple[SignedRequest | None, GateResponse | None]:
        """Return ``(request, None)`` when admitted, ``(None, response)`` when rejected."""
        try:
            return verify(headers, raw_body), None
        except ConfigurationError as error:
            logger.error("Endpoint %s cannot verify requests: %s", endpoint_id, error)
            return None, GateResponse(status=error.status_code, body=dict(MISCONFIGURED_BODY))
        except AuthenticationError as error:
            logger.warning("Rejected request for endpoint %s: %s", endpoint_id, error)
            return None, GateResponse(status=error.status_code, body=dict(UNAUTHORIZED_BODY))

    return DotDict(
        {
            "endpoint_id": endpoint_id,
            "verify": verify,
            "check": check,
        }
    )
