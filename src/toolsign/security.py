"""Endpoint secret derivation and request signing.

Every tool endpoint signs and verifies with its own key, derived from the
single application secret and the endpoint's stable identifier:

    endpoint_secret = HMAC-SHA256(application_secret, endpoint_id)
    signature       = HMAC-SHA256(endpoint_secret, body + str(timestamp))

Both sides only need the application secret and the endpoint identifier,
so nothing beyond the application secret is ever stored.
"""

from __future__ import annotations

import hashlib
import hmac
import time

from toolsign.errors import ValidationError

EVENT_ID_HEADER = "X-Event-Id"
TIMESTAMP_HEADER = "X-Timestamp"
SIGNATURE_HEADER = "X-Signature"
SECURITY_HEADERS = (EVENT_ID_HEADER, TIMESTAMP_HEADER, SIGNATURE_HEADER)


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def derive_endpoint_secret(endpoint_id: str, application_secret: str | bytes) -> str:
    """Derive the per-endpoint signing key (lowercase hex).

    The hex text is key material: callers pass it straight to
    ``sign_request`` rather than decoding it.
    """
    if not endpoint_id:
        raise ValidationError("Endpoint identifier is required")
    if not application_secret:
        raise ValidationError("Application secret is required")

    return hmac.new(_to_bytes(application_secret), _to_bytes(endpoint_id), hashlib.sha256).hexdigest()


def canonical_message(body: str | bytes, timestamp: int) -> bytes:
    """Body bytes immediately followed by the decimal timestamp, no separator."""
    return _to_bytes(body) + str(int(timestamp)).encode("ascii")


def sign_request(body: str | bytes, timestamp: int, endpoint_secret: str | bytes) -> str:
    """Sign a request body for the given unix timestamp (seconds)."""
    return hmac.new(_to_bytes(endpoint_secret), canonical_message(body, timestamp), hashlib.sha256).hexdigest()


def verify_signature(
    body: str | bytes,
    timestamp: int,
    signature: str,
    endpoint_secret: str | bytes,
) -> bool:
    """Recompute the expected signature and compare in constant time."""
    if not signature.isascii():
        return False
    expected = sign_request(body, timestamp, endpoint_secret)
    return hmac.compare_digest(expected, signature)


def build_signed_headers(
    body: str | bytes,
    event_id: str,
    endpoint_id: str,
    application_secret: str | bytes,
    timestamp: int | None = None,
) -> dict[str, str]:
    """Headers for a signed outbound POST, including Content-Type."""
    if timestamp is None:
        timestamp = int(time.time())

    endpoint_secret = derive_endpoint_secret(endpoint_id, application_secret)
    signature = sign_request(body, timestamp, endpoint_secret)

    return {
        "Content-Type": "application/json",
        EVENT_ID_HEADER: event_id,
        TIMESTAMP_HEADER: str(timestamp),
        SIGNATURE_HEADER: signature,
    }
