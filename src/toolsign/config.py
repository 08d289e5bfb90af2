"""Configuration loading and application secret lifecycle."""

from __future__ import annotations

import logging
import math
import os
import secrets
from typing import Any, Mapping

from dotenv import load_dotenv

from toolsign.types import SecretSource, ToolsignConfig

logger = logging.getLogger(__name__)

SECRET_SIGNAL = "toolSecuritySecret"

DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_DELAY = 5.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_TOLERANCE_SECONDS = 300


def _env_number(name: str, fallback: float, minimum: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return fallback
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return fallback
    if not math.isfinite(value) or value < minimum:
        logger.warning("Ignoring %s=%r: must be >= %s", name, raw, minimum)
        return fallback
    return value


def load_config(dotenv_path: str | None = None) -> ToolsignConfig:
    """Load configuration from a .env file and the environment.

    Environment variables:
        TOOLSIGN_APPLICATION_SECRET  shared application secret (optional)
        TOOLSIGN_MAX_RETRIES         attempts per tool call (default 3)
        TOOLSIGN_MAX_DELAY           backoff cap in seconds (default 5)
        TOOLSIGN_REQUEST_TIMEOUT     per-attempt HTTP deadline in seconds (default 30)
        TOOLSIGN_TOLERANCE_SECONDS   inbound freshness window (default 300)
    """
    load_dotenv(dotenv_path)

    return ToolsignConfig(
        application_secret=os.environ.get("TOOLSIGN_APPLICATION_SECRET") or None,
        max_retries=int(_env_number("TOOLSIGN_MAX_RETRIES", DEFAULT_MAX_RETRIES, 1)),
        max_delay=_env_number("TOOLSIGN_MAX_DELAY", DEFAULT_MAX_DELAY, 0),
        request_timeout=_env_number("TOOLSIGN_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, 0.001),
        tolerance_seconds=int(_env_number("TOOLSIGN_TOLERANCE_SECONDS", DEFAULT_TOLERANCE_SECONDS, 0)),
    )


def generate_application_secret() -> str:
    """Fresh 32-byte application secret, hex encoded."""
    return secrets.token_hex(32)


def sync_application_secret(signals: Mapping[str, Any]) -> dict[str, Any]:
    """Return the signal updates needed so an application secret exists.

    An existing secret is never rotated; the returned dict is empty in
    that case. The caller persists whatever is returned.
    """
    if signals.get(SECRET_SIGNAL):
        return {}

    logger.info("No application secret found, generating one")
    return {SECRET_SIGNAL: generate_application_secret()}


def resolve_secret(source: SecretSource) -> str | bytes | None:
    """Read the current application secret from a value or a zero-arg callable."""
    if callable(source):
        source = source()
    return source or None
