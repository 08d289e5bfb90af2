"""Toolsign Error Classes."""

from __future__ import annotations

from typing import Any

from toolsign.types import ErrorCode, TransportErrorKind


class ToolsignError(Exception):
    """Base error for all toolsign errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = "UNKNOWN_ERROR",
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.details = details


class AuthenticationError(ToolsignError):
    """Raised when an inbound request fails header, freshness or signature checks."""

    def __init__(self, message: str = "Invalid or missing request signature") -> None:
        super().__init__(message, "UNAUTHORIZED", 401)


class ConfigurationError(ToolsignError):
    """Raised when the application secret is not available (setup incomplete)."""

    def __init__(self, message: str = "Application secret not available") -> None:
        super().__init__(message, "CONFIGURATION_ERROR", 500)


class ValidationError(ToolsignError):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", 400, details)


class CancelledError(ToolsignError):
    """Raised when the caller aborts a call or a retry sequence."""

    def __init__(self, message: str = "Tool call cancelled by caller") -> None:
        super().__init__(message, "CANCELLED")


class TransportError(ToolsignError):
    """Raised by the HTTP transport, tagged with a structured failure kind."""

    def __init__(
        self,
        message: str,
        kind: TransportErrorKind = "UNKNOWN",
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        code: ErrorCode = "NETWORK_ERROR" if status_code is None else _error_code_from_status(status_code)
        super().__init__(message, code, status_code)
        self.kind = kind
        self.response_body = response_body


class RetryExhaustedError(ToolsignError):
    """Raised when a retryable operation never succeeded within its attempt budget."""

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"{operation_name} failed after {attempts} attempts: {last_error}",
            "RETRY_EXHAUSTED",
            getattr(last_error, "status_code", None),
        )
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


class GenerationError(ToolsignError):
    """Raised when a generation step fails; the pending operation has been cancelled."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "GENERATION_FAILED", None, details)


def _error_code_from_status(status_code: int) -> ErrorCode:
    """Map HTTP status code to error code."""
    match status_code:
        case 401 | 403:
            return "UNAUTHORIZED"
        case 404:
            return "NOT_FOUND"
        case 400 | 422:
            return "INVALID_REQUEST"
        case _:
            return "NETWORK_ERROR" if status_code >= 500 else "UNKNOWN_ERROR"

