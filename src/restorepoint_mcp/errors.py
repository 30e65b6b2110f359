"""Error codes, the typed ``RestorepointError`` and response envelopes.

Every failure that leaves a component is expressed as a ``RestorepointError``
carrying a code from ``ErrorCode``. Tool handlers turn errors into the
``{"success": False, "error": {...}}`` envelope with ``handle_error``.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

logger = logging.getLogger("restorepoint_mcp.errors")

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500
HTTP_BAD_GATEWAY = 502
HTTP_SERVICE_UNAVAILABLE = 503
HTTP_GATEWAY_TIMEOUT = 504


class ErrorCode(StrEnum):
    """Stable error identifiers returned to tool callers."""

    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_UNAUTHORIZED = "AUTH_UNAUTHORIZED"

    NETWORK_CONNECTION_FAILED = "NETWORK_CONNECTION_FAILED"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    NETWORK_RATE_LIMITED = "NETWORK_RATE_LIMITED"
    NETWORK_SERVER_ERROR = "NETWORK_SERVER_ERROR"
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"

    VALIDATION_INVALID_INPUT = "VALIDATION_INVALID_INPUT"
    VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    TASK_ALREADY_RUNNING = "TASK_ALREADY_RUNNING"
    TASK_FAILED = "TASK_FAILED"
    TASK_TIMEOUT = "TASK_TIMEOUT"
    TASK_CANCELLED = "TASK_CANCELLED"
    TASK_LIMIT_EXCEEDED = "TASK_LIMIT_EXCEEDED"
    TASK_INVALID_TRANSITION = "TASK_INVALID_TRANSITION"

    SYSTEM_INTERNAL_ERROR = "SYSTEM_INTERNAL_ERROR"
    SYSTEM_MAINTENANCE_MODE = "SYSTEM_MAINTENANCE_MODE"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.AUTH_MISSING_TOKEN: "Authentication token is required",
    ErrorCode.AUTH_INVALID_TOKEN: "Invalid authentication token provided",
    ErrorCode.AUTH_TOKEN_EXPIRED: "Authentication token has expired",
    ErrorCode.AUTH_UNAUTHORIZED: "Unauthorized access",
    ErrorCode.NETWORK_CONNECTION_FAILED: "Failed to connect to Restorepoint server",
    ErrorCode.NETWORK_TIMEOUT: "Request timed out",
    ErrorCode.NETWORK_RATE_LIMITED: "Rate limit exceeded, please try again later",
    ErrorCode.NETWORK_SERVER_ERROR: "Restorepoint server error",
    ErrorCode.NETWORK_UNAVAILABLE: "Restorepoint service is currently unavailable",
    ErrorCode.VALIDATION_INVALID_INPUT: "Invalid input provided",
    ErrorCode.VALIDATION_MISSING_FIELD: "Required field is missing",
    ErrorCode.VALIDATION_OUT_OF_RANGE: "Value is out of valid range",
    ErrorCode.RESOURCE_NOT_FOUND: "Resource not found",
    ErrorCode.TASK_NOT_FOUND: "Task not found",
    ErrorCode.TASK_ALREADY_RUNNING: "Task is already running",
    ErrorCode.TASK_FAILED: "Task execution failed",
    ErrorCode.TASK_TIMEOUT: "Task execution timed out",
    ErrorCode.TASK_CANCELLED: "Task was cancelled",
    ErrorCode.TASK_LIMIT_EXCEEDED: "Maximum concurrent task limit exceeded",
    ErrorCode.TASK_INVALID_TRANSITION: "Task status transition is not allowed",
    ErrorCode.SYSTEM_INTERNAL_ERROR: "Internal system error",
    ErrorCode.SYSTEM_MAINTENANCE_MODE: "System is in maintenance mode",
}

# Status code -> (error code, fallback message)
_HTTP_ERROR_MAP: dict[int, tuple[ErrorCode, str]] = {
    HTTP_BAD_REQUEST: (ErrorCode.VALIDATION_INVALID_INPUT, "Invalid request data"),
    HTTP_UNAUTHORIZED: (ErrorCode.AUTH_UNAUTHORIZED, "Unauthorized access"),
    HTTP_FORBIDDEN: (ErrorCode.AUTH_UNAUTHORIZED, "Access forbidden"),
    HTTP_NOT_FOUND: (ErrorCode.RESOURCE_NOT_FOUND, "Resource not found"),
    HTTP_TOO_MANY_REQUESTS: (ErrorCode.NETWORK_RATE_LIMITED, "Rate limit exceeded"),
    HTTP_INTERNAL_SERVER_ERROR: (ErrorCode.NETWORK_SERVER_ERROR, "Server error"),
    HTTP_BAD_GATEWAY: (ErrorCode.NETWORK_SERVER_ERROR, "Bad gateway"),
    HTTP_SERVICE_UNAVAILABLE: (ErrorCode.NETWORK_UNAVAILABLE, "Service unavailable"),
    HTTP_GATEWAY_TIMEOUT: (ErrorCode.NETWORK_TIMEOUT, "Gateway timeout"),
}


class RestorepointError(Exception):
    """Structured error raised by every Restorepoint component.

    Attributes:
        code: Stable error identifier.
        message: Human-readable description.
        status_code: HTTP-like status associated with the failure.
        details: Optional structured context (e.g. the remote error body).
        timestamp: When the error was created (UTC).

    """

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        status_code: int = HTTP_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error, defaulting the message to the code's standard text."""
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "Unknown error occurred")
        self.status_code = status_code
        self.details = details
        self.timestamp = datetime.now(UTC)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation of the error."""
        return {
            "name": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "statusCode": self.status_code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_http_response(cls, status_code: int, body: object = None) -> Self:
        """Create an error from a failed HTTP response.

        Args:
            status_code: The HTTP status returned by the server.
            body: The decoded response body, if any.

        Returns:
            An error whose code is derived from the status. A string ``message``
            in the body replaces the default message.

        """
        code, message = _HTTP_ERROR_MAP.get(
            status_code,
            (ErrorCode.NETWORK_CONNECTION_FAILED, "Network request failed"),
        )
        details: dict[str, Any] | None = None
        if isinstance(body, dict):
            body_message = body.get("message")
            if isinstance(body_message, str) and body_message:
                message = body_message
            details = body
        elif body is not None:
            details = {"body": body}
        return cls(code, message, status_code, details)


def handle_error(error: BaseException, context: str | None = None, **info: Any) -> dict[str, Any]:
    """Log an error and return the standard error envelope.

    Args:
        error: Any exception; non-Restorepoint errors become ``SYSTEM_INTERNAL_ERROR``.
        context: Component name used in the log line.
        **info: Extra fields added to the error details and log line.

    Returns:
        ``{"success": False, "error": {"code", "message", "details", "timestamp"}}``.

    """
    if isinstance(error, RestorepointError):
        rp_error = error
    else:
        rp_error = RestorepointError(
            ErrorCode.SYSTEM_INTERNAL_ERROR,
            str(error) or type(error).__name__,
            HTTP_INTERNAL_SERVER_ERROR,
            {"originalError": type(error).__name__, **info},
        )

    logger.error(
        "[%s] %s (code=%s, status=%s)",
        context or "restorepoint",
        rp_error.message,
        rp_error.code.value,
        rp_error.status_code,
    )
    return {
        "success": False,
        "error": {
            "code": rp_error.code.value,
            "message": rp_error.message,
            "details": rp_error.details,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    }


def create_success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    """Return the standard success envelope for ``data``."""
    response: dict[str, Any] = {
        "success": True,
        "data": data,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if message is not None:
        response["message"] = message
    return response


async def with_error_handling(
    fn: Callable[[], Awaitable[Any]],
    context: str | None = None,
    **info: Any,
) -> dict[str, Any]:
    """Await ``fn`` and wrap its result (or failure) in a response envelope."""
    try:
        result = await fn()
    except Exception as exc:  # noqa: BLE001 - converted to an error envelope
        return handle_error(exc, context, **info)
    return create_success_response(result)


def is_error_response(response: object) -> bool:
    """Return True when ``response`` is an error envelope."""
    return isinstance(response, dict) and response.get("success") is False


def is_success_response(response: object) -> bool:
    """Return True when ``response`` is a success envelope."""
    return isinstance(response, dict) and response.get("success") is True


__all__ = [
    "ERROR_MESSAGES",
    "HTTP_NOT_FOUND",
    "HTTP_SERVICE_UNAVAILABLE",
    "HTTP_UNAUTHORIZED",
    "ErrorCode",
    "RestorepointError",
    "create_success_response",
    "handle_error",
    "is_error_response",
    "is_success_response",
    "with_error_handling",
]
