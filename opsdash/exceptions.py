"""Custom exceptions for the operations dashboard core."""

from typing import Any


class OpsDashError(Exception):
    """Base exception for all opsdash errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize opsdash error.

        Args:
            message: Error message
            details: Additional error details

        """
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(OpsDashError):
    """Raised when configuration is invalid or missing."""


class StoreError(OpsDashError):
    """Base class for remote store errors."""

    def __init__(
        self,
        status_code: int | None,
        message: str,
        response_text: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize store error.

        Args:
            status_code: HTTP status code, None when no response arrived
            message: Error message
            response_text: Raw response text from the store
            details: Additional error details

        """
        super().__init__(message, details)
        self.status_code = status_code
        self.response_text = response_text


class TransportError(StoreError):
    """Raised on network or remote failures that are worth retrying."""

    def __init__(
        self,
        message: str = "Remote store unavailable",
        status_code: int | None = None,
        response_text: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(status_code, message, response_text)
        self.retry_after = retry_after


class AuthenticationError(StoreError):
    """Raised when authentication fails (401)."""

    def __init__(self, message: str = "Authentication failed", response_text: str | None = None) -> None:
        super().__init__(401, message, response_text)


class PermissionError(StoreError):
    """Raised when access is forbidden (403)."""

    def __init__(self, message: str = "Access forbidden", response_text: str | None = None) -> None:
        super().__init__(403, message, response_text)


class NotFoundError(StoreError):
    """Raised when a record is not found (404 or empty single-row read)."""

    def __init__(self, message: str = "Record not found", response_text: str | None = None) -> None:
        super().__init__(404, message, response_text)


class RequestCancelledError(OpsDashError):
    """Raised to a consumer whose pending request was superseded by a newer one."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Request '{key}' was superseded", {"key": key})
        self.key = key


class ValidationError(OpsDashError):
    """Raised when input or entity validation fails."""

    def __init__(self, field: str, value: Any, message: str) -> None:
        super().__init__(message, {"field": field, "value": value})
        self.field = field
        self.value = value


class InvalidTransitionError(OpsDashError):
    """Raised when an order lifecycle transition is not allowed."""

    def __init__(self, order_id: str, from_status: str, action: str, reason: str) -> None:
        message = f"Cannot apply {action} to order '{order_id}' in status '{from_status}': {reason}"
        super().__init__(message, {"order_id": order_id, "from_status": from_status, "action": action})
        self.order_id = order_id
        self.from_status = from_status
        self.action = action
        self.reason = reason


class CacheError(OpsDashError):
    """Raised when cache operations fail."""


class ComposerDisposedError(OpsDashError):
    """Raised when a disposed query composer receives a patch."""

    def __init__(self) -> None:
        super().__init__("Query composer has been disposed")
