"""
Custom exception classes for the aggregator.

Only the store and the provider boundary raise hard failures; everything
above them converts these into a "data temporarily unavailable" state.
"""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class NormalizationError(AppException):
    """Raised when a webhook payload cannot become an event."""

    def __init__(
        self,
        message: str = "Malformed webhook payload",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "NORMALIZATION_ERROR", details)


class StoreUnavailableError(AppException):
    """Raised when the event store cannot be reached or fails a statement."""

    def __init__(
        self,
        message: str = "Event store unavailable",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "STORE_UNAVAILABLE", details)


class ProviderUnavailableError(AppException):
    """Raised when the telephony provider cannot return call records."""

    def __init__(
        self,
        message: str = "Telephony provider unavailable",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "PROVIDER_UNAVAILABLE", details)


class SourceUnavailableError(AppException):
    """Raised by the sync client when the dashboard API cannot be reached."""

    def __init__(
        self,
        message: str = "Data source unavailable",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "SOURCE_UNAVAILABLE", details)
