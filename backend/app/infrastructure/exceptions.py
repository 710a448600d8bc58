"""
Custom Exceptions for FinCharts AI

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class FinChartsError(Exception):
    """Base exception for all FinCharts AI errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(FinChartsError):
    """Raised when input validation fails."""
    pass


class AuthenticationError(FinChartsError):
    """Raised when the identity provider rejects credentials or a code."""
    pass


class DatabaseError(FinChartsError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class MissingCorrelationError(FinChartsError):
    """
    Raised when a webhook event cannot be tied to a local user.

    Retrying will not produce the missing data, so these events are
    logged and dropped.
    """

    def __init__(self, event_type: str, object_id: Optional[str] = None):
        details = {"event_type": event_type}
        if object_id:
            details["object_id"] = object_id
        super().__init__(
            f"No local user id resolvable for {event_type} ({object_id})",
            details,
        )


class AIServiceError(FinChartsError):
    """Raised when AI (Gemini) operations fail."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        details = dict(details or {})
        if model:
            details["model"] = model
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class RateLimitError(AIServiceError):
    """Raised when API rate limits are exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(message, details=details, original_error=original_error)


class InvalidToolOutputError(AIServiceError):
    """Raised when the model calls a tool with arguments we cannot use."""
    pass


class ConfigurationError(FinChartsError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
