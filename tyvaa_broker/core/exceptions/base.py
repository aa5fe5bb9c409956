"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.

Author: Tyvaa Platform Team
Date: 2025-06-14
"""

from typing import Any


class TyvaaBaseError(Exception):
    """
    Base exception for all Tyvaa broker errors.

    Attributes:
        message: Error message
        correlation_id: Correlation ID (usually the message id being processed)
        details: Additional error details (dict)

    Example:
        raise BrokerConnectionError(
            "Failed to connect to RabbitMQ",
            details={"attempts": 10, "host": "rabbitmq"}
        )
    """

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.correlation_id = correlation_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, correlation_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "TyvaaBaseError":
        """
        Add a suggestion to help users fix the error.

        Returns:
            Self (for method chaining)
        """
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "TyvaaBaseError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        correlation_str = (
            f", correlation_id='{self.correlation_id}'" if self.correlation_id else ""
        )
        return f"{self.__class__.__name__}(message='{self.message}'{correlation_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: str | None = None,
        correlation_id: str | None = None,
        **details,
    ) -> "TyvaaBaseError":
        """
        Create an error of this class from another exception.

        Useful for wrapping third-party exceptions with additional context.

        Example:
            >>> try:
            ...     await aio_pika.connect(url)
            ... except AMQPConnectionError as e:
            ...     raise BrokerConnectionError.from_exception(e, host="rabbitmq") from e
        """
        error_message = message or str(exc) or exc.__class__.__name__
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details,
        }
        return cls(error_message, correlation_id=correlation_id, details=error_details)


class ConfigurationError(TyvaaBaseError):
    """Raised when configuration is invalid or missing."""
    pass
