"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import ExternalServiceError

    raise ExternalServiceError(
        "Push service unavailable",
        error_code="PUSH_TRANSPORT_ERROR",
        details={"service": "fcm"},
    )

Note:
    Delivery failures for a single recipient are not exceptions; they are
    recorded on the notification or batch row. These classes cover faults
    that abort a whole unit of work.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code
        details: Additional error context (metadata, original error, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to a dictionary for logging or task results.

        Returns:
            Dict with error, error_code, and details keys
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for:
    - Push transport failures (network, authentication, quota on the whole call)
    - Unexpected responses from the push service

    Example:
        try:
            response = messaging.send_each(messages, app=app)
        except FirebaseError as e:
            raise ExternalServiceError(
                "Multicast send failed",
                error_code="PUSH_TRANSPORT_ERROR",
                details={"service": "fcm", "original_error": str(e)},
            ) from e
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
