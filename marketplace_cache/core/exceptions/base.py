"""
Marketplace Error Root

Every error the service raises on purpose derives from MarketplaceError.
Each class states how it surfaces over HTTP (``status_code``) and whether a
client may simply try the same request again (``retryable``); the API error
handler reads both, so adding a new error type never means touching the
handler.

Author: System Architect
Date: 2026-01-14
"""

from typing import Any


class MarketplaceError(Exception):
    """
    Root of the marketplace query cache error hierarchy.

    Attributes:
        message: Human-readable description
        request_id: Correlation ID of the request that failed, filled in at
            the HTTP boundary when the raiser did not know it
        details: Structured context (offending values, upstream status, ...)

    Example:
        raise InvalidPageRequestError("page must be >= 1", details={"page": 0})
    """

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None):
        self.message = message
        self.request_id = request_id
        self.details = dict(details or {})
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Response body for this error."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "request_id": self.request_id,
            "retryable": self.retryable,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "MarketplaceError":
        """Attach a hint telling the caller how to fix the request."""
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "MarketplaceError":
        """Merge extra fields into ``details`` and return self."""
        self.details.update(context)
        return self

    @classmethod
    def from_exception(cls, exc: Exception, message: str | None = None, **details) -> "MarketplaceError":
        """
        Wrap a library exception (redis, httpx, orjson) as this error type.

        The wrapped exception's class and text land in ``details`` so the
        response and the logs name the real cause. Callers still chain with
        ``raise ... from exc``.
        """
        return cls(
            message or str(exc),
            details={"original_error": type(exc).__name__, "original_message": str(exc), **details},
        )


class ConfigurationError(MarketplaceError):
    """Settings or startup inputs (seed files, backend names) are unusable."""
