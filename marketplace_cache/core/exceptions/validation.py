"""
Validation Exceptions

All exceptions related to request validation.

Author: System Architect
Date: 2026-01-14
"""

from marketplace_cache.core.exceptions.base import MarketplaceError


class ValidationError(MarketplaceError):
    """
    Raised when request validation fails.

    This is the base class for all validation-related errors.
    """

    status_code = 400


class InvalidPageRequestError(ValidationError):
    """
    Raised when a page request is out of bounds.

    Common causes:
    - page < 1
    - page_size < 1
    - page_size above the configured maximum

    Example:
        raise InvalidPageRequestError(
            "page_size must be between 1 and 100",
            details={"page_size": 500, "max_page_size": 100}
        )
    """
    pass
