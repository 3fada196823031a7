"""Error taxonomy for the short link engine.

Every error a caller can observe derives from ``ShortLinkError`` and carries
the HTTP status the API layer answers with. ``ConflictError`` never leaves the
allocator: a uniqueness violation is a collision and is retried.
"""

__all__ = [
    "ShortLinkError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "AllocationExhaustedError",
    "StoreError",
    "ConflictError",
]


class ShortLinkError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(ShortLinkError):
    """Raised when a required field is missing or empty."""

    status_code = 400
    default_detail = "URL is required"


class UnauthorizedError(ShortLinkError):
    """Raised when no valid identity accompanies the request."""

    status_code = 401
    default_detail = "Unauthorized"


class ForbiddenError(ShortLinkError):
    """Raised when the caller does not own the link."""

    status_code = 403
    default_detail = "Not allowed"


class NotFoundError(ShortLinkError):
    """Raised for unknown codes and for codes whose target cannot be redirected to."""

    status_code = 404
    default_detail = "Short URL not found"


class AllocationExhaustedError(ShortLinkError):
    """Raised when every allocation attempt collided with an existing code."""

    status_code = 500
    default_detail = "Could not allocate a short code"


class StoreError(ShortLinkError):
    """Raised when the backing store fails."""

    status_code = 500
    default_detail = "Storage error"


class ConflictError(Exception):
    """Raised by the store when a code is already taken."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Short code '{code}' is already taken")
