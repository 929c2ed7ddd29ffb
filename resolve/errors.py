"""
Domain error taxonomy.

Route handlers and services raise these; ``resolve.main`` registers a single
exception handler that turns them into ``{"detail": ...}`` JSON responses with
the matching status code.
"""
from fastapi import status


class ResolveError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str = "", status_code: int = 0):
        self.message = message or self.default_message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class Unauthorized(ResolveError):
    """Missing or invalid credential."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(ResolveError):
    """Valid credential, insufficient role or ownership."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(ResolveError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ValidationFailed(ResolveError):
    """Malformed input, oversized file or disallowed mime type."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class PaymentRequired(ResolveError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "No active subscription or strategy packs available"


class UpstreamFailure(ResolveError):
    """An external service (identity, storage, model, billing, email) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service error"
