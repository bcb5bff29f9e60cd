"""
Exception hierarchy for the NextGen site.

Every error raised by a service carries the HTTP status the API layer
should answer with, so handlers never have to translate error types.
"""


class SiteError(Exception):
    """Base class for all site errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(SiteError):
    """Raised when request data is missing or malformed."""
    status_code = 400


class ConflictError(SiteError):
    """Raised when a unique field (id, slug, code, email) is already taken."""
    # The admin panel client expects 400 here, not 409
    status_code = 400


class AuthenticationError(SiteError):
    """Raised when credentials or the session token are invalid."""
    status_code = 401


class PermissionDeniedError(SiteError):
    """Raised when the session role is too low for an operation."""
    status_code = 403


class NotFoundError(SiteError):
    """Raised when a record does not exist."""
    status_code = 404


class UploadError(SiteError):
    """Raised when an uploaded file is rejected."""
    status_code = 400


class RateLimitError(SiteError):
    """Raised when the outbound AI request budget is exhausted."""
    status_code = 429


class LLMClientError(SiteError):
    """Raised when LLM operations fail."""
    status_code = 500
