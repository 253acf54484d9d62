"""
Platform-wide exception hierarchy.

Services raise these; the app factory registers a single handler for
``AppError`` that renders the standard error envelope:

    {"success": false, "error": {"message": "...", "code": "..."}}

Every class carries a default HTTP status and machine-readable code; both
can be overridden per raise when a route needs a more specific code.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Issue", resource_id=issue_id)
    raise ValidationError("Team name must be between 1 and 50 characters")
    raise PermissionDenied("Only team owner can delete team")
"""


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    """Input was well-formed JSON but broke a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown (kept for logs / debugging).
    """

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: dict | None = None, code: str | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code=code)


class LimitExceededError(ValidationError):
    """A counting limit (projects per team, issues per project, ...) is full."""

    code = "LIMIT_EXCEEDED"


class AuthenticationError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDenied(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    """Raised when a requested resource does not exist or is soft-deleted.

    Also used when the caller is not a member of the owning team, so the
    response never confirms that a foreign resource exists.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Issue").
        resource_id: The id that was looked up. Logged, not returned.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str | None = None, code: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found", code=code)


class ConflictError(AppError):
    """The operation would duplicate a unique value or clash with current state.

    Args:
        message: Human-readable explanation.
        code: Optional specific code (e.g. "EMAIL_EXISTS").
    """

    status_code = 409
    code = "CONFLICT"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMITED"
