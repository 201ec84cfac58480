"""
Error taxonomy shared by services and routers.

Services raise these; the handlers registered in ``app.main`` turn them
into ``{"message": ...}`` responses with the matching status code.

Usage:
    from app.core.errors import NotFoundError, ValidationError

    raise NotFoundError("Issue", issue_id)
    raise ValidationError("Title is required", details={"title": "required"})
"""


class AppError(Exception):
    """Base class for errors that map to a specific HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or missing input, or a business-rule violation (400).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, logged but not returned.
    """

    status_code = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class AuthError(AppError):
    """Missing, invalid or expired token, or an inactive account (401)."""

    status_code = 401


class AuthorizationError(AppError):
    """Authenticated, but the role or ownership check failed (403)."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    """Missing or soft-deleted entity (404).

    Soft-deleted records are reported exactly like missing ones so callers
    can't tell the difference.
    """

    status_code = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ServerError(AppError):
    """Unexpected failure (500). Detail is hidden in production."""

    status_code = 500
