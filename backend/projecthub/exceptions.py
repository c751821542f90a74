"""Application exceptions.

Services and route handlers raise these; the handlers registered in
``projecthub.main`` turn them into the JSON error envelope with the matching
HTTP status code.
"""

from typing import Any


class AppError(Exception):
    """Base exception for expected application failures."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    """Request data failed validation.

    ``errors`` carries field-level detail as ``{"field": ..., "message": ...}``.
    """

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        if errors is None:
            errors = [{"field": field, "message": message}] if field else []
        self.errors = errors


class AuthenticationError(AppError):
    """Missing, expired or otherwise invalid credentials."""

    status_code = 401
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class AuthorizationError(AppError):
    """Authenticated user lacks the capability for the operation."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden: insufficient permissions"):
        super().__init__(message)


class NotFoundError(AppError):
    """Requested entity does not exist."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class ConflictError(AppError):
    """Request conflicts with current state (duplicates, invalid transitions)."""

    status_code = 409
    code = "CONFLICT"


class RateLimitError(AppError):
    """Caller exceeded a request quota."""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


def error_body(message: str, **extra: Any) -> dict[str, Any]:
    """JSON error envelope; ``error`` and ``message`` carry the same text."""
    return {"success": False, "error": message, "message": message, "data": None, **extra}
