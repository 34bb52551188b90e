"""
errors.py - Goalify exception classes.
Services raise these; main.py turns them into the JSON envelope.
"""

from typing import Optional


class GoalifyError(Exception):
    """Base exception for the application."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        errors: Optional[dict[str, list[str]]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.errors = errors or {}
        super().__init__(self.message)


class NotFound(GoalifyError):
    """Missing resource, or a child that does not belong to its claimed parent (404)."""

    def __init__(self, message: str = "Resource not found", errors: Optional[dict] = None):
        super().__init__(message, status_code=404, errors=errors)


class Forbidden(GoalifyError):
    """The acting user does not own the goal chain (403)."""

    def __init__(self, message: str = "Access forbidden", errors: Optional[dict] = None):
        super().__init__(message, status_code=403, errors=errors)


class Unauthorized(GoalifyError):
    """Missing, invalid or revoked credentials (401)."""

    def __init__(self, message: str = "Unauthorized access", errors: Optional[dict] = None):
        super().__init__(message, status_code=401, errors=errors)


class ValidationFailed(GoalifyError):
    """A write broke a cross-entity rule (422). `errors` names the offending field."""

    def __init__(self, message: str = "Validation failed", errors: Optional[dict] = None):
        super().__init__(message, status_code=422, errors=errors)

    @classmethod
    def for_field(cls, field: str, detail: str, message: str = "Validation failed"):
        return cls(message, errors={field: [detail]})


class RateLimited(GoalifyError):
    """Too many requests (429)."""

    def __init__(self, message: str = "Too many requests", errors: Optional[dict] = None):
        super().__init__(message, status_code=429, errors=errors)


class ServiceUnavailable(GoalifyError):
    """A backing service is unreachable (503)."""

    def __init__(self, message: str = "Service unavailable", errors: Optional[dict] = None):
        super().__init__(message, status_code=503, errors=errors)
