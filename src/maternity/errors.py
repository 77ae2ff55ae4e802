from __future__ import annotations

from typing import Any, Optional


class MaternityError(Exception):
    """Base class for domain errors raised by services.

    Each subclass carries the HTTP status and machine-readable code used by
    the API error envelope (see ``api/errors.py``).
    """

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(MaternityError):
    status_code = 404
    code = "not_found"


class ConflictError(MaternityError):
    """Raised when a business rule blocks an action (e.g. a taken slot)."""

    status_code = 409
    code = "conflict"


class PermissionDeniedError(MaternityError):
    status_code = 403
    code = "permission_denied"


class DomainValidationError(MaternityError):
    status_code = 422
    code = "validation_error"
