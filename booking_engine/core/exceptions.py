# booking_engine/core/exceptions.py
"""
Domain exceptions for the booking engine.

Services raise these; the API layer converts them with
``to_http_exception()`` through a single exception handler.
"""
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationError(DomainException):
    """Malformed request, e.g. a non-positive duration."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransitionError(ValidationError):
    """Booking status change from an illegal predecessor state."""


class NotFoundError(DomainException):
    """Unknown reservation, booking, package, provider or rule id."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainException):
    """Requested interval cannot be booked; carries structured conflicts."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflicts: Optional[List[Any]] = None, **kwargs) -> None:
        self.conflicts = list(conflicts or [])
        details = kwargs.pop("details", None) or {}
        details.setdefault(
            "conflicts",
            [c.model_dump(mode="json") if hasattr(c, "model_dump") else c for c in self.conflicts],
        )
        super().__init__(message, details=details, **kwargs)


class ExpiredReservationError(DomainException):
    """Hold confirmed at or after its expiresAt."""

    status_code = status.HTTP_410_GONE


class PackageExhaustedError(DomainException):
    """Package has no remaining sessions for the request."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PackageExpiredError(DomainException):
    """Package validity window has passed."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DownstreamError(DomainException):
    """Payment, notification or persistence collaborator failure."""

    status_code = status.HTTP_502_BAD_GATEWAY


class LockUnavailableError(DomainException):
    """Provider calendar lock could not be acquired in time."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
