"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code: str = "internal_error"
    retryable: bool = False

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    code = "validation_error"

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "not_found"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    code = "unauthenticated"

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    code = "forbidden"

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class Unauthorized(AuthorizationError):
    """Actor's role does not allow the requested booking transition."""

    code = "unauthorized"

    def __init__(self, detail: str = "You are not allowed to perform this booking action") -> None:
        super().__init__(detail=detail)


class InvalidTransition(AppException):
    """Requested status is not reachable from the booking's current status."""

    code = "invalid_transition"

    def __init__(
        self,
        current: str | None = None,
        requested: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.current = current
        self.requested = requested
        if detail is None:
            detail = f"Invalid booking transition: {current} → {requested}"
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class BookingConflict(InvalidTransition):
    """Booking status changed underneath a concurrent transition."""

    code = "conflict"

    def __init__(self, booking_id: str, expected: str, requested: str) -> None:
        super().__init__(
            current=expected,
            requested=requested,
            detail=(
                f"Booking '{booking_id}' is no longer '{expected}'; "
                "it was changed by another request"
            ),
        )


class MissingReason(ValidationError):
    """A required justification was absent or blank."""

    code = "missing_reason"

    def __init__(self, detail: str = "A reason is required for this action") -> None:
        super().__init__(detail=detail)


class StoreUnavailable(AppException):
    """Underlying persistence failed; the request may be retried."""

    code = "store_unavailable"
    retryable = True

    def __init__(self, detail: str | None = None) -> None:
        message = "Booking store is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class RateLimitExceeded(AppException):
    """Rate limit exceeded exception."""

    code = "rate_limited"

    def __init__(self, detail: str = "Too many requests. Please try again later.") -> None:
        super().__init__(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)
