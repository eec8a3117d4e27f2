"""Core utilities and security modules."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    BookingConflict,
    InvalidTransition,
    MissingReason,
    NotFoundError,
    StoreUnavailable,
    Unauthorized,
    ValidationError,
)
from app.core.security import create_access_token, decode_token, token_subject

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "BookingConflict",
    "InvalidTransition",
    "MissingReason",
    "NotFoundError",
    "StoreUnavailable",
    "Unauthorized",
    "ValidationError",
    "create_access_token",
    "decode_token",
    "token_subject",
]
