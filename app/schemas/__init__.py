"""Pydantic schemas for API validation."""

from app.schemas.admin import AuditLogResponse, DashboardStats
from app.schemas.booking import (
    BookingCreate,
    BookingDetailResponse,
    BookingFilters,
    BookingResponse,
    BookingWithParties,
    StatusHistoryItem,
)
from app.schemas.notification import NotificationListResponse, NotificationResponse
from app.schemas.user import (
    AdminUserListResponse,
    ProfilePublicResponse,
    ProfileResponse,
    RecommendedProfile,
)

__all__ = [
    # Booking
    "BookingCreate",
    "BookingResponse",
    "BookingWithParties",
    "BookingDetailResponse",
    "BookingFilters",
    "StatusHistoryItem",
    # User
    "ProfileResponse",
    "ProfilePublicResponse",
    "RecommendedProfile",
    "AdminUserListResponse",
    # Notification
    "NotificationResponse",
    "NotificationListResponse",
    # Admin
    "DashboardStats",
    "AuditLogResponse",
]
