"""Database models."""

from app.models.admin import AuditLog
from app.models.booking import Booking, BookingStatusHistory
from app.models.notification import Notification
from app.models.user import Profile, UserRoleAssignment

__all__ = [
    # User
    "Profile",
    "UserRoleAssignment",
    # Booking
    "Booking",
    "BookingStatusHistory",
    # Notification
    "Notification",
    # Admin
    "AuditLog",
]
