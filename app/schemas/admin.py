"""Admin back-office schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class DashboardStats(BaseModel):
    """Headline numbers for the admin dashboard."""

    total_renters: int
    total_companions: int
    total_bookings: int
    today_bookings: int
    pending_bookings: int
    approved_bookings: int
    verified_companions: int
    unverified_companions: int
    pending_payments: int


class AuditLogResponse(BaseModel):
    """Schema for an audit log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    action: str
    resource_type: str
    resource_id: UUID | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    created_at: datetime
