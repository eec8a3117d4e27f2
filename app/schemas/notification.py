"""Notification schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    """Schema for an in-app notification."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    message: str
    booking_id: UUID | None
    metadata: dict[str, Any] | None = Field(None, validation_alias="metadata_")
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Schema for paginated notifications."""

    notifications: list[NotificationResponse]
    total: int
    unread_count: int
    page: int
    page_size: int
