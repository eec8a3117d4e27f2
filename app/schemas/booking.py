"""Booking-related Pydantic schemas."""

from datetime import date, datetime, time
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import local_today
from app.domain.booking_state import BookingStatus


class BookingCreate(BaseModel):
    """Schema for a renter requesting a companion's time."""

    companion_id: UUID
    booking_date: date
    booking_time: time
    duration_hours: int = Field(..., ge=1, le=24)
    location: str | None = Field(None, max_length=255)
    package_name: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("booking_date")
    @classmethod
    def validate_booking_date(cls, v: date) -> date:
        if v < local_today():
            raise ValueError("booking_date cannot be in the past")
        return v


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    renter_id: UUID
    companion_id: UUID

    # Schedule
    booking_date: date
    booking_time: time
    duration_hours: int
    location: str | None
    package_name: str | None
    notes: str | None

    # Pricing
    total_price: int

    # Status
    status: BookingStatus
    admin_notes: str | None
    payment_status: str

    # Timestamps
    created_at: datetime
    updated_at: datetime


class BookingWithParties(BookingResponse):
    """Booking joined with minimal display fields for both parties."""

    renter_name: str = "Unknown"
    renter_email: str = ""
    companion_name: str = "Unknown"
    companion_avatar: str | None = None


class StatusHistoryItem(BaseModel):
    """One entry of a booking's status history."""

    model_config = ConfigDict(from_attributes=True)

    status: BookingStatus
    timestamp: datetime
    notes: str | None = None
    changed_by: UUID


class BookingDetailResponse(BookingWithParties):
    """Booking with parties and full status history."""

    status_history: list[StatusHistoryItem] = []


class BookingListResponse(BaseModel):
    """Schema for booking list."""

    bookings: list[BookingWithParties]
    total: int


class BookingFilters(BaseModel):
    """Filters accepted by the booking list queries."""

    status: BookingStatus | Literal["all"] = "all"
    date_from: date | None = None
    date_to: date | None = None
    companion_id: UUID | None = None
    renter_id: UUID | None = None
    search: str | None = Field(None, max_length=100)


class BookingApproveRequest(BaseModel):
    """Schema for approving a booking."""

    notes: str | None = Field(None, max_length=1000)


class BookingRejectRequest(BaseModel):
    """Schema for rejecting a booking. Blank reasons are refused by the service."""

    reason: str | None = Field(None, max_length=1000)


class BookingCancelRequest(BaseModel):
    """Schema for cancelling a booking."""

    reason: str | None = Field(None, max_length=1000)


class BookingCompleteRequest(BaseModel):
    """Schema for marking a booking completed."""

    notes: str | None = Field(None, max_length=1000)


class CompanionBookingStats(BaseModel):
    """Dashboard figures for a companion's incoming bookings."""

    total_today: int
    total_week: int
    revenue_estimate: int
    avg_duration: float
    pending_count: int
    approved_count: int
    rejected_count: int
