"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.config import settings
from app.database import Base
from app.models.user import utcnow


class Booking(Base):
    """A renter's request for a companion's time."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    renter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.user_id"), nullable=False, index=True
    )
    companion_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.user_id"), nullable=False, index=True
    )

    # Schedule
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    booking_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    package_name: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)

    # Pricing (smallest currency unit)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )  # pending, approved, rejected, completed, cancelled
    admin_notes: Mapped[str | None] = mapped_column(Text)
    payment_status: Mapped[str] = mapped_column(
        String(30), default="unpaid"
    )  # owned by the payment provider: unpaid, waiting_validation, paid, ...

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    @property
    def scheduled_start(self) -> datetime:
        """Start of the booked slot; date and time are local to the booking timezone."""
        return datetime.combine(self.booking_date, self.booking_time, tzinfo=settings.zone)

    @property
    def scheduled_end(self) -> datetime:
        """End of the booked slot, timezone-aware."""
        return self.scheduled_start + timedelta(hours=self.duration_hours)


class BookingStatusHistory(Base):
    """Append-only audit trail of a booking's status changes."""

    __tablename__ = "booking_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    changed_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.user_id"), nullable=False
    )
