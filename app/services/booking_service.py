"""Booking lifecycle service.

The only code path that changes a booking's status. Every mutation loads the
booking, resolves the caller's role fresh from the role table, asks the state
machine for permission, writes the new status with a conditional update, and
appends a status-history row. Admin actions also land in the audit log.
Notifications go out last and can never undo the change.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.config import settings
from app.core.exceptions import (
    BookingConflict,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from app.core.permissions import (
    ActorContext,
    ActorRole,
    AdminAuthorizationGate,
    admin_gate,
    resolve_actor_role,
)
from app.domain.booking_state import BookingStatus, validate_transition
from app.models.booking import Booking, BookingStatusHistory
from app.models.user import Profile
from app.schemas.booking import (
    BookingCreate,
    BookingFilters,
    BookingResponse,
    BookingWithParties,
    CompanionBookingStats,
)
from app.services.audit_service import AuditService, audit_service
from app.services.notification_service import NotificationService, notification_service

logger = logging.getLogger(__name__)

HISTORY_TICK = timedelta(microseconds=1)


@contextmanager
def _store_guard(operation: str) -> Iterator[None]:
    """Translate persistence failures into StoreUnavailable."""
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Booking store failure during {operation}: {e}")
        raise StoreUnavailable(operation) from e


def _escape_like(term: str) -> str:
    """Make ``%`` and ``_`` in user input match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class BookingService:
    """Orchestrates booking reads and status transitions."""

    def __init__(
        self,
        gate: AdminAuthorizationGate = admin_gate,
        notifier: NotificationService = notification_service,
        audit: AuditService = audit_service,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.gate = gate
        self.notifier = notifier
        self.audit = audit
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        return self._clock().astimezone(UTC)

    # ==================== READS ====================

    async def get_by_id(self, db: AsyncSession, booking_id: UUID) -> Booking:
        """Load a booking or raise NotFoundError."""
        with _store_guard("get_by_id"):
            result = await db.execute(select(Booking).where(Booking.id == booking_id))
            booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def get_history(self, db: AsyncSession, booking_id: UUID) -> list[BookingStatusHistory]:
        """Status history, oldest first."""
        with _store_guard("get_history"):
            result = await db.execute(
                select(BookingStatusHistory)
                .where(BookingStatusHistory.booking_id == booking_id)
                .order_by(BookingStatusHistory.timestamp.asc())
            )
            return list(result.scalars().all())

    async def fetch_bookings(
        self, db: AsyncSession, filters: BookingFilters | None = None
    ) -> list[BookingWithParties]:
        """List bookings matching ``filters``, newest first, with party display fields."""
        filters = filters or BookingFilters()
        renter = aliased(Profile)
        companion = aliased(Profile)

        query = (
            select(
                Booking,
                renter.full_name,
                renter.email,
                companion.full_name,
                companion.avatar_url,
            )
            .outerjoin(renter, renter.user_id == Booking.renter_id)
            .outerjoin(companion, companion.user_id == Booking.companion_id)
        )

        if filters.status != "all":
            query = query.where(Booking.status == BookingStatus(filters.status).value)
        if filters.date_from:
            query = query.where(Booking.booking_date >= filters.date_from)
        if filters.date_to:
            query = query.where(Booking.booking_date <= filters.date_to)
        if filters.companion_id:
            query = query.where(Booking.companion_id == filters.companion_id)
        if filters.renter_id:
            query = query.where(Booking.renter_id == filters.renter_id)
        if filters.search and filters.search.strip():
            term = f"%{_escape_like(filters.search.strip())}%"
            query = query.where(
                or_(
                    renter.full_name.ilike(term, escape="\\"),
                    renter.email.ilike(term, escape="\\"),
                    companion.full_name.ilike(term, escape="\\"),
                    Booking.location.ilike(term, escape="\\"),
                )
            )

        query = query.order_by(Booking.created_at.desc())

        with _store_guard("fetch_bookings"):
            result = await db.execute(query)
            rows = result.all()

        return [
            BookingWithParties(
                **BookingResponse.model_validate(booking).model_dump(),
                renter_name=renter_name or "Unknown",
                renter_email=renter_email or "",
                companion_name=companion_name or "Unknown",
                companion_avatar=companion_avatar,
            )
            for booking, renter_name, renter_email, companion_name, companion_avatar in rows
        ]

    async def get_with_parties(self, db: AsyncSession, booking_id: UUID) -> BookingWithParties:
        """Single booking with party display fields."""
        booking = await self.get_by_id(db, booking_id)
        with _store_guard("get_with_parties"):
            renter = await db.get(Profile, booking.renter_id)
            companion = await db.get(Profile, booking.companion_id)
        return BookingWithParties(
            **BookingResponse.model_validate(booking).model_dump(),
            renter_name=(renter.full_name if renter else None) or "Unknown",
            renter_email=(renter.email if renter else None) or "",
            companion_name=(companion.full_name if companion else None) or "Unknown",
            companion_avatar=companion.avatar_url if companion else None,
        )

    async def companion_stats(
        self, db: AsyncSession, companion_id: UUID, today: date | None = None
    ) -> CompanionBookingStats:
        """Dashboard numbers over a companion's incoming bookings."""
        today = today or self.now().astimezone(settings.zone).date()
        # Weeks start on Sunday
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        week_end = week_start + timedelta(days=7)

        with _store_guard("companion_stats"):
            result = await db.execute(select(Booking).where(Booking.companion_id == companion_id))
            bookings = list(result.scalars().all())

        live = [
            b for b in bookings
            if b.status not in (BookingStatus.REJECTED.value, BookingStatus.CANCELLED.value)
        ]
        return CompanionBookingStats(
            total_today=sum(1 for b in bookings if b.booking_date == today),
            total_week=sum(1 for b in bookings if week_start <= b.booking_date < week_end),
            revenue_estimate=sum(b.total_price for b in live),
            avg_duration=(sum(b.duration_hours for b in live) / len(live)) if live else 0.0,
            pending_count=sum(1 for b in bookings if b.status == BookingStatus.PENDING.value),
            approved_count=sum(1 for b in bookings if b.status == BookingStatus.APPROVED.value),
            rejected_count=sum(
                1 for b in bookings
                if b.status in (BookingStatus.REJECTED.value, BookingStatus.CANCELLED.value)
            ),
        )

    # ==================== CREATION ====================

    async def create_booking(
        self, db: AsyncSession, actor: ActorContext, data: BookingCreate
    ) -> Booking:
        """Create a pending booking priced at the companion's hourly rate."""
        if actor.user_id == data.companion_id:
            raise ValidationError("You cannot book yourself")

        with _store_guard("create_booking"):
            renter = await db.get(Profile, actor.user_id)
            companion = await db.get(Profile, data.companion_id)
        if not renter or not renter.is_active:
            raise ValidationError("Your account is not active")
        if not companion or not companion.is_active:
            raise NotFoundError("Companion", str(data.companion_id))
        if not await self.gate.has_role(db, companion.user_id, ActorRole.COMPANION):
            raise ValidationError("This user does not offer companion bookings")
        if not companion.hourly_rate or companion.hourly_rate <= 0:
            raise ValidationError("This companion has not set an hourly rate")

        now = self.now()
        booking = Booking(
            renter_id=actor.user_id,
            companion_id=companion.user_id,
            booking_date=data.booking_date,
            booking_time=data.booking_time,
            duration_hours=data.duration_hours,
            location=data.location,
            package_name=data.package_name,
            notes=data.notes,
            total_price=companion.hourly_rate * data.duration_hours,
            status=BookingStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        with _store_guard("create_booking"):
            db.add(booking)
            await db.flush()
            await self._append_history(db, booking.id, BookingStatus.PENDING, actor.user_id, None)

        logger.info(
            f"Booking created booking_id={booking.id} renter_id={booking.renter_id} "
            f"companion_id={booking.companion_id} total_price={booking.total_price}"
        )
        await self._dispatch_notification(db, booking, BookingStatus.PENDING, actor.user_id, None)
        return booking

    # ==================== TRANSITIONS ====================

    async def approve(
        self, db: AsyncSession, actor: ActorContext, booking_id: UUID, notes: str | None = None
    ) -> Booking:
        """pending → approved (companion or admin)."""
        return await self._transition(db, actor, booking_id, BookingStatus.APPROVED, notes)

    async def reject(
        self, db: AsyncSession, actor: ActorContext, booking_id: UUID, reason: str | None
    ) -> Booking:
        """pending → rejected (companion or admin). ``reason`` must not be blank."""
        return await self._transition(db, actor, booking_id, BookingStatus.REJECTED, reason)

    async def cancel(
        self, db: AsyncSession, actor: ActorContext, booking_id: UUID, reason: str | None = None
    ) -> Booking:
        """pending/approved → cancelled (renter or admin)."""
        return await self._transition(db, actor, booking_id, BookingStatus.CANCELLED, reason)

    async def complete(
        self, db: AsyncSession, actor: ActorContext, booking_id: UUID, notes: str | None = None
    ) -> Booking:
        """approved → completed (companion or admin), once the slot has ended."""
        return await self._transition(db, actor, booking_id, BookingStatus.COMPLETED, notes)

    async def _transition(
        self,
        db: AsyncSession,
        actor: ActorContext,
        booking_id: UUID,
        requested: BookingStatus,
        notes: str | None,
    ) -> Booking:
        booking = await self.get_by_id(db, booking_id)
        role = await resolve_actor_role(db, actor, booking, self.gate)
        current = booking.status
        now = self.now()

        scheduled_end = None
        if settings.require_elapsed_end_for_completion:
            scheduled_end = booking.scheduled_end

        new_status = validate_transition(
            current,
            requested,
            role,
            reason=notes,
            scheduled_end=scheduled_end,
            now=now,
        )
        notes = notes.strip() if notes and notes.strip() else None

        values: dict = {"status": new_status.value, "updated_at": now}
        if notes:
            values["admin_notes"] = notes

        with _store_guard("transition"):
            result = await db.execute(
                update(Booking)
                .where(Booking.id == booking.id, Booking.status == current)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.info(
                    f"Transition lost race booking_id={booking.id} "
                    f"expected={current} requested={new_status.value}"
                )
                raise BookingConflict(str(booking.id), current, new_status.value)

            await self._append_history(db, booking.id, new_status, actor.user_id, notes)

            if role is ActorRole.ADMIN:
                await self.audit.log_booking_transition(
                    db, actor, booking.id, current, new_status.value, notes
                )
            await db.flush()
            await db.refresh(booking)

        logger.info(
            f"Booking transition booking_id={booking.id} {current} -> {new_status.value} "
            f"by user_id={actor.user_id} as {role.value if role else 'none'}"
        )
        await self._dispatch_notification(db, booking, new_status, actor.user_id, notes)
        return booking

    async def _append_history(
        self,
        db: AsyncSession,
        booking_id: UUID,
        status: BookingStatus,
        changed_by: UUID,
        notes: str | None,
    ) -> BookingStatusHistory:
        result = await db.execute(
            select(func.max(BookingStatusHistory.timestamp)).where(
                BookingStatusHistory.booking_id == booking_id
            )
        )
        last = result.scalar_one_or_none()
        timestamp = self.now()
        if last is not None and timestamp <= _as_utc(last):
            timestamp = _as_utc(last) + HISTORY_TICK

        entry = BookingStatusHistory(
            booking_id=booking_id,
            status=status.value,
            timestamp=timestamp,
            notes=notes,
            changed_by=changed_by,
        )
        db.add(entry)
        await db.flush()
        return entry

    async def _dispatch_notification(
        self,
        db: AsyncSession,
        booking: Booking,
        status: BookingStatus,
        changed_by: UUID,
        notes: str | None,
    ) -> None:
        # Runs in a savepoint so a failure only discards the notification rows
        try:
            async with db.begin_nested():
                await self.notifier.booking_status_changed(
                    db, booking, status.value, changed_by, notes
                )
        except Exception as e:
            logger.warning(
                f"Notification dispatch failed for booking_id={booking.id} "
                f"status={status.value}: {e}"
            )


booking_service = BookingService()
