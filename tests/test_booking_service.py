from datetime import UTC, date, datetime, time, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import Select, Update, func, select, update
from sqlalchemy.exc import OperationalError

from app.config import local_today, settings
from app.core.exceptions import (
    BookingConflict,
    InvalidTransition,
    MissingReason,
    NotFoundError,
    StoreUnavailable,
    Unauthorized,
    ValidationError,
)
from app.models.admin import AuditLog
from app.models.booking import Booking, BookingStatusHistory
from app.models.notification import Notification
from app.schemas.booking import BookingFilters
from app.services.booking_service import BookingService, booking_service
from tests.factories import (
    actor_for,
    booking_request,
    create_admin,
    create_companion,
    create_profile,
)


class ExplodingNotifier:
    async def booking_status_changed(self, *args, **kwargs):
        raise RuntimeError("mail server on fire")


class FailingSession:
    """Wraps a session; statements of type ``fail_on`` raise OperationalError."""

    def __init__(self, session, fail_on):
        self._session = session
        self._fail_on = fail_on

    def __getattr__(self, name):
        return getattr(self._session, name)

    async def execute(self, statement, *args, **kwargs):
        if isinstance(statement, self._fail_on):
            raise OperationalError(str(statement), {}, ConnectionResetError("connection reset"))
        return await self._session.execute(statement, *args, **kwargs)


@pytest.fixture
async def parties(db):
    renter = await create_profile(db, full_name="Rina Renter", city="Jakarta")
    companion = await create_companion(db, full_name="Citra Companion", hourly_rate=100_000)
    admin = await create_admin(db, full_name="Ops Admin")
    return renter, companion, admin


@pytest.fixture
async def pending_booking(db, parties):
    renter, companion, _ = parties
    booking = await booking_service.create_booking(
        db, actor_for(renter), booking_request(companion, hours=3, location="Grand Indonesia")
    )
    await db.commit()
    return booking


async def history_of(db, booking_id):
    result = await db.execute(
        select(BookingStatusHistory)
        .where(BookingStatusHistory.booking_id == booking_id)
        .order_by(BookingStatusHistory.timestamp)
    )
    return list(result.scalars().all())


# ==================== CREATION ====================


async def test_create_booking_prices_from_hourly_rate(db, pending_booking, parties):
    renter, companion, _ = parties
    assert pending_booking.status == "pending"
    assert pending_booking.total_price == 300_000
    assert pending_booking.renter_id == renter.user_id
    assert pending_booking.companion_id == companion.user_id

    history = await history_of(db, pending_booking.id)
    assert [h.status for h in history] == ["pending"]
    assert history[0].changed_by == renter.user_id


async def test_create_booking_notifies_companion(db, pending_booking, parties):
    _, companion, _ = parties
    result = await db.execute(select(Notification).where(Notification.user_id == companion.user_id))
    notifications = result.scalars().all()
    assert len(notifications) == 1
    assert notifications[0].type == "booking_request"
    assert notifications[0].booking_id == pending_booking.id


async def test_cannot_book_yourself(db, parties):
    _, companion, _ = parties
    with pytest.raises(ValidationError):
        await booking_service.create_booking(db, actor_for(companion), booking_request(companion))


async def test_cannot_book_user_without_companion_role(db, parties):
    renter, _, _ = parties
    other = await create_profile(db, hourly_rate=50_000)
    with pytest.raises(ValidationError):
        await booking_service.create_booking(db, actor_for(renter), booking_request(other))


async def test_cannot_book_suspended_companion(db, parties):
    renter, _, _ = parties
    suspended = await create_companion(db, is_active=False)
    with pytest.raises(NotFoundError):
        await booking_service.create_booking(db, actor_for(renter), booking_request(suspended))


async def test_cannot_book_companion_without_rate(db, parties):
    renter, _, _ = parties
    no_rate = await create_companion(db, hourly_rate=None)
    with pytest.raises(ValidationError):
        await booking_service.create_booking(db, actor_for(renter), booking_request(no_rate))


# ==================== TRANSITIONS ====================


async def test_companion_approves_pending_booking(db, pending_booking, parties):
    _, companion, _ = parties
    booking = await booking_service.approve(
        db, actor_for(companion), pending_booking.id, notes="See you there"
    )
    await db.commit()

    assert booking.status == "approved"
    assert booking.admin_notes == "See you there"
    history = await history_of(db, booking.id)
    assert [h.status for h in history] == ["pending", "approved"]
    assert history[-1].changed_by == companion.user_id
    assert history[-1].notes == "See you there"


async def test_renter_cancels_approved_booking(db, pending_booking, parties):
    renter, companion, _ = parties
    await booking_service.approve(db, actor_for(companion), pending_booking.id)
    booking = await booking_service.cancel(
        db, actor_for(renter), pending_booking.id, reason="Plans changed"
    )
    await db.commit()

    assert booking.status == "cancelled"
    history = await history_of(db, booking.id)
    assert [h.status for h in history] == ["pending", "approved", "cancelled"]

    # Only the companion hears about the renter's cancellation
    result = await db.execute(
        select(Notification).where(Notification.type == "booking_cancelled")
    )
    recipients = [n.user_id for n in result.scalars().all()]
    assert recipients == [companion.user_id]


async def test_history_timestamps_strictly_increase(db, pending_booking, parties):
    renter, companion, _ = parties
    frozen = datetime(2030, 1, 1, 12, 0, tzinfo=UTC)
    service = BookingService(clock=lambda: frozen)

    await service.approve(db, actor_for(companion), pending_booking.id)
    await service.cancel(db, actor_for(renter), pending_booking.id)
    await db.commit()

    stamps = [h.timestamp for h in await history_of(db, pending_booking.id)]
    assert len(stamps) == 3
    assert all(a < b for a, b in zip(stamps, stamps[1:]))


async def test_completed_booking_cannot_be_cancelled(db, pending_booking, parties):
    renter, companion, _ = parties
    after_end = pending_booking.scheduled_end + timedelta(hours=1)
    service = BookingService(clock=lambda: after_end)

    await service.approve(db, actor_for(companion), pending_booking.id)
    await service.complete(db, actor_for(companion), pending_booking.id)
    await db.commit()

    with pytest.raises(InvalidTransition):
        await service.cancel(db, actor_for(renter), pending_booking.id, reason="too late")

    booking = await booking_service.get_by_id(db, pending_booking.id)
    assert booking.status == "completed"
    assert len(await history_of(db, pending_booking.id)) == 3


async def test_complete_before_slot_ends_is_refused(db, pending_booking, parties):
    _, companion, _ = parties
    before_end = pending_booking.scheduled_end - timedelta(minutes=5)
    service = BookingService(clock=lambda: before_end)

    await service.approve(db, actor_for(companion), pending_booking.id)
    with pytest.raises(InvalidTransition):
        await service.complete(db, actor_for(companion), pending_booking.id)


async def test_complete_just_after_local_end_time(db, pending_booking, parties, monkeypatch):
    monkeypatch.setattr(settings, "timezone", "Asia/Jakarta")
    _, companion, _ = parties
    # 19:00 + 3h ends at 22:00 WIB, which is 15:00 UTC
    day = pending_booking.booking_date
    service = BookingService(clock=lambda: datetime.combine(day, time(15, 1), tzinfo=UTC))

    await service.approve(db, actor_for(companion), pending_booking.id)
    booking = await service.complete(db, actor_for(companion), pending_booking.id)

    assert booking.status == "completed"
    assert pending_booking.scheduled_end == datetime(
        day.year, day.month, day.day, 22, 0, tzinfo=ZoneInfo("Asia/Jakarta")
    )


async def test_complete_at_end_time_in_utc_but_not_locally_is_refused(
    db, pending_booking, parties, monkeypatch
):
    monkeypatch.setattr(settings, "timezone", "Asia/Jakarta")
    _, companion, _ = parties
    day = pending_booking.booking_date
    service = BookingService(clock=lambda: datetime.combine(day, time(14, 59), tzinfo=UTC))

    await service.approve(db, actor_for(companion), pending_booking.id)
    with pytest.raises(InvalidTransition):
        await service.complete(db, actor_for(companion), pending_booking.id)


async def test_second_cancel_is_invalid_and_history_unchanged(db, pending_booking, parties):
    renter, _, _ = parties
    await booking_service.cancel(db, actor_for(renter), pending_booking.id)
    await db.commit()

    with pytest.raises(InvalidTransition):
        await booking_service.cancel(db, actor_for(renter), pending_booking.id)

    assert [h.status for h in await history_of(db, pending_booking.id)] == ["pending", "cancelled"]


@pytest.mark.parametrize("reason", ["", "   "])
async def test_reject_with_blank_reason_changes_nothing(db, pending_booking, parties, reason):
    _, companion, _ = parties
    with pytest.raises(MissingReason):
        await booking_service.reject(db, actor_for(companion), pending_booking.id, reason)

    booking = await booking_service.get_by_id(db, pending_booking.id)
    assert booking.status == "pending"
    assert len(await history_of(db, pending_booking.id)) == 1


async def test_reject_stores_trimmed_reason(db, pending_booking, parties):
    _, companion, _ = parties
    booking = await booking_service.reject(
        db, actor_for(companion), pending_booking.id, "  Not available that night  "
    )
    assert booking.status == "rejected"
    assert booking.admin_notes == "Not available that night"


async def test_stranger_cannot_approve(db, pending_booking):
    stranger = await create_profile(db)
    with pytest.raises(Unauthorized):
        await booking_service.approve(db, actor_for(stranger), pending_booking.id)


async def test_renter_cannot_approve_own_booking(db, pending_booking, parties):
    renter, _, _ = parties
    with pytest.raises(Unauthorized):
        await booking_service.approve(db, actor_for(renter), pending_booking.id)


async def test_transition_on_missing_booking_is_not_found(db, parties):
    _, _, admin = parties
    with pytest.raises(NotFoundError):
        await booking_service.approve(db, actor_for(admin), uuid4())


async def test_admin_transition_is_audited(db, pending_booking, parties):
    _, _, admin = parties
    await booking_service.approve(db, actor_for(admin), pending_booking.id, notes="Checked ID")
    await db.commit()

    result = await db.execute(select(AuditLog))
    entries = result.scalars().all()
    assert len(entries) == 1
    entry = entries[0]
    assert entry.action == "booking_approve"
    assert entry.resource_id == pending_booking.id
    assert entry.user_id == admin.user_id
    assert entry.old_values == {"status": "pending"}
    assert entry.new_values == {"status": "approved", "notes": "Checked ID"}
    assert entry.ip_address == "127.0.0.1"


async def test_party_transition_is_not_audited(db, pending_booking, parties):
    _, companion, _ = parties
    await booking_service.approve(db, actor_for(companion), pending_booking.id)
    await db.commit()

    count = await db.execute(select(func.count(AuditLog.id)))
    assert count.scalar() == 0


async def test_admin_role_wins_over_party_role(db, parties):
    renter, _, _ = parties
    dual = await create_profile(db, roles=("companion", "admin"), hourly_rate=80_000)
    booking = await booking_service.create_booking(db, actor_for(renter), booking_request(dual))
    await db.commit()

    # As admin the companion may also cancel, which a plain companion may not
    cancelled = await booking_service.cancel(db, actor_for(dual), booking.id, reason="policy")
    assert cancelled.status == "cancelled"


async def test_lost_race_raises_conflict(db, pending_booking, parties):
    _, companion, _ = parties
    # Another request cancels behind this session's back
    await db.execute(
        update(Booking)
        .where(Booking.id == pending_booking.id)
        .values(status="cancelled")
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(BookingConflict) as exc:
        await booking_service.approve(db, actor_for(companion), pending_booking.id)
    assert exc.value.status_code == 409
    assert isinstance(exc.value, InvalidTransition)
    assert len(await history_of(db, pending_booking.id)) == 1


async def test_store_failure_during_approve_is_retryable(db, pending_booking, parties):
    _, companion, _ = parties
    booking_id = pending_booking.id
    flaky = FailingSession(db, fail_on=Update)

    with pytest.raises(StoreUnavailable) as exc:
        await booking_service.approve(flaky, actor_for(companion), booking_id)
    assert exc.value.status_code == 503
    assert exc.value.retryable is True

    await db.rollback()
    booking = await booking_service.get_by_id(db, booking_id)
    assert booking.status == "pending"
    assert [h.status for h in await history_of(db, booking_id)] == ["pending"]


async def test_store_failure_during_fetch_is_retryable(db, pending_booking):
    with pytest.raises(StoreUnavailable) as exc:
        await booking_service.fetch_bookings(FailingSession(db, fail_on=Select))
    assert exc.value.retryable is True


async def test_notification_failure_does_not_undo_transition(db, pending_booking, parties):
    _, companion, _ = parties
    service = BookingService(notifier=ExplodingNotifier())

    booking = await service.approve(db, actor_for(companion), pending_booking.id)
    await db.commit()

    assert booking.status == "approved"
    assert [h.status for h in await history_of(db, pending_booking.id)] == ["pending", "approved"]
    result = await db.execute(
        select(func.count(Notification.id)).where(Notification.type == "booking_approved")
    )
    assert result.scalar() == 0


# ==================== READS ====================


async def test_fetch_bookings_filters_and_search(db, parties):
    renter, companion, _ = parties
    other_renter = await create_profile(db, full_name="Budi Santoso")

    first = await booking_service.create_booking(
        db, actor_for(renter), booking_request(companion, days_ahead=2, location="Senayan")
    )
    second = await booking_service.create_booking(
        db, actor_for(other_renter), booking_request(companion, days_ahead=5)
    )
    await booking_service.approve(db, actor_for(companion), second.id)
    await db.commit()

    everything = await booking_service.fetch_bookings(db)
    assert {b.id for b in everything} == {first.id, second.id}

    approved = await booking_service.fetch_bookings(db, BookingFilters(status="approved"))
    assert [b.id for b in approved] == [second.id]
    assert approved[0].renter_name == "Budi Santoso"
    assert approved[0].companion_name == "Citra Companion"

    by_name = await booking_service.fetch_bookings(db, BookingFilters(search="budi"))
    assert [b.id for b in by_name] == [second.id]

    by_location = await booking_service.fetch_bookings(db, BookingFilters(search="SENAYAN"))
    assert [b.id for b in by_location] == [first.id]

    window = await booking_service.fetch_bookings(
        db,
        BookingFilters(
            date_from=local_today() + timedelta(days=3),
            date_to=local_today() + timedelta(days=10),
        ),
    )
    assert [b.id for b in window] == [second.id]

    mine = await booking_service.fetch_bookings(db, BookingFilters(renter_id=renter.user_id))
    assert [b.id for b in mine] == [first.id]


@pytest.mark.parametrize("wildcard", ["%", "_", "Rina%"])
async def test_search_wildcards_match_literally(db, pending_booking, wildcard):
    found = await booking_service.fetch_bookings(db, BookingFilters(search=wildcard))
    assert found == []


async def test_search_finds_literal_underscore(db, parties):
    renter, _, _ = parties
    companion = await create_companion(db, full_name="dj_kiki")
    await booking_service.create_booking(db, actor_for(renter), booking_request(companion))
    lookalike = await create_companion(db, full_name="djXkiki")
    await booking_service.create_booking(db, actor_for(renter), booking_request(lookalike))
    await db.commit()

    found = await booking_service.fetch_bookings(db, BookingFilters(search="dj_k"))
    assert [b.companion_name for b in found] == ["dj_kiki"]


async def test_fetch_bookings_empty(db):
    assert await booking_service.fetch_bookings(db, BookingFilters(status="completed")) == []


async def test_get_with_parties_defaults_for_missing_names(db, parties):
    _, companion, _ = parties
    anonymous = await create_profile(db, full_name=None, email=None)
    booking = await booking_service.create_booking(
        db, actor_for(anonymous), booking_request(companion)
    )
    await db.commit()

    detail = await booking_service.get_with_parties(db, booking.id)
    assert detail.renter_name == "Unknown"
    assert detail.renter_email == ""
    assert detail.companion_name == "Citra Companion"


async def test_companion_stats(db, parties):
    renter, companion, _ = parties
    # A Wednesday; the week runs Sunday 2030-01-06 .. Saturday 2030-01-12
    today = date(2030, 1, 9)

    def add(day, status, hours=2):
        booking = Booking(
            renter_id=renter.user_id,
            companion_id=companion.user_id,
            booking_date=day,
            booking_time=time(10, 0),
            duration_hours=hours,
            total_price=hours * 100_000,
            status=status,
        )
        db.add(booking)

    add(today, "pending", hours=2)
    add(today, "approved", hours=4)
    add(date(2030, 1, 6), "rejected", hours=3)
    add(date(2030, 1, 12), "cancelled", hours=1)
    add(date(2030, 1, 13), "completed", hours=6)
    await db.commit()

    stats = await booking_service.companion_stats(db, companion.user_id, today=today)
    assert stats.total_today == 2
    assert stats.total_week == 4
    assert stats.revenue_estimate == (2 + 4 + 6) * 100_000
    assert stats.avg_duration == pytest.approx(4.0)
    assert stats.pending_count == 1
    assert stats.approved_count == 1
    assert stats.rejected_count == 2


async def test_companion_stats_without_bookings(db, parties):
    _, companion, _ = parties
    stats = await booking_service.companion_stats(db, companion.user_id, today=date(2030, 1, 9))
    assert stats.total_today == 0
    assert stats.revenue_estimate == 0
    assert stats.avg_duration == 0.0
