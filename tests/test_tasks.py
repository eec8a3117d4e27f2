from datetime import UTC, date, datetime, time, timedelta
from uuid import uuid4

from sqlalchemy import select

from app.models.booking import Booking
from app.models.notification import Notification
from app.tasks import mark_email_sent, purge_read_notifications, queue_booking_reminders
from tests.factories import create_companion, create_profile


async def test_reminders_go_to_both_parties_of_approved_bookings(db):
    renter = await create_profile(db)
    companion = await create_companion(db)
    today = date(2030, 6, 1)

    for day, status in [
        (today + timedelta(days=1), "approved"),
        (today + timedelta(days=1), "pending"),
        (today + timedelta(days=2), "approved"),
    ]:
        db.add(
            Booking(
                renter_id=renter.user_id,
                companion_id=companion.user_id,
                booking_date=day,
                booking_time=time(20, 30),
                duration_hours=2,
                total_price=200_000,
                status=status,
            )
        )
    await db.commit()

    sent = await queue_booking_reminders(db, today)
    await db.commit()

    assert sent == 2
    result = await db.execute(select(Notification).where(Notification.type == "booking_reminder"))
    reminders = result.scalars().all()
    assert {n.user_id for n in reminders} == {renter.user_id, companion.user_id}
    assert all("20:30" in n.message for n in reminders)


async def test_purge_only_removes_old_read_notifications(db):
    user = await create_profile(db)
    now = datetime(2030, 6, 1, tzinfo=UTC)
    old = now - timedelta(days=45)
    recent = now - timedelta(days=2)

    for created_at, is_read in [(old, True), (old, False), (recent, True)]:
        db.add(
            Notification(
                user_id=user.user_id,
                type="booking_approved",
                title="t",
                message="m",
                is_read=is_read,
                created_at=created_at,
            )
        )
    await db.commit()

    removed = await purge_read_notifications(db, now)
    await db.commit()

    assert removed == 1
    remaining = (await db.execute(select(Notification))).scalars().all()
    assert len(remaining) == 2


async def test_mark_email_sent_flags_the_notification(db):
    user = await create_profile(db)
    notification = Notification(
        user_id=user.user_id, type="booking_approved", title="t", message="m"
    )
    db.add(notification)
    await db.commit()

    assert await mark_email_sent(db, notification.id) is True
    await db.commit()
    await db.refresh(notification)
    assert notification.email_sent is True


async def test_mark_email_sent_for_unknown_row_reports_false(db):
    assert await mark_email_sent(db, uuid4()) is False
