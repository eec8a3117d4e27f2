"""Celery background tasks.

Each task runs its coroutine on a fresh event loop with its own engine,
so no pooled connection outlives the loop that opened it.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, timedelta
from uuid import UUID

from celery import shared_task
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config import local_today, settings
from app.domain.booking_state import BookingStatus
from app.models.booking import Booking
from app.models.notification import Notification
from app.services.notification_service import notification_service
from app.worker import celery_app

logger = logging.getLogger(__name__)

READ_NOTIFICATION_RETENTION_DAYS = 30


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


@asynccontextmanager
async def task_session() -> AsyncGenerator[AsyncSession, None]:
    """Session bound to a short-lived engine for one task run."""
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    finally:
        await engine.dispose()


# ==================== EMAIL TASKS ====================


def enqueue_email(
    notification_id: UUID,
    to_email: str,
    subject: str,
    html_content: str,
    text_content: str | None = None,
) -> None:
    """Publish an email for the worker. Raises kombu's OperationalError if the broker is down."""
    celery_app.send_task(
        "app.tasks.send_email_task",
        args=[str(notification_id), to_email, subject, html_content, text_content],
    )


@shared_task(bind=True, max_retries=3)
def send_email_task(
    self,
    notification_id: str,
    to_email: str,
    subject: str,
    html_content: str,
    text_content: str | None = None,
):
    """Send a notification email outside the request that produced it."""

    async def _send() -> bool:
        try:
            return await notification_service.send_email(
                to_email=to_email,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
            )
        finally:
            await notification_service.close()

    if not run_async(_send()):
        raise self.retry(countdown=60)
    mark_email_sent_task.delay(notification_id)
    return {"status": "success", "to": to_email}


@shared_task(bind=True, max_retries=5)
def mark_email_sent_task(self, notification_id: str):
    """Record delivery on the notification row."""
    if not run_async(_mark_email_sent(UUID(notification_id))):
        # The request that created the row may not have committed yet
        raise self.retry(countdown=10)
    return {"status": "success", "notification_id": notification_id}


async def _mark_email_sent(notification_id: UUID) -> bool:
    async with task_session() as db:
        return await mark_email_sent(db, notification_id)


async def mark_email_sent(db: AsyncSession, notification_id: UUID) -> bool:
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id)
        .values(email_sent=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


# ==================== REMINDER TASKS ====================


@shared_task(bind=True, max_retries=3)
def send_booking_reminders(self):
    """Notify renter and companion of approved bookings starting tomorrow."""
    try:
        sent = run_async(_send_booking_reminders())
    except Exception as exc:
        logger.error(f"Booking reminders failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    return {"status": "success", "reminders": sent}


async def _send_booking_reminders() -> int:
    async with task_session() as db:
        return await queue_booking_reminders(db, local_today())


async def queue_booking_reminders(db: AsyncSession, today: date) -> int:
    """Create reminder notifications for approved bookings on the day after ``today``."""
    tomorrow = today + timedelta(days=1)
    result = await db.execute(
        select(Booking).where(
            Booking.status == BookingStatus.APPROVED.value,
            Booking.booking_date == tomorrow,
        )
    )

    sent = 0
    for booking in result.scalars().all():
        start = booking.booking_time.strftime("%H:%M")
        for user_id in (booking.renter_id, booking.companion_id):
            await notification_service.notify_user(
                db=db,
                user_id=user_id,
                title="Booking Tomorrow",
                message=f"Reminder: your booking starts tomorrow at {start}.",
                notification_type=notification_service.BOOKING_REMINDER,
                booking_id=booking.id,
            )
            sent += 1

    logger.info(f"Queued {sent} booking reminders for {tomorrow.isoformat()}")
    return sent


# ==================== CLEANUP TASKS ====================


@shared_task
def cleanup_read_notifications():
    """Remove read notifications older than the retention window."""
    removed = run_async(_cleanup_read_notifications())
    return {"status": "success", "removed": removed}


async def _cleanup_read_notifications() -> int:
    async with task_session() as db:
        return await purge_read_notifications(db, datetime.now(UTC))


async def purge_read_notifications(db: AsyncSession, now: datetime) -> int:
    """Delete read notifications created before the retention cutoff."""
    cutoff = now - timedelta(days=READ_NOTIFICATION_RETENTION_DAYS)
    result = await db.execute(
        delete(Notification).where(
            Notification.is_read.is_(True),
            Notification.created_at < cutoff,
        )
    )
    logger.info(f"Removed {result.rowcount} read notifications older than {cutoff.date()}")
    return result.rowcount
