"""Notification Service for in-app notifications and email.

Handles the delivery channels used when a booking changes status:
- In-app notifications (database)
- Email (SendGrid)
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import httpx
from kombu.exceptions import OperationalError as KombuOperationalError
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundError
from app.models.booking import Booking
from app.models.notification import Notification
from app.models.user import Profile

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class NotificationService:
    """Service for sending notifications across all channels."""

    # Notification types
    BOOKING_REQUEST = "booking_request"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_REMINDER = "booking_reminder"

    def __init__(self) -> None:
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== IN-APP NOTIFICATIONS ====================

    async def create_notification(
        self,
        db: AsyncSession,
        user_id: UUID,
        title: str,
        message: str,
        notification_type: str,
        booking_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Notification:
        """Create an in-app notification.

        Args:
            db: Database session
            user_id: User to notify
            title: Notification title
            message: Notification body text
            notification_type: Type of notification
            booking_id: Related booking ID
            metadata: Extra payload for the client

        Returns:
            Notification: Created notification
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            booking_id=booking_id,
            metadata_=metadata,
        )
        db.add(notification)
        return notification

    async def inbox(
        self,
        db: AsyncSession,
        user_id: UUID,
        *,
        unread_only: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Notification], int, int]:
        """One page of a user's notifications, newest first.

        Returns the page, the total matching the filter, and the unread count.
        """
        mine = Notification.user_id == user_id
        unread = Notification.is_read.is_(False)
        criteria = (mine, unread) if unread_only else (mine,)

        total = await db.scalar(select(func.count(Notification.id)).where(*criteria))
        unread_count = await db.scalar(select(func.count(Notification.id)).where(mine, unread))
        page = await db.scalars(
            select(Notification)
            .where(*criteria)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(page), total or 0, unread_count or 0

    async def mark_read(self, db: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
        """Mark one of the user's notifications read; other users' rows are invisible."""
        notification = await db.scalar(
            select(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
        if notification is None:
            raise NotFoundError("Notification", str(notification_id))
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(UTC)
        return notification

    async def mark_all_read(self, db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ==================== EMAIL (SENDGRID) ====================

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_content: HTML body
            text_content: Plain text body

        Returns:
            bool: True if sent successfully
        """
        if not settings.sendgrid_api_key:
            return False

        headers = {
            "Authorization": f"Bearer {settings.sendgrid_api_key}",
            "Content-Type": "application/json",
        }
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": settings.email_from_address,
                "name": settings.email_from_name,
            },
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        try:
            response = await self.http_client.post(SENDGRID_URL, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Email delivery to {to_email} failed: {e}")
            return False
        return response.status_code in (200, 202)

    async def _enqueue_email(
        self,
        notification_id: UUID,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None,
    ) -> bool:
        """Hand the email to the Celery worker.

        Publishing blocks on the broker, so it runs in a thread. An unreachable
        broker costs the email, never the in-app notification.
        """
        from app.tasks import enqueue_email

        try:
            await asyncio.to_thread(
                enqueue_email, notification_id, to_email, subject, html_content, text_content
            )
        except KombuOperationalError as e:
            logger.warning(
                f"Could not queue email for notification_id={notification_id}: {e}"
            )
            return False
        return True

    def _generate_email_html(self, title: str, body: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="utf-8"></head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                     max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
            <div style="background-color: #f9fafb; border-radius: 8px; padding: 24px;">
                <h1 style="color: #111827; font-size: 24px; margin-bottom: 16px;">{title}</h1>
                <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">{body}</p>
            </div>
            <p style="color: #9ca3af; font-size: 12px; margin-top: 24px; text-align: center;">
                &copy; {datetime.now(UTC).year} {settings.app_name}
            </p>
        </body>
        </html>
        """

    # ==================== HIGH-LEVEL NOTIFICATION METHODS ====================

    async def notify_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        title: str,
        message: str,
        notification_type: str,
        booking_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
        send_email: bool = True,
    ) -> Notification:
        """Create the in-app notification and email the user if possible."""
        notification = await self.create_notification(
            db=db,
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            booking_id=booking_id,
            metadata=metadata,
        )

        if send_email and settings.sendgrid_api_key:
            profile = await db.get(Profile, user_id)
            if profile and profile.email:
                html_content = self._generate_email_html(title, message)
                if settings.email_delivery == "worker":
                    # email_sent stays False until the worker has delivered it
                    await db.flush()
                    await self._enqueue_email(
                        notification.id, profile.email, title, html_content, message
                    )
                else:
                    notification.email_sent = await self.send_email(
                        to_email=profile.email,
                        subject=title,
                        html_content=html_content,
                        text_content=message,
                    )

        return notification

    async def booking_status_changed(
        self,
        db: AsyncSession,
        booking: Booking,
        new_status: str,
        changed_by: UUID,
        notes: str | None = None,
    ) -> list[Notification]:
        """Tell the affected party (or parties) about a booking status change."""
        when = f"{booking.booking_date.isoformat()} {booking.booking_time.strftime('%H:%M')}"
        metadata: dict[str, Any] = {"status": new_status}
        if notes:
            metadata["admin_notes"] = notes

        messages: list[tuple[UUID, str, str, str]] = []
        if new_status == "pending":
            messages.append((
                booking.companion_id,
                self.BOOKING_REQUEST,
                "New Booking Request",
                f"You have a new booking request for {when} ({booking.duration_hours}h).",
            ))
        elif new_status == "approved":
            messages.append((
                booking.renter_id,
                self.BOOKING_APPROVED,
                "Booking Approved!",
                f"Your booking for {when} has been approved.",
            ))
        elif new_status == "rejected":
            messages.append((
                booking.renter_id,
                self.BOOKING_REJECTED,
                "Booking Rejected",
                f"Your booking for {when} was rejected. Reason: {notes}",
            ))
        elif new_status == "completed":
            messages.append((
                booking.renter_id,
                self.BOOKING_COMPLETED,
                "Booking Completed",
                f"Your booking for {when} is complete. Thank you!",
            ))
        elif new_status == "cancelled":
            body = f"The booking for {when} has been cancelled."
            if notes:
                body = f"{body} Reason: {notes}"
            for party in (booking.renter_id, booking.companion_id):
                if party != changed_by:
                    messages.append((party, self.BOOKING_CANCELLED, "Booking Cancelled", body))

        notifications = []
        for user_id, notification_type, title, body in messages:
            notifications.append(
                await self.notify_user(
                    db=db,
                    user_id=user_id,
                    title=title,
                    message=body,
                    notification_type=notification_type,
                    booking_id=booking.id,
                    metadata=metadata,
                )
            )
        return notifications


# Singleton instance
notification_service = NotificationService()
