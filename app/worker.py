"""Celery app for work that runs outside the request cycle.

Booking status transitions never run here; the worker only sends email
(``EMAIL_DELIVERY=worker``), reminds both parties the day before an approved
booking, and purges old read notifications.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "temansewa_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.timezone,
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_soft_time_limit=240,
    task_time_limit=300,
    task_default_retry_delay=60,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.worker_concurrency,
    result_expires=3600,
    # Fail fast when the broker is down
    task_publish_retry_policy={
        "max_retries": 2,
        "interval_start": 0,
        "interval_step": 0.2,
        "interval_max": 0.5,
    },
    beat_schedule={
        "send-booking-reminders": {
            "task": "app.tasks.send_booking_reminders",
            "schedule": crontab(hour=settings.reminder_hour, minute=0),
        },
        "cleanup-read-notifications": {
            "task": "app.tasks.cleanup_read_notifications",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
