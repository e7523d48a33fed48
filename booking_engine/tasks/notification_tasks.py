# booking_engine/tasks/notification_tasks.py
"""Reminder delivery to the external notifier"""
import logging

import httpx

from booking_engine.config.celery_config import celery_app
from booking_engine.config.database import get_db
from booking_engine.config.settings import get_settings
from booking_engine.models.booking import Booking, ACTIVE_BOOKING_STATUSES

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def send_booking_reminder(self, booking_id: str, provider_name: str, appointment_at: str):
    """
    POST a reminder for one booking to the notification webhook

    Args:
        booking_id: Booking to remind about
        provider_name: Shown to the client in the reminder
        appointment_at: Appointment instant, ISO format UTC
    """
    settings = get_settings()
    if not settings.NOTIFICATION_WEBHOOK_URL:
        logger.info(f"No notification webhook configured, skipping reminder for booking {booking_id}")
        return {"status": "skipped", "booking_id": booking_id}

    db = next(get_db())
    try:
        booking = db.query(Booking).filter_by(id=booking_id).first()
        if not booking or booking.status not in ACTIVE_BOOKING_STATUSES:
            logger.info(f"Booking {booking_id} is no longer active, reminder dropped")
            return {"status": "dropped", "booking_id": booking_id}
        client_id = booking.client_id
    finally:
        db.close()

    try:
        logger.info(f"Sending reminder for booking {booking_id}")

        response = httpx.post(
            settings.NOTIFICATION_WEBHOOK_URL,
            json={
                "event": "booking.reminder",
                "booking_id": booking_id,
                "client_id": client_id,
                "provider_name": provider_name,
                "appointment_at": appointment_at,
            },
            timeout=15.0,
        )
        response.raise_for_status()

        logger.info(f"Reminder delivered for booking {booking_id}")
        return {"status": "success", "booking_id": booking_id}

    except httpx.HTTPError as exc:
        logger.error(f"Failed to deliver reminder for booking {booking_id}: {exc}")

        # Retry with exponential backoff: 1min, 2min, 4min
        raise self.retry(
            exc=exc,
            countdown=60 * (2 ** self.request.retries)
        )
