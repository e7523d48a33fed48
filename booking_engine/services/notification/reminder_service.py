# booking_engine/services/notification/reminder_service.py
"""Notification collaborator: hands reminders to the Celery worker"""
from datetime import datetime, timedelta
import logging

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """
    Fire-and-forget reminder scheduling.

    `when_utc` is the appointment instant; the reminder fires
    `lead_minutes` earlier (immediately if that moment already passed).
    Failures are logged and swallowed so a booking commit never depends
    on the broker.
    """

    def schedule_reminder(
            self,
            booking_id: str,
            provider_name: str,
            when_utc: datetime,
            lead_minutes: int
    ) -> bool:
        from booking_engine.tasks.notification_tasks import send_booking_reminder

        eta = when_utc - timedelta(minutes=lead_minutes)
        try:
            send_booking_reminder.apply_async(
                kwargs={
                    "booking_id": booking_id,
                    "provider_name": provider_name,
                    "appointment_at": when_utc.isoformat(),
                },
                eta=eta,
            )
        except Exception as e:
            logger.error(f"Failed to schedule reminder for booking {booking_id}: {e}")
            return False

        logger.info(f"Reminder for booking {booking_id} scheduled at {eta.isoformat()} UTC")
        return True
