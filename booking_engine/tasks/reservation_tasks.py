# booking_engine/tasks/reservation_tasks.py
"""Periodic maintenance of reservation holds"""
import logging

from booking_engine.config.celery_config import celery_app
from booking_engine.config.database import get_db
from booking_engine.services.reservation.reservation_service import ReservationManager

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def expire_stale_reservations(self):
    """Mark pending holds past their expiry as cancelled"""
    db = next(get_db())
    try:
        expired = ReservationManager(db).sweep_expired()
        if expired:
            logger.info(f"Expired {expired} stale reservation holds")
        return {"status": "success", "expired": expired}

    except Exception as exc:
        logger.error(f"Reservation sweep failed: {exc}")
        raise self.retry(exc=exc, countdown=30)

    finally:
        db.close()
