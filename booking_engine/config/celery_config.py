"""Celery application factory"""
from celery import Celery

from booking_engine.config.settings import get_settings

settings = get_settings()


def create_celery_app() -> Celery:
    """Create and configure the Celery app used by the API and the worker"""
    app = Celery(
        "booking_engine",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=[
            "booking_engine.tasks.notification_tasks",
            "booking_engine.tasks.reservation_tasks",
        ],
    )

    app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_routes={
            "booking_engine.tasks.notification_tasks.*": {"queue": "notifications"},
            "booking_engine.tasks.reservation_tasks.*": {"queue": "reservations"},
        },
        beat_schedule={
            "expire-stale-reservations": {
                "task": "booking_engine.tasks.reservation_tasks.expire_stale_reservations",
                "schedule": float(settings.RESERVATION_SWEEP_INTERVAL_SECONDS),
            },
        },
    )

    return app


celery_app = create_celery_app()
