import os

# Settings are cached on first import, so the environment goes first
os.environ["LOCK_BACKEND"] = "local"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from booking_engine.api.dependencies import get_clock, get_payment_gateway, get_reminder_scheduler
from booking_engine.config.database import build_engine, get_db
from booking_engine.models import Base
from booking_engine.services.booking.booking_lifecycle import BookingLifecycle
from booking_engine.services.reservation.reservation_service import ReservationManager
from tests.factories import (
    FakeClock, FakePaymentGateway, FakeReminderScheduler, add_service, seed_provider
)


@pytest.fixture
def engine(tmp_path):
    # File backed so that worker threads get their own connections
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2023, 12, 20, 10, 0))


@pytest.fixture
def payments():
    return FakePaymentGateway()


@pytest.fixture
def reminders():
    return FakeReminderScheduler()


@pytest.fixture
def provider(db):
    return seed_provider(db)


@pytest.fixture
def haircut(db, provider):
    return add_service(db, provider)


@pytest.fixture
def lifecycle(db, clock, payments, reminders):
    return BookingLifecycle(db, clock, payment_gateway=payments, reminders=reminders)


@pytest.fixture
def reservations(db, clock, lifecycle):
    return ReservationManager(db, clock, lifecycle=lifecycle)


@pytest.fixture
def client(session_factory, clock, payments, reminders):
    from booking_engine.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_payment_gateway] = lambda: payments
    app.dependency_overrides[get_reminder_scheduler] = lambda: reminders
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
