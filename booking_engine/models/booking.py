# booking_engine/models/booking.py
from datetime import timedelta
import enum

from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Boolean, Numeric, JSON, Index
from sqlalchemy.orm import relationship, backref
from sqlalchemy.sql import func
from booking_engine.models.base import Base, new_id


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


class BookingType(str, enum.Enum):
    SINGLE = "single"
    RECURRING = "recurring"
    PACKAGE = "package"
    MULTIPLE_SERVICES = "multiple_services"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


# Statuses that occupy the provider calendar
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.IN_PROGRESS.value,
)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_provider_schedule", "provider_id", "scheduled_date_time"),
    )

    id = Column(String(36), primary_key=True, default=new_id)

    # References
    client_id = Column(String(36), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    service_ids = Column(JSON, nullable=False, default=list)
    add_on_ids = Column(JSON, nullable=False, default=list)
    package_id = Column(String(36), ForeignKey("booking_packages.id"), nullable=True, index=True)
    reservation_id = Column(String(36), nullable=True)

    booking_type = Column(String(20), nullable=False, default=BookingType.SINGLE.value)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    # Provider-local wall clock
    scheduled_date_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    notes = Column(Text, nullable=True)

    # Recurrence tree
    recurrence_config = Column(JSON, nullable=True)
    is_series_parent = Column(Boolean, default=False, nullable=False)
    parent_booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True, index=True)

    # Reschedule history
    rescheduled_from_id = Column(String(36), nullable=True)
    rescheduled_to_id = Column(String(36), nullable=True)

    # Payment
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_reference = Column(String(100), nullable=True)

    # Cancellation
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(20), nullable=True)  # client, provider, system

    # Transition stamps (UTC)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    confirmed_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    no_show_at = Column(DateTime, nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)

    children = relationship(
        "Booking",
        backref=backref("parent", remote_side=[id]),
        order_by="Booking.scheduled_date_time",
    )
    provider = relationship("Provider")
    package = relationship("BookingPackage")

    @property
    def end_date_time(self):
        return self.scheduled_date_time + timedelta(minutes=self.duration)

    @property
    def child_booking_ids(self):
        return [child.id for child in self.children]

    def __repr__(self):
        return f"<Booking(id={self.id}, provider_id={self.provider_id}, status={self.status})>"
