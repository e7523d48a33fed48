# booking_engine/models/reservation.py
import enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from booking_engine.models.base import Base, new_id


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class TimeSlotReservation(Base):
    """Time-boxed exclusive hold on a provider interval, pending confirmation"""
    __tablename__ = "time_slot_reservations"
    __table_args__ = (
        Index("ix_reservations_provider_window", "provider_id", "start_time", "end_time"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    time_slot_id = Column(String(80), nullable=False)

    client_id = Column(String(36), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)

    # Provider-local wall clock
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)

    # UTC bookkeeping
    reserved_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    confirmed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    def is_expired(self, now) -> bool:
        return now >= self.expires_at

    def is_active(self, now) -> bool:
        """Pending and still inside its hold window"""
        return self.status == ReservationStatus.PENDING.value and not self.is_expired(now)

    def __repr__(self):
        return f"<TimeSlotReservation(id={self.id}, provider_id={self.provider_id}, status={self.status})>"
