# booking_engine/models/availability.py
from sqlalchemy import (
    Column, String, Integer, Boolean, Time, Date, DateTime, ForeignKey, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.models.base import Base, new_id


class AvailabilityRule(Base):
    """Weekly working hours for a provider"""
    __tablename__ = "availability_rules"

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    is_active = Column(Boolean, default=True)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    timezone = Column(String(50), nullable=False, default="UTC")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    break_intervals = relationship(
        "BreakInterval",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="BreakInterval.start_time",
    )

    def applies_on(self, day) -> bool:
        if not self.is_active:
            return False
        if day < self.effective_from:
            return False
        return self.effective_to is None or day <= self.effective_to


class BreakInterval(Base):
    """Recurring break inside a weekly rule (e.g. lunch)"""
    __tablename__ = "break_intervals"

    id = Column(String(36), primary_key=True, default=new_id)
    rule_id = Column(String(36), ForeignKey("availability_rules.id", ondelete="CASCADE"), nullable=False, index=True)

    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    name = Column(String(100), nullable=False, default="Break")
    is_recurring = Column(Boolean, default=True)

    rule = relationship("AvailabilityRule", back_populates="break_intervals")


class AvailabilityOverride(Base):
    """Specific date overrides (holidays, time-off, special hours)"""
    __tablename__ = "availability_overrides"
    __table_args__ = (
        UniqueConstraint("provider_id", "date", name="uq_availability_override_provider_date"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False)  # False = day off
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(String, nullable=True)  # "Holiday", "Vacation", etc.

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def has_custom_hours(self) -> bool:
        return self.start_time is not None and self.end_time is not None


class CalendarEvent(Base):
    """Multi-day blackout or special-hours marker on a provider calendar"""
    __tablename__ = "calendar_events"

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False, default="holiday")  # holiday, vacation, special_hours, maintenance
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    all_day = Column(Boolean, default=False)
    description = Column(Text, nullable=True)
    affects_availability = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())
