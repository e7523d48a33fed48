# booking_engine/models/package.py
"""
Prepaid session packages and their consumption ledger.
"""
from datetime import timedelta

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, Numeric, JSON, Text,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.models.base import Base, new_id


class BookingPackage(Base):
    """A package of sessions purchased by one client from one provider"""
    __tablename__ = "booking_packages"
    __table_args__ = (
        CheckConstraint(
            "sessions_used >= 0 AND sessions_used <= total_sessions",
            name="ck_booking_packages_sessions_used",
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    client_id = Column(String(36), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    service_ids = Column(JSON, nullable=False, default=list)  # empty = any service of the provider

    total_sessions = Column(Integer, nullable=False)
    sessions_used = Column(Integer, nullable=False, default=0)
    validity_days = Column(Integer, nullable=False, default=365)
    purchase_date = Column(DateTime, nullable=False)  # UTC

    price = Column(Numeric(10, 2), nullable=False, default=0)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    is_transferrable = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())

    entries = relationship("PackageLedgerEntry", back_populates="package", cascade="all, delete-orphan")

    @property
    def expiry_date(self):
        return self.purchase_date + timedelta(days=self.validity_days)

    @property
    def sessions_remaining(self) -> int:
        return self.total_sessions - self.sessions_used

    def is_expired(self, now) -> bool:
        return now > self.expiry_date

    def __repr__(self):
        return f"<BookingPackage(id={self.id}, used={self.sessions_used}/{self.total_sessions})>"


class PackageLedgerEntry(Base):
    """One consumption event; at most one per booking"""
    __tablename__ = "package_ledger_entries"
    __table_args__ = (
        UniqueConstraint("package_id", "booking_id", name="uq_package_ledger_booking"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    package_id = Column(String(36), ForeignKey("booking_packages.id", ondelete="CASCADE"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False)
    sessions = Column(Integer, nullable=False, default=1)
    reason = Column(String(20), nullable=False)  # completed, no_show
    created_at = Column(DateTime, nullable=False)

    package = relationship("BookingPackage", back_populates="entries")
