# booking_engine/models/provider.py
"""
Provider Model
A service provider whose calendar the engine schedules against.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.models.base import Base, new_id


class Provider(Base):
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)

    # Scheduling configuration
    timezone = Column(String(50), default="UTC", nullable=False)
    buffer_minutes = Column(Integer, nullable=True)  # Falls back to DEFAULT_BUFFER_MINUTES
    slot_granularity_minutes = Column(Integer, nullable=True)  # Falls back to SLOT_GRANULARITY_MINUTES

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    services = relationship("Service", back_populates="provider", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Provider(id={self.id}, name={self.name})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "buffer_minutes": self.buffer_minutes,
            "slot_granularity_minutes": self.slot_granularity_minutes,
            "is_active": self.is_active,
        }
