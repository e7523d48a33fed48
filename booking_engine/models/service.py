# booking_engine/models/service.py
"""
Service Model - Structured service definitions
Each service belongs to one provider and is the source of truth for price/duration.
"""
from sqlalchemy import Column, String, Numeric, Integer, ForeignKey, Boolean, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.models.base import Base, new_id


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_id)
    provider_id = Column(
        String(36),
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Core service details
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration = Column(Integer, nullable=False)  # minutes

    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship("Provider", back_populates="services")
    add_ons = relationship("ServiceAddOn", back_populates="service", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Service(id={self.id}, name={self.name}, provider_id={self.provider_id})>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price) if self.price is not None else None,
            "duration": self.duration,
            "is_active": self.is_active,
            "add_ons": [add_on.to_dict() for add_on in self.add_ons],
        }

    @property
    def formatted_duration(self) -> str:
        """Return human-readable duration string"""
        hours = self.duration // 60
        minutes = self.duration % 60

        if hours > 0 and minutes > 0:
            return f"{hours}h {minutes}m"
        elif hours > 0:
            return f"{hours}h"
        else:
            return f"{minutes}m"


class ServiceAddOn(Base):
    """Optional extra on top of a service (e.g. deep conditioning)"""
    __tablename__ = "service_add_ons"

    id = Column(String(36), primary_key=True, default=new_id)
    service_id = Column(
        String(36),
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration = Column(Integer, nullable=False, default=0)  # additional minutes
    is_required = Column(Boolean, default=False)

    service = relationship("Service", back_populates="add_ons")

    def to_dict(self):
        return {
            "id": self.id,
            "service_id": self.service_id,
            "name": self.name,
            "price": float(self.price) if self.price is not None else None,
            "duration": self.duration,
            "is_required": self.is_required,
        }
