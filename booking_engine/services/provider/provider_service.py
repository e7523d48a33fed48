# booking_engine/services/provider/provider_service.py
"""Service for managing providers and their service catalog"""
from typing import List
from sqlalchemy.orm import Session
import logging

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import NotFoundError, ValidationError
from booking_engine.models.provider import Provider
from booking_engine.models.service import Service, ServiceAddOn
from booking_engine.schemas.provider import ProviderCreate, ServiceCreate
from booking_engine.utils.time_helpers import get_timezone

logger = logging.getLogger(__name__)


class ProviderService:
    """Handles provider and catalog operations"""

    @staticmethod
    def create_provider(db: Session, data: ProviderCreate) -> Provider:
        """Create a new provider"""
        tz_name = data.timezone or get_settings().DEFAULT_TIMEZONE
        if get_timezone(tz_name).zone != tz_name:
            raise ValidationError(f"Unknown timezone {tz_name}")

        provider = Provider(
            name=data.name,
            timezone=tz_name,
            buffer_minutes=data.buffer_minutes,
            slot_granularity_minutes=data.slot_granularity_minutes,
            is_active=True,
        )
        db.add(provider)
        db.commit()
        db.refresh(provider)

        logger.info(f"Created provider {provider.id} ({provider.name})")
        return provider

    @staticmethod
    def get_provider(db: Session, provider_id: str) -> Provider:
        provider = db.query(Provider).filter(Provider.id == provider_id).first()
        if not provider:
            raise NotFoundError(f"Provider {provider_id} not found")
        return provider

    @staticmethod
    def add_service(db: Session, provider_id: str, data: ServiceCreate) -> Service:
        """Add a service (and its add-ons) to a provider's catalog"""
        ProviderService.get_provider(db, provider_id)

        service = Service(
            provider_id=provider_id,
            name=data.name,
            description=data.description,
            price=data.price,
            duration=data.duration,
            is_active=True,
        )
        service.add_ons = [
            ServiceAddOn(
                name=a.name,
                description=a.description,
                price=a.price,
                duration=a.duration,
                is_required=a.is_required,
            )
            for a in data.add_ons
        ]
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def list_services(db: Session, provider_id: str) -> List[Service]:
        return db.query(Service).filter(
            Service.provider_id == provider_id,
            Service.is_active == True
        ).order_by(Service.name).all()
