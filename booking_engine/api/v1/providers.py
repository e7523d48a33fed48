# booking_engine/api/v1/providers.py
"""
Provider API Endpoints
Catalog, weekly rules, date overrides and calendar events
"""
from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from booking_engine.api.dependencies import get_availability_service, get_package_ledger
from booking_engine.config.database import get_db
from booking_engine.schemas.availability import (
    AvailabilityOverrideIn, AvailabilityOverrideOut, AvailabilityRuleOut, AvailabilityRuleSet,
    CalendarEventIn, CalendarEventOut
)
from booking_engine.schemas.provider import PackageOut, ProviderCreate, ProviderOut, ServiceCreate, ServiceOut
from booking_engine.services.availability.availability_service import AvailabilityService
from booking_engine.services.package.package_ledger import PackageLedger
from booking_engine.services.provider.provider_service import ProviderService

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# Providers and services
# ============================================================================

@router.post("", response_model=ProviderOut, status_code=status.HTTP_201_CREATED)
def create_provider(data: ProviderCreate, db: Session = Depends(get_db)):
    return ProviderService.create_provider(db, data)


@router.post("/{provider_id}/services", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
def add_service(provider_id: str, data: ServiceCreate, db: Session = Depends(get_db)):
    return ProviderService.add_service(db, provider_id, data)


@router.get("/{provider_id}/services", response_model=List[ServiceOut])
def list_services(provider_id: str, db: Session = Depends(get_db)):
    ProviderService.get_provider(db, provider_id)
    return ProviderService.list_services(db, provider_id)


@router.get("/{provider_id}/packages", response_model=List[PackageOut])
def list_packages(
        provider_id: str,
        client_id: Optional[str] = None,
        usable_only: bool = False,
        ledger: PackageLedger = Depends(get_package_ledger)
):
    packages = ledger.list_packages(provider_id, client_id=client_id, usable_only=usable_only)
    return [ledger.to_out(p) for p in packages]


# ============================================================================
# Weekly rules
# ============================================================================

@router.put("/{provider_id}/availability-rules", response_model=List[AvailabilityRuleOut])
def replace_rules(
        provider_id: str,
        data: AvailabilityRuleSet,
        availability: AvailabilityService = Depends(get_availability_service)
):
    """Replace the provider's whole weekly schedule"""
    return availability.set_rules(provider_id, data.rules)


@router.get("/{provider_id}/availability-rules", response_model=List[AvailabilityRuleOut])
def get_rules(provider_id: str, availability: AvailabilityService = Depends(get_availability_service)):
    availability.get_provider(provider_id)
    return availability.get_rules(provider_id)


@router.delete("/{provider_id}/availability-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
        provider_id: str,
        rule_id: str,
        availability: AvailabilityService = Depends(get_availability_service)
):
    availability.delete_rule(provider_id, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Date overrides
# ============================================================================

@router.put("/{provider_id}/overrides", response_model=AvailabilityOverrideOut)
def set_override(
        provider_id: str,
        data: AvailabilityOverrideIn,
        availability: AvailabilityService = Depends(get_availability_service)
):
    """Create or replace the override for one date"""
    return availability.set_override(provider_id, data)


@router.get("/{provider_id}/overrides", response_model=List[AvailabilityOverrideOut])
def list_overrides(
        provider_id: str,
        date_from: date,
        date_to: date,
        availability: AvailabilityService = Depends(get_availability_service)
):
    return availability.list_overrides(provider_id, date_from, date_to)


@router.delete("/{provider_id}/overrides/{override_date}", status_code=status.HTTP_204_NO_CONTENT)
def delete_override(
        provider_id: str,
        override_date: date,
        availability: AvailabilityService = Depends(get_availability_service)
):
    availability.delete_override(provider_id, override_date)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Calendar events
# ============================================================================

@router.post(
    "/{provider_id}/calendar-events",
    response_model=CalendarEventOut,
    status_code=status.HTTP_201_CREATED
)
def add_event(
        provider_id: str,
        data: CalendarEventIn,
        availability: AvailabilityService = Depends(get_availability_service)
):
    return availability.add_event(provider_id, data)


@router.delete("/{provider_id}/calendar-events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
        provider_id: str,
        event_id: str,
        availability: AvailabilityService = Depends(get_availability_service)
):
    availability.delete_event(provider_id, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
