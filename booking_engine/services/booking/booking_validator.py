# booking_engine/services/booking/booking_validator.py
"""
Pre-commit validation of booking requests.

Nothing in this module writes to the database. `plan()` returns everything
a commit needs (resolved services, duration, per-occurrence conflicts,
price); `validate()` returns only the public result and is safe to call on
every form change.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import DomainException, NotFoundError
from booking_engine.models.package import BookingPackage
from booking_engine.models.provider import Provider
from booking_engine.models.service import Service, ServiceAddOn
from booking_engine.schemas.availability import BookingConflict
from booking_engine.schemas.booking import BookingRequest, BookingValidation, PriceBreakdown
from booking_engine.services.availability.availability_service import AvailabilityService
from booking_engine.services.availability.conflict_detector import ConflictDetector
from booking_engine.services.booking.pricing import price_booking
from booking_engine.services.booking.recurrence import RecurrenceExpander
from booking_engine.services.package.package_ledger import PackageLedger
from booking_engine.utils.time_helpers import Clock, local_to_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class Occurrence:
    start: datetime
    conflicts: List[BookingConflict] = field(default_factory=list)

    @property
    def is_free(self) -> bool:
        return not self.conflicts


@dataclass
class BookingPlan:
    request: BookingRequest
    provider: Provider
    services: List[Service]
    add_ons: List[ServiceAddOn]
    duration: int
    occurrences: List[Occurrence]
    breakdown: PriceBreakdown
    package: Optional[BookingPackage] = None
    package_error: Optional[DomainException] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_recurring(self) -> bool:
        return self.request.recurrence_config is not None

    @property
    def free_occurrences(self) -> List[Occurrence]:
        return [o for o in self.occurrences if o.is_free]

    @property
    def conflicts(self) -> List[BookingConflict]:
        return [c for o in self.occurrences for c in o.conflicts]

    @property
    def is_valid(self) -> bool:
        if self.errors:
            return False
        if self.is_recurring:
            return bool(self.free_occurrences)
        return bool(self.occurrences) and self.occurrences[0].is_free

    @property
    def primary_service(self) -> Optional[Service]:
        return self.services[0] if len(self.services) == 1 else None

    def to_validation(self) -> BookingValidation:
        return BookingValidation(
            is_valid=self.is_valid,
            errors=list(self.errors),
            warnings=list(self.warnings),
            conflicts=self.conflicts,
            estimated_total=self.breakdown.total,
            breakdown=self.breakdown,
        )


class BookingValidator:
    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.settings = get_settings()
        self.availability = AvailabilityService(db, clock)
        self.detector = ConflictDetector(db, clock)
        self.ledger = PackageLedger(db, clock)
        self.expander = RecurrenceExpander(self.settings.MAX_RECURRENCE_OCCURRENCES)

    def validate(
            self,
            request: BookingRequest,
            exclude_reservation_id: Optional[str] = None,
            exclude_booking_id: Optional[str] = None
    ) -> BookingValidation:
        return self.plan(request, exclude_reservation_id, exclude_booking_id).to_validation()

    def plan(
            self,
            request: BookingRequest,
            exclude_reservation_id: Optional[str] = None,
            exclude_booking_id: Optional[str] = None
    ) -> BookingPlan:
        provider = self.availability.get_provider(request.provider_id)
        errors: List[str] = []
        warnings: List[str] = []

        services = self._resolve_services(provider, request.service_ids, errors)
        add_ons = self._resolve_add_ons(services, request.add_on_ids, errors, warnings)

        if request.duration is not None:
            duration = request.duration
        else:
            duration = sum(s.duration for s in services) + sum(a.duration or 0 for a in add_ons)
        if duration <= 0:
            errors.append("Duration must be positive")

        starts = [request.requested_date_time]
        if request.recurrence_config is not None:
            starts = self.expander.expand(request.requested_date_time, request.recurrence_config)

        occurrences = [Occurrence(start) for start in starts]
        if duration > 0 and starts:
            calendar = self.availability.load_calendar(
                provider.id,
                starts[0].date() - timedelta(days=1),
                starts[-1].date() + timedelta(days=1),
                exclude_reservation_id=exclude_reservation_id,
                exclude_booking_id=exclude_booking_id,
            )
            service = services[0] if len(services) == 1 else None
            for occurrence in occurrences:
                occurrence.conflicts = self.detector.detect(calendar, occurrence.start, duration, service)

        if request.recurrence_config is not None:
            for occurrence in occurrences:
                if not occurrence.is_free:
                    kinds = ", ".join(c.type.value for c in occurrence.conflicts)
                    warnings.append(f"Occurrence {occurrence.start.isoformat()} will be skipped ({kinds})")
            funded = [o.start for o in occurrences if o.is_free]
            sessions = len(funded)
        else:
            funded = [request.requested_date_time]
            sessions = 1

        package, package_error = None, None
        if request.package_id:
            package, package_error = self._check_package(
                request,
                max(sessions, 1),
                exclude_booking_id,
                [local_to_utc(start, provider.timezone) for start in funded],
            )
            if package_error is not None:
                errors.append(package_error.message)

        discount = package.discount_percentage if package is not None and package_error is None else Decimal("0")
        breakdown = price_booking(
            services,
            add_ons,
            tax_rate=self.settings.TAX_RATE,
            booking_fee=self.settings.BOOKING_FEE,
            discount_percentage=discount,
            occurrences=sessions,
        )

        return BookingPlan(
            request=request,
            provider=provider,
            services=services,
            add_ons=add_ons,
            duration=duration,
            occurrences=occurrences,
            breakdown=breakdown,
            package=package,
            package_error=package_error,
            errors=errors,
            warnings=warnings,
        )

    def _resolve_services(self, provider: Provider, service_ids: List[str], errors: List[str]) -> List[Service]:
        if not service_ids:
            errors.append("At least one service is required")
            return []

        found = {
            s.id: s for s in self.db.query(Service).filter(Service.id.in_(service_ids)).all()
        }
        services = []
        for service_id in service_ids:
            service = found.get(service_id)
            if service is None:
                errors.append(f"Service {service_id} not found")
            elif service.provider_id != provider.id:
                errors.append(f"Service {service.name} is not offered by this provider")
            elif not service.is_active:
                errors.append(f"Service {service.name} is no longer available")
            else:
                services.append(service)
        return services

    def _resolve_add_ons(
            self,
            services: List[Service],
            add_on_ids: List[str],
            errors: List[str],
            warnings: List[str]
    ) -> List[ServiceAddOn]:
        service_ids = {s.id for s in services}
        add_ons = []
        if add_on_ids:
            found = {
                a.id: a for a in self.db.query(ServiceAddOn).filter(ServiceAddOn.id.in_(add_on_ids)).all()
            }
            for add_on_id in add_on_ids:
                add_on = found.get(add_on_id)
                if add_on is None:
                    errors.append(f"Add-on {add_on_id} not found")
                elif add_on.service_id not in service_ids:
                    errors.append(f"Add-on {add_on.name} does not belong to a selected service")
                else:
                    add_ons.append(add_on)

        chosen = {a.id for a in add_ons}
        for service in services:
            for add_on in service.add_ons:
                if add_on.is_required and add_on.id not in chosen:
                    warnings.append(f"{service.name} usually requires the add-on {add_on.name}")
        return add_ons

    def _check_package(
            self,
            request: BookingRequest,
            sessions: int,
            exclude_booking_id: Optional[str],
            appointments: List[datetime]
    ):
        try:
            package = self.ledger.get_package(request.package_id)
        except NotFoundError as e:
            return None, e

        if package.provider_id != request.provider_id:
            return package, NotFoundError(f"Package {package.id} is not valid for this provider")

        try:
            self.ledger.ensure_available(
                package,
                request.client_id,
                sessions=sessions,
                service_ids=request.service_ids,
                exclude_booking_id=exclude_booking_id,
                appointments=appointments,
            )
        except DomainException as e:
            logger.info(f"Package {package.id} rejected for client {request.client_id}: {e.message}")
            return package, e
        return package, None
