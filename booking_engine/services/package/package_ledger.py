# booking_engine/services/package/package_ledger.py
"""
Prepaid session packages.

Sessions are charged when a package-funded booking is completed or marked
no-show. Until then an active booking only holds a commitment against the
balance, which cancellation releases.
"""
from datetime import datetime
from typing import Iterable, List, Optional
import logging

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from booking_engine.core.exceptions import (
    ConflictError, NotFoundError, PackageExhaustedError, PackageExpiredError, ValidationError
)
from booking_engine.models.booking import Booking, ACTIVE_BOOKING_STATUSES
from booking_engine.models.package import BookingPackage, PackageLedgerEntry
from booking_engine.models.provider import Provider
from booking_engine.schemas.booking import PackageConfig
from booking_engine.schemas.provider import PackageCreate, PackageOut
from booking_engine.utils.time_helpers import Clock, utc_now

logger = logging.getLogger(__name__)

CAS_ATTEMPTS = 3


class PackageLedger:
    """Tracks balance and consumption of booking packages"""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def create_package(self, data: PackageCreate) -> BookingPackage:
        provider = self.db.query(Provider).filter_by(id=data.provider_id).first()
        if not provider:
            raise NotFoundError(f"Provider {data.provider_id} not found")

        package = BookingPackage(
            client_id=data.client_id,
            provider_id=data.provider_id,
            name=data.name,
            description=data.description,
            service_ids=list(data.service_ids),
            total_sessions=data.total_sessions,
            sessions_used=0,
            validity_days=data.validity_days,
            purchase_date=self.clock(),
            price=data.price,
            discount_percentage=data.discount_percentage,
            is_transferrable=data.is_transferrable,
            is_active=True,
        )
        self.db.add(package)
        self.db.commit()
        self.db.refresh(package)

        logger.info(f"Created package {package.id} ({package.total_sessions} sessions) for client {package.client_id}")
        return package

    def get_package(self, package_id: str) -> BookingPackage:
        package = self.db.query(BookingPackage).filter_by(id=package_id).first()
        if not package:
            raise NotFoundError(f"Package {package_id} not found", details={"package_id": package_id})
        return package

    def list_packages(
            self,
            provider_id: str,
            client_id: Optional[str] = None,
            usable_only: bool = False
    ) -> List[BookingPackage]:
        """
        Packages sold by a provider, newest first.

        `usable_only` keeps active, unexpired packages with sessions left.
        """
        if not self.db.query(Provider).filter_by(id=provider_id).first():
            raise NotFoundError(f"Provider {provider_id} not found")

        query = self.db.query(BookingPackage).filter(BookingPackage.provider_id == provider_id)
        if client_id:
            query = query.filter(BookingPackage.client_id == client_id)
        if usable_only:
            query = query.filter(
                BookingPackage.is_active.is_(True),
                BookingPackage.sessions_used < BookingPackage.total_sessions
            )
        packages = query.order_by(BookingPackage.purchase_date.desc(), BookingPackage.id.asc()).all()

        if usable_only:
            now = self.clock()
            packages = [p for p in packages if not p.is_expired(now)]
        return packages

    @staticmethod
    def to_config(package: BookingPackage) -> PackageConfig:
        return PackageConfig(
            package_id=package.id,
            total_sessions=package.total_sessions,
            sessions_used=package.sessions_used,
            expiry_date=package.expiry_date,
            transferrable=bool(package.is_transferrable),
        )

    @staticmethod
    def to_out(package: BookingPackage) -> PackageOut:
        return PackageOut(
            id=package.id,
            client_id=package.client_id,
            provider_id=package.provider_id,
            name=package.name,
            service_ids=list(package.service_ids or []),
            total_sessions=package.total_sessions,
            sessions_used=package.sessions_used,
            sessions_remaining=package.sessions_remaining,
            validity_days=package.validity_days,
            purchase_date=package.purchase_date,
            expiry_date=package.expiry_date,
            price=package.price,
            discount_percentage=package.discount_percentage,
            is_transferrable=bool(package.is_transferrable),
            is_active=bool(package.is_active),
        )

    def open_commitments(self, package_id: str, exclude_booking_id: Optional[str] = None) -> int:
        """Active package-funded bookings that have not been charged yet"""
        query = self.db.query(func.count(Booking.id)).filter(
            Booking.package_id == package_id,
            Booking.is_series_parent.is_(False),
            Booking.status.in_(ACTIVE_BOOKING_STATUSES)
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.scalar() or 0

    def ensure_available(
            self,
            package: BookingPackage,
            client_id: str,
            sessions: int = 1,
            service_ids: Optional[Iterable[str]] = None,
            exclude_booking_id: Optional[str] = None,
            appointments: Iterable[datetime] = ()
    ) -> None:
        """
        Raise unless the package can fund `sessions` more bookings.

        `appointments` are the UTC start instants being funded; each must
        fall on or before the package expiry date.
        """
        if not package.is_active:
            raise ValidationError(f"Package {package.id} is not active")
        if package.client_id != client_id and not package.is_transferrable:
            raise ValidationError(f"Package {package.id} belongs to another client")
        if package.is_expired(self.clock()):
            raise PackageExpiredError(
                f"Package {package.id} expired on {package.expiry_date.date().isoformat()}",
                details={"package_id": package.id}
            )
        late = sorted(a for a in appointments if package.is_expired(a))
        if late:
            raise PackageExpiredError(
                f"Package {package.id} expires on {package.expiry_date.date().isoformat()}, "
                f"before the appointment on {late[0].date().isoformat()}",
                details={
                    "package_id": package.id,
                    "expiry_date": package.expiry_date.isoformat(),
                    "late_appointments": [a.isoformat() for a in late],
                }
            )

        allowed = set(package.service_ids or [])
        if allowed and service_ids is not None:
            outside = [s for s in service_ids if s not in allowed]
            if outside:
                raise ValidationError(
                    "Package does not cover the selected services",
                    details={"service_ids": outside}
                )

        headroom = package.sessions_remaining - self.open_commitments(package.id, exclude_booking_id)
        if sessions > headroom:
            raise PackageExhaustedError(
                f"Package {package.id} has {max(headroom, 0)} sessions left, {sessions} needed",
                details={
                    "package_id": package.id,
                    "total_sessions": package.total_sessions,
                    "sessions_used": package.sessions_used,
                    "requested": sessions,
                }
            )

    def consume(
            self,
            package_id: str,
            sessions: int = 1,
            *,
            booking_id: str,
            reason: str = "completed",
            scheduled_at: Optional[datetime] = None
    ) -> BookingPackage:
        """
        Charge sessions for one booking, exactly once.

        Expiry is judged at `scheduled_at` (the appointment, UTC) when given,
        so a session held before expiry still settles if it is closed late.

        Flushes but does not commit; the caller owns the transaction.
        """
        if sessions <= 0:
            raise ValidationError("Sessions to consume must be positive")

        already = self.db.query(PackageLedgerEntry).filter_by(package_id=package_id, booking_id=booking_id).first()
        if already:
            logger.info(f"Package {package_id} already charged for booking {booking_id}")
            return self.get_package(package_id)

        for _ in range(CAS_ATTEMPTS):
            package = self.get_package(package_id)
            if package.is_expired(scheduled_at or self.clock()):
                raise PackageExpiredError(f"Package {package_id} has expired", details={"package_id": package_id})
            if package.sessions_used + sessions > package.total_sessions:
                raise PackageExhaustedError(
                    f"Package {package_id} has no sessions left",
                    details={"package_id": package_id, "sessions_used": package.sessions_used}
                )

            expected = package.sessions_used
            result = self.db.execute(
                update(BookingPackage)
                .where(
                    BookingPackage.id == package_id,
                    BookingPackage.sessions_used == expected
                )
                .values(sessions_used=BookingPackage.sessions_used + sessions)
                .execution_options(synchronize_session=False)
            )
            self.db.refresh(package)
            if result.rowcount == 1:
                self.db.add(PackageLedgerEntry(
                    package_id=package_id,
                    booking_id=booking_id,
                    sessions=sessions,
                    reason=reason,
                    created_at=self.clock(),
                ))
                self.db.flush()
                logger.info(
                    f"Consumed {sessions} session(s) of package {package_id} for booking {booking_id} "
                    f"({package.sessions_used}/{package.total_sessions})"
                )
                return package

            logger.warning(f"Package {package_id} balance changed concurrently, retrying")

        raise ConflictError(f"Package {package_id} is being updated concurrently, try again")
