# ============================================================================
# FILE: booking_engine/services/booking/booking_query_service.py
# Read-only booking listings - no FastAPI dependencies
# ============================================================================
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from booking_engine.core.exceptions import NotFoundError, ValidationError
from booking_engine.models.booking import Booking
from booking_engine.schemas.booking import BookingPage
from booking_engine.services.booking.booking_lifecycle import booking_to_out


class BookingQueryService:
    """Filtered views over bookings."""

    @staticmethod
    def list_bookings(
            db: Session,
            provider_id: Optional[str] = None,
            client_id: Optional[str] = None,
            statuses: Optional[List[str]] = None,
            booking_types: Optional[List[str]] = None,
            date_from: Optional[date] = None,
            date_to: Optional[date] = None,
            include_series_parents: bool = False,
            skip: int = 0,
            limit: int = 50
    ) -> BookingPage:
        """
        Bookings ordered by scheduled time.

        `date_from` and `date_to` are inclusive provider-local dates. Series
        parents are left out unless asked for; their occurrences are listed
        individually.
        """
        if date_from and date_to and date_to < date_from:
            raise ValidationError("date_to must not be before date_from")

        query = db.query(Booking)

        if provider_id:
            query = query.filter(Booking.provider_id == provider_id)
        if client_id:
            query = query.filter(Booking.client_id == client_id)
        if statuses:
            query = query.filter(Booking.status.in_(statuses))
        if booking_types:
            query = query.filter(Booking.booking_type.in_(booking_types))
        if date_from:
            query = query.filter(Booking.scheduled_date_time >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(Booking.scheduled_date_time < datetime.combine(date_to + timedelta(days=1), time.min))
        if not include_series_parents:
            query = query.filter(Booking.is_series_parent.is_(False))

        query = query.order_by(Booking.scheduled_date_time.asc(), Booking.id.asc())
        total = query.count()
        bookings = query.offset(skip).limit(limit).all()

        return BookingPage(
            bookings=[booking_to_out(b) for b in bookings],
            total=total,
            skip=skip,
            limit=limit,
            has_more=skip + len(bookings) < total,
        )

    @staticmethod
    def get_series(db: Session, booking_id: str) -> List[Booking]:
        """Occurrences of the series that `booking_id` (parent or child) belongs to"""
        booking = db.query(Booking).filter_by(id=booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})

        parent = booking if booking.is_series_parent else booking.parent
        if parent is None or not parent.is_series_parent:
            raise ValidationError(f"Booking {booking_id} is not part of a recurring series")

        # rescheduled occurrences keep the parent link, so the moved copy is listed too
        return list(parent.children)
