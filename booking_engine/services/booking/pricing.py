# booking_engine/services/booking/pricing.py
"""Price breakdown for one booking request"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from booking_engine.models.service import Service, ServiceAddOn
from booking_engine.schemas.booking import AddOnLine, PriceBreakdown, ServiceLine

CENTS = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def price_booking(
        services: Sequence[Service],
        add_ons: Sequence[ServiceAddOn],
        tax_rate: Decimal,
        booking_fee: Decimal,
        discount_percentage: Decimal = Decimal("0"),
        occurrences: int = 1
) -> PriceBreakdown:
    """
    Per occurrence: subtotal = services + add-ons, discounts from the
    package percentage, tax on the discounted amount, plus a flat fee.
    Recurring requests multiply every component by the occurrence count.
    """
    service_lines = [
        ServiceLine(service_id=s.id, service_name=s.name, price=money(s.price), duration=s.duration)
        for s in services
    ]
    add_on_lines = [
        AddOnLine(add_on_id=a.id, add_on_name=a.name, price=money(a.price))
        for a in add_ons
    ]

    subtotal = sum((line.price for line in service_lines), Decimal("0")) + \
        sum((line.price for line in add_on_lines), Decimal("0"))
    discounts = money(subtotal * Decimal(str(discount_percentage or 0)) / Decimal("100"))
    taxes = money((subtotal - discounts) * Decimal(str(tax_rate)))
    fees = money(booking_fee)
    per_occurrence = subtotal - discounts + taxes + fees

    return PriceBreakdown(
        services=service_lines,
        add_ons=add_on_lines,
        subtotal=money(subtotal * occurrences),
        taxes=money(taxes * occurrences),
        fees=money(fees * occurrences),
        discounts=money(discounts * occurrences),
        total=money(per_occurrence * occurrences),
        occurrences=occurrences,
        per_occurrence_total=money(per_occurrence),
    )
