"""Shared schema types"""
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator


def _strip_tz(value: datetime) -> datetime:
    # Appointment times are provider wall-clock values
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


WallClock = Annotated[datetime, AfterValidator(_strip_tz)]
