"""
Pydantic schemas for providers, their service catalog and packages
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    timezone: Optional[str] = Field(None, max_length=50)
    buffer_minutes: Optional[int] = Field(None, ge=0)
    slot_granularity_minutes: Optional[int] = Field(None, ge=5, le=240)


class AddOnCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    duration: int = Field(default=0, ge=0)
    is_required: bool = False


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    duration: int = Field(..., gt=0, description="Duration in minutes")
    add_ons: List[AddOnCreate] = Field(default_factory=list)


class PackageCreate(BaseModel):
    client_id: str
    provider_id: str
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    service_ids: List[str] = Field(default_factory=list)
    total_sessions: int = Field(..., gt=0)
    validity_days: int = Field(default=365, gt=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    discount_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    is_transferrable: bool = False


class PackageOut(BaseModel):
    id: str
    client_id: str
    provider_id: str
    name: str
    service_ids: List[str]
    total_sessions: int
    sessions_used: int
    sessions_remaining: int
    validity_days: int
    purchase_date: datetime
    expiry_date: datetime
    price: Decimal
    discount_percentage: Decimal
    is_transferrable: bool
    is_active: bool


class ProviderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    timezone: str
    buffer_minutes: Optional[int] = None
    slot_granularity_minutes: Optional[int] = None
    is_active: bool


class AddOnOut(AddOnCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    service_id: str


class ServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    duration: int
    is_active: bool
    add_ons: List[AddOnOut] = Field(default_factory=list)
