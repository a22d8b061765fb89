"""
Trip schemas.

Request and response models for /trips. netProfit is never read from a
request body; it only appears on responses.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.base import CamelModel, reject_null


def _normalize_vehicle_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return value.strip().upper()


class TripCreate(CamelModel):
    """Schema for POST /trips. Unknown fields (including netProfit) are ignored."""
    source: str = Field(..., min_length=1, max_length=200)
    destination: str = Field(..., min_length=1, max_length=200)
    goods: str = Field(..., min_length=1, max_length=200)
    vehicle_id: str = Field(..., min_length=1, max_length=20, description="Truck registration number")
    distance: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    return_date: Optional[date] = None
    expenses: Dict[str, Any] = Field(default_factory=dict)
    customer_payment: float = Field(..., ge=0)
    status: TripStatus = TripStatus.PENDING

    @field_validator("vehicle_id")
    @classmethod
    def normalize_vehicle_id(cls, value):
        return _normalize_vehicle_id(value)


class TripUpdate(CamelModel):
    """Schema for PUT /trips/{id}. Only the fields sent are changed; expenses merge."""
    source: Optional[str] = Field(None, min_length=1, max_length=200)
    destination: Optional[str] = Field(None, min_length=1, max_length=200)
    goods: Optional[str] = Field(None, min_length=1, max_length=200)
    vehicle_id: Optional[str] = Field(None, min_length=1, max_length=20)
    distance: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    return_date: Optional[date] = None
    expenses: Optional[Dict[str, Any]] = None
    customer_payment: Optional[float] = Field(None, ge=0)
    status: Optional[TripStatus] = None

    @field_validator("source", "destination", "goods", "vehicle_id", "expenses", "customer_payment", "status")
    @classmethod
    def required_columns_not_null(cls, value, info):
        return reject_null(value, info)

    @field_validator("vehicle_id")
    @classmethod
    def normalize_vehicle_id(cls, value):
        return _normalize_vehicle_id(value)


class TripResponse(CamelModel):
    id: int
    source: str
    destination: str
    goods: str
    vehicle_id: str
    distance: Optional[float] = None
    start_date: Optional[date] = None
    return_date: Optional[date] = None
    expenses: Dict[str, float]
    customer_payment: float
    net_profit: float
    status: TripStatus
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class TripProfitRequest(CamelModel):
    """
    What-if profit calculation input.

    Both fields are required by the calculator but typed loosely here so a
    missing value reaches it and is reported as ERR_VALIDATION_001.
    """
    expenses: Optional[Dict[str, Any]] = None
    customer_payment: Optional[Any] = None


class ProfitCalculationResponse(CamelModel):
    total_expenses: float
    net_profit: float
    profit_margin: float
