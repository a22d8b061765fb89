"""
Truck inventory schemas.

Nested documents (seller, payments, documents, sale) are stored as JSON in
their camelCase wire form, so the same models validate them on the way in
and on the way out.
"""

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, Field, field_validator

from backend.app.models.truck_enums import PaymentMethod, TruckStatus
from backend.app.schemas.base import CamelModel, reject_null

REGISTRATION_NUMBER_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{2}[0-9]{4}$")


def normalize_registration_number(value: Optional[str]) -> Optional[str]:
    """Trim and uppercase, then enforce the AA00AA0000 format (e.g. MH12AB1234)."""
    if value is None:
        return value
    value = value.strip().upper()
    if not REGISTRATION_NUMBER_PATTERN.match(value):
        raise ValueError("Registration number must look like MH12AB1234")
    return value


class PartyInfo(CamelModel):
    """Seller or buyer contact details."""
    name: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None
    aadhaar_number: Optional[str] = None
    email: Optional[EmailStr] = None


class PaymentEntry(CamelModel):
    method: PaymentMethod
    amount: float = Field(..., ge=0)
    payment_date: Optional[date] = Field(None, alias="date")


class TruckDocuments(CamelModel):
    noc: bool = Field(False, alias="NOC")
    insurance: bool = False
    fitness: bool = False
    tax: bool = False


class SaleRecord(CamelModel):
    buyer: Optional[PartyInfo] = None
    sale_date: Optional[date] = Field(None, alias="date")
    price: Optional[float] = Field(None, ge=0)
    commission: Optional[float] = Field(None, ge=0)
    commission_dealer_name: Optional[str] = None
    payments: List[PaymentEntry] = Field(default_factory=list)


class TruckCreate(CamelModel):
    """Schema for POST /trucks. resaleProfit is derived and ignored if sent."""
    registration_number: str
    model: str = Field(..., min_length=1, max_length=100)
    model_year: Optional[int] = Field(None, ge=1950, le=2100)
    seller: PartyInfo = Field(default_factory=PartyInfo)
    purchase_date: date
    purchase_price: float = Field(..., ge=0)
    purchase_payments: List[PaymentEntry] = Field(default_factory=list)
    documents: TruckDocuments = Field(default_factory=TruckDocuments)
    expenses: Dict[str, Any] = Field(default_factory=dict)
    sale: Optional[SaleRecord] = None
    status: TruckStatus = TruckStatus.AVAILABLE

    @field_validator("registration_number")
    @classmethod
    def check_registration_number(cls, value):
        return normalize_registration_number(value)


class TruckUpdate(CamelModel):
    """
    Schema for PUT /trucks/{id}.

    Expenses merge category by category; seller, documents and sale replace
    the stored document. Sending "sale": null clears the sale.
    """
    registration_number: Optional[str] = None
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    model_year: Optional[int] = Field(None, ge=1950, le=2100)
    seller: Optional[PartyInfo] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    purchase_payments: Optional[List[PaymentEntry]] = None
    documents: Optional[TruckDocuments] = None
    expenses: Optional[Dict[str, Any]] = None
    sale: Optional[SaleRecord] = None
    status: Optional[TruckStatus] = None

    @field_validator(
        "registration_number", "model", "seller", "purchase_date", "purchase_price",
        "purchase_payments", "documents", "expenses", "status"
    )
    @classmethod
    def required_columns_not_null(cls, value, info):
        return reject_null(value, info)

    @field_validator("registration_number")
    @classmethod
    def check_registration_number(cls, value):
        return normalize_registration_number(value)


class TruckStatusUpdate(CamelModel):
    status: TruckStatus


class TruckResponse(CamelModel):
    id: int
    registration_number: str
    model: str
    model_year: Optional[int] = None
    seller: PartyInfo
    purchase_date: date
    purchase_price: float
    purchase_payments: List[PaymentEntry]
    documents: TruckDocuments
    expenses: Dict[str, float]
    sale: Optional[SaleRecord] = None
    resale_profit: Optional[float] = None
    status: TruckStatus
    last_trip_date: Optional[date] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class TruckProfitRequest(CamelModel):
    """What-if resale calculation input; purchasePrice and salePrice are required."""
    purchase_price: Optional[Any] = None
    expenses: Optional[Dict[str, Any]] = None
    sale_price: Optional[Any] = None
    commission: Optional[Any] = None
