"""
Truck-related enumerations.
"""

import enum


class TruckStatus(str, enum.Enum):
    """Truck availability status."""
    AVAILABLE = "available"
    IN_TRANSIT = "in-transit"
    MAINTENANCE = "maintenance"
    SOLD = "sold"


class PaymentMethod(str, enum.Enum):
    """How a purchase or sale instalment was paid."""
    CASH = "cash"
    GPAY = "GPay"
    UPI = "UPI"
    RTGS = "RTGS"
    CHEQUE = "cheque"
    OTHER = "other"
