"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip lifecycle status."""
    PENDING = "pending"  # Booked, truck not yet dispatched
    IN_TRANSIT = "in-transit"  # On the road, truck is busy
    COMPLETED = "completed"  # Delivered, truck released
    CANCELLED = "cancelled"  # Dropped before completion


# Trips that still hold a claim on their truck
ACTIVE_TRIP_STATUSES = (TripStatus.PENDING, TripStatus.IN_TRANSIT)
