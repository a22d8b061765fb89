"""
Truck status coupling driven by trip lifecycle changes.

Trip status changes move the linked truck (matched by registration number)
through its own states:

    Trip event                                   Truck effect
    -------------------------------------------  -----------------------------------
    created / updated with status in-transit     in-transit, last_trip_date = trip date
    status changes to completed                  available
    status changes in-transit -> cancelled       available
    deleted while in-transit                     available
    vehicle reassigned while in-transit          previous truck available

resolve_truck_transitions() is the pure table lookup. apply_truck_transitions()
writes the result inside the caller's transaction; the caller commits the
trip change and the truck change together.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceConflictError
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus, ACTIVE_TRIP_STATUSES
from backend.app.models.truck import Truck
from backend.app.models.truck_enums import TruckStatus

logger = logging.getLogger("transportpro.fleet")


class TripSnapshot(NamedTuple):
    """The trip fields the coupling cares about, captured before or after a change."""
    vehicle_id: str
    status: TripStatus
    start_date: Optional[date] = None

    @classmethod
    def of(cls, trip: Trip) -> "TripSnapshot":
        return cls(trip.vehicle_id, TripStatus(trip.status), trip.start_date)


@dataclass(frozen=True)
class TruckTransition:
    registration_number: str
    status: TruckStatus
    touch_last_trip_date: bool = False


def resolve_truck_transitions(
    previous: Optional[TripSnapshot],
    current: Optional[TripSnapshot]
) -> List[TruckTransition]:
    """
    Work out which truck status changes a trip change implies.

    Args:
        previous: Trip state before the change (None on create)
        current: Trip state after the change (None on delete)

    Returns:
        Transitions to apply, in order. Empty when the trip change does not
        affect any truck.
    """
    transitions: List[TruckTransition] = []

    if current is None:
        if previous is not None and previous.status == TripStatus.IN_TRANSIT:
            transitions.append(TruckTransition(previous.vehicle_id, TruckStatus.AVAILABLE))
        return transitions

    if (
        previous is not None
        and previous.status == TripStatus.IN_TRANSIT
        and previous.vehicle_id != current.vehicle_id
    ):
        transitions.append(TruckTransition(previous.vehicle_id, TruckStatus.AVAILABLE))

    if current.status == TripStatus.IN_TRANSIT:
        transitions.append(
            TruckTransition(current.vehicle_id, TruckStatus.IN_TRANSIT, touch_last_trip_date=True)
        )
    elif previous is not None and previous.status != current.status:
        if current.status == TripStatus.COMPLETED:
            transitions.append(TruckTransition(current.vehicle_id, TruckStatus.AVAILABLE))
        elif current.status == TripStatus.CANCELLED and previous.status == TripStatus.IN_TRANSIT:
            transitions.append(TruckTransition(current.vehicle_id, TruckStatus.AVAILABLE))

    return transitions


async def get_truck_by_registration(
    db: AsyncSession,
    registration_number: str,
    for_update: bool = False
) -> Optional[Truck]:
    """Load a truck by registration number, optionally row-locked."""
    query = select(Truck).where(Truck.registration_number == registration_number)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def find_active_trips_for_truck(db: AsyncSession, registration_number: str) -> List[Trip]:
    """Trips on this truck that are still pending or in transit."""
    result = await db.execute(
        select(Trip).where(
            Trip.vehicle_id == registration_number,
            Trip.status.in_(ACTIVE_TRIP_STATUSES)
        )
    )
    return list(result.scalars().all())


async def ensure_no_active_trips(db: AsyncSession, truck: Truck, attempted: str) -> None:
    """
    Reject a truck change that would strand active trips.

    Args:
        db: Database session
        truck: Truck being changed
        attempted: Human readable action for the error ("delete", "set to maintenance")

    Raises:
        ResourceConflictError: with the active trip count in details
    """
    active_trips = await find_active_trips_for_truck(db, truck.registration_number)
    if active_trips:
        logger.info(
            "Truck change blocked by active trips",
            extra={
                "registration_number": truck.registration_number,
                "attempted": attempted,
                "active_trips": len(active_trips),
            }
        )
        raise ResourceConflictError(
            message=(
                f"Cannot {attempted} truck {truck.registration_number}: "
                f"{len(active_trips)} active trip(s) assigned"
            ),
            details={
                "registration_number": truck.registration_number,
                "active_trips": len(active_trips),
                "trip_ids": [trip.id for trip in active_trips],
            }
        )


async def apply_truck_transitions(
    db: AsyncSession,
    transitions: List[TruckTransition],
    trip_date: Optional[date] = None
) -> List[Truck]:
    """
    Write truck status changes inside the current transaction (flush, no commit).

    Unknown registration numbers and sold trucks are skipped with a warning;
    a trip may reference a truck that is not in the inventory.

    Returns:
        Trucks that were changed
    """
    changed: List[Truck] = []

    for transition in transitions:
        truck = await get_truck_by_registration(db, transition.registration_number, for_update=True)

        if truck is None:
            logger.warning(
                "Trip references unknown truck, status not updated",
                extra={"registration_number": transition.registration_number}
            )
            continue

        if truck.status == TruckStatus.SOLD:
            logger.warning(
                "Trip references sold truck, status not updated",
                extra={"registration_number": transition.registration_number}
            )
            continue

        previous_status = truck.status
        truck.status = transition.status
        if transition.touch_last_trip_date:
            truck.last_trip_date = trip_date or date.today()

        changed.append(truck)
        logger.info(
            "Truck status changed by trip",
            extra={
                "registration_number": truck.registration_number,
                "from_status": previous_status.value,
                "to_status": transition.status.value,
            }
        )

    if changed:
        await db.flush()

    return changed
