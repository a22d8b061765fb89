"""
Trip API endpoints.

CRUD for trips plus the what-if profit calculator. Every write recomputes
netProfit from the row as it stands inside the transaction and then applies
the truck status coupling before the single commit.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.guards import require_permission
from backend.app.db.session import get_db
from backend.app.domain.profit.expenses import TRIP_EXPENSE_CATEGORIES, normalize_expenses
from backend.app.domain.profit.profit_engine import ProfitEngine
from backend.app.models.trip import Trip
from backend.app.schemas.base import MessageResponse
from backend.app.schemas.trip import (
    TripCreate, TripUpdate, TripResponse, TripProfitRequest, ProfitCalculationResponse
)
from backend.app.services.audit import log_fleet_event, AuditAction
from backend.app.services.fleet_status import (
    TripSnapshot, resolve_truck_transitions, apply_truck_transitions
)

router = APIRouter(prefix="/trips", tags=["Trips"])


async def _get_trip_or_404(db: AsyncSession, trip_id: int, for_update: bool = False) -> Trip:
    query = select(Trip).where(Trip.id == trip_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    trip = result.scalar_one_or_none()
    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)
    return trip


@router.get("", response_model=List[TripResponse])
async def list_trips(
    current_user: dict = Depends(require_permission("transportation", "viewTrips")),
    db: AsyncSession = Depends(get_db)
):
    """List all trips, newest first."""
    result = await db.execute(select(Trip).order_by(Trip.created_at.desc(), Trip.id.desc()))
    return [TripResponse.model_validate(trip) for trip in result.scalars().all()]


@router.post("/calculate-profit", response_model=ProfitCalculationResponse)
async def calculate_trip_profit(
    request: TripProfitRequest,
    current_user: dict = Depends(require_permission("transportation", "viewTrips"))
):
    """
    Compute profit for trip figures without saving anything.

    Returns totalExpenses, netProfit and profitMargin (% of customer payment).
    Missing expenses or customerPayment is a 400; zero values are fine.
    """
    result = ProfitEngine.compute_ad_hoc_trip_profit(request.expenses, request.customer_payment)
    return ProfitCalculationResponse(**result)


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: dict = Depends(require_permission("transportation", "createTrips")),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a trip.

    A trip created in-transit puts its truck in-transit in the same commit.
    """
    expenses = normalize_expenses(trip_data.expenses, TRIP_EXPENSE_CATEGORIES)

    trip = Trip(
        source=trip_data.source,
        destination=trip_data.destination,
        goods=trip_data.goods,
        vehicle_id=trip_data.vehicle_id,
        distance=trip_data.distance,
        start_date=trip_data.start_date,
        return_date=trip_data.return_date,
        expenses=expenses,
        customer_payment=trip_data.customer_payment,
        net_profit=ProfitEngine.compute_trip_net_profit(trip_data.customer_payment, expenses),
        status=trip_data.status,
        created_by=current_user["user_id"]
    )
    db.add(trip)
    await db.flush()

    transitions = resolve_truck_transitions(None, TripSnapshot.of(trip))
    await apply_truck_transitions(db, transitions, trip_date=trip.start_date)

    await db.commit()
    await db.refresh(trip)

    await log_fleet_event(
        db=db,
        action=AuditAction.TRIP_CREATED,
        current_user=current_user,
        entity_type="trip",
        entity_id=trip.id,
        metadata={"vehicle_id": trip.vehicle_id, "status": trip.status.value}
    )

    return TripResponse.model_validate(trip)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int,
    current_user: dict = Depends(require_permission("transportation", "viewTrips")),
    db: AsyncSession = Depends(get_db)
):
    trip = await _get_trip_or_404(db, trip_id)
    return TripResponse.model_validate(trip)


@router.put("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: int,
    trip_data: TripUpdate,
    current_user: dict = Depends(require_permission("transportation", "editTrips")),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a trip.

    Partial expense sets merge into the stored ones. netProfit is recomputed
    from the merged row, then the truck coupling runs against the before and
    after snapshots.
    """
    trip = await _get_trip_or_404(db, trip_id, for_update=True)
    previous = TripSnapshot.of(trip)

    updates = trip_data.model_dump(exclude_unset=True)
    if "expenses" in updates:
        updates["expenses"] = normalize_expenses(
            updates["expenses"], TRIP_EXPENSE_CATEGORIES, base=trip.expenses
        )

    for field, value in updates.items():
        setattr(trip, field, value)

    trip.net_profit = ProfitEngine.compute_trip_net_profit(trip.customer_payment, trip.expenses)
    await db.flush()

    transitions = resolve_truck_transitions(previous, TripSnapshot.of(trip))
    await apply_truck_transitions(db, transitions, trip_date=trip.start_date)

    await db.commit()
    await db.refresh(trip)

    await log_fleet_event(
        db=db,
        action=AuditAction.TRIP_UPDATED,
        current_user=current_user,
        entity_type="trip",
        entity_id=trip.id,
        metadata={
            "fields": sorted(updates.keys()),
            "from_status": previous.status.value,
            "to_status": trip.status.value,
        }
    )

    return TripResponse.model_validate(trip)


@router.delete("/{trip_id}", response_model=MessageResponse)
async def delete_trip(
    trip_id: int,
    current_user: dict = Depends(require_permission("transportation", "deleteTrips")),
    db: AsyncSession = Depends(get_db)
):
    """Delete a trip. Deleting an in-transit trip frees its truck."""
    trip = await _get_trip_or_404(db, trip_id, for_update=True)
    previous = TripSnapshot.of(trip)

    await db.delete(trip)
    await db.flush()

    await apply_truck_transitions(db, resolve_truck_transitions(previous, None))
    await db.commit()

    await log_fleet_event(
        db=db,
        action=AuditAction.TRIP_DELETED,
        current_user=current_user,
        entity_type="trip",
        entity_id=trip_id,
        metadata={"vehicle_id": previous.vehicle_id, "status": previous.status.value}
    )

    return MessageResponse(message="Trip deleted successfully")
