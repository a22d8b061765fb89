"""
Truck inventory API endpoints.

Registration numbers are unique; a truck with pending or in-transit trips
cannot be deleted, re-registered or sent to maintenance. resaleProfit is
recomputed from the stored fields on every write.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceConflictError, ResourceNotFoundError
from backend.app.core.guards import require_permission
from backend.app.db.session import get_db
from backend.app.domain.profit.expenses import TRUCK_EXPENSE_CATEGORIES, normalize_expenses
from backend.app.domain.profit.profit_engine import ProfitEngine
from backend.app.models.truck import Truck
from backend.app.models.truck_enums import TruckStatus
from backend.app.schemas.base import MessageResponse
from backend.app.schemas.trip import ProfitCalculationResponse
from backend.app.schemas.truck import (
    TruckCreate, TruckUpdate, TruckStatusUpdate, TruckResponse, TruckProfitRequest
)
from backend.app.services.audit import log_fleet_event, AuditAction
from backend.app.services.fleet_status import ensure_no_active_trips, get_truck_by_registration

logger = logging.getLogger("transportpro.fleet")

router = APIRouter(prefix="/trucks", tags=["Trucks"])


def _document(value: Any) -> Any:
    """Nested schema value -> JSON column value, in its camelCase wire form."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_document(item) for item in value]
    return value


async def _get_truck_or_404(db: AsyncSession, truck_id: int, for_update: bool = False) -> Truck:
    query = select(Truck).where(Truck.id == truck_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    truck = result.scalar_one_or_none()
    if not truck:
        raise ResourceNotFoundError("Truck", truck_id)
    return truck


async def _ensure_registration_free(db: AsyncSession, registration_number: str) -> None:
    if await get_truck_by_registration(db, registration_number) is not None:
        raise ResourceConflictError(
            message=f"Truck with registration number {registration_number} already exists",
            details={"registration_number": registration_number}
        )


async def _commit_registration(db: AsyncSession, registration_number: str) -> None:
    # The unique index still catches a concurrent insert that slipped past the pre-check
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ResourceConflictError(
            message=f"Truck with registration number {registration_number} already exists",
            details={"registration_number": registration_number}
        )


@router.get("", response_model=List[TruckResponse])
async def list_trucks(
    current_user: dict = Depends(require_permission("inventory", "viewInventory")),
    db: AsyncSession = Depends(get_db)
):
    """List all trucks, newest first."""
    result = await db.execute(select(Truck).order_by(Truck.created_at.desc(), Truck.id.desc()))
    return [TruckResponse.model_validate(truck) for truck in result.scalars().all()]


@router.get("/available", response_model=List[TruckResponse])
async def list_available_trucks(
    current_user: dict = Depends(require_permission("inventory", "viewInventory")),
    db: AsyncSession = Depends(get_db)
):
    """Trucks that can take a new trip."""
    result = await db.execute(
        select(Truck)
        .where(Truck.status == TruckStatus.AVAILABLE)
        .order_by(Truck.registration_number)
    )
    return [TruckResponse.model_validate(truck) for truck in result.scalars().all()]


@router.post("/calculate-profit", response_model=ProfitCalculationResponse)
async def calculate_truck_profit(
    request: TruckProfitRequest,
    current_user: dict = Depends(require_permission("inventory", "viewInventory"))
):
    """
    Compute resale profit for truck figures without saving anything.

    profitMargin is a percentage of the purchase price.
    """
    result = ProfitEngine.compute_ad_hoc_truck_profit(
        request.purchase_price,
        request.expenses,
        request.sale_price,
        request.commission
    )
    return ProfitCalculationResponse(**result)


@router.post("", response_model=TruckResponse, status_code=status.HTTP_201_CREATED)
async def create_truck(
    truck_data: TruckCreate,
    current_user: dict = Depends(require_permission("inventory", "addTrucks")),
    db: AsyncSession = Depends(get_db)
):
    """
    Add a truck to the inventory.

    Raises:
        409: registration number already in use
    """
    await _ensure_registration_free(db, truck_data.registration_number)

    expenses = normalize_expenses(truck_data.expenses, TRUCK_EXPENSE_CATEGORIES)
    sale = _document(truck_data.sale)

    truck = Truck(
        registration_number=truck_data.registration_number,
        model=truck_data.model,
        model_year=truck_data.model_year,
        seller=_document(truck_data.seller),
        purchase_date=truck_data.purchase_date,
        purchase_price=truck_data.purchase_price,
        purchase_payments=_document(truck_data.purchase_payments),
        documents=_document(truck_data.documents),
        expenses=expenses,
        sale=sale,
        resale_profit=ProfitEngine.compute_truck_resale_profit(truck_data.purchase_price, expenses, sale),
        status=truck_data.status,
        created_by=current_user["user_id"]
    )
    db.add(truck)
    await _commit_registration(db, truck.registration_number)
    await db.refresh(truck)

    await log_fleet_event(
        db=db,
        action=AuditAction.TRUCK_CREATED,
        current_user=current_user,
        entity_type="truck",
        entity_id=truck.id,
        metadata={"registration_number": truck.registration_number}
    )

    return TruckResponse.model_validate(truck)


@router.get("/{truck_id}", response_model=TruckResponse)
async def get_truck(
    truck_id: int,
    current_user: dict = Depends(require_permission("inventory", "viewInventory")),
    db: AsyncSession = Depends(get_db)
):
    truck = await _get_truck_or_404(db, truck_id)
    return TruckResponse.model_validate(truck)


@router.put("/{truck_id}", response_model=TruckResponse)
async def update_truck(
    truck_id: int,
    truck_data: TruckUpdate,
    current_user: dict = Depends(require_permission("inventory", "editTrucks")),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a truck.

    Only fields present in the body change. Expenses merge by category,
    nested documents are replaced. resaleProfit is recomputed afterwards
    and becomes null whenever the sale is incomplete.

    Raises:
        409: new registration number taken, or the change would strand active trips
    """
    truck = await _get_truck_or_404(db, truck_id, for_update=True)

    updates: Dict[str, Any] = {
        field: _document(getattr(truck_data, field))
        for field in truck_data.model_fields_set
    }

    new_registration = updates.get("registration_number")
    if new_registration is not None and new_registration != truck.registration_number:
        await ensure_no_active_trips(db, truck, "change the registration number of")
        await _ensure_registration_free(db, new_registration)

    if updates.get("status") == TruckStatus.MAINTENANCE and truck.status != TruckStatus.MAINTENANCE:
        await ensure_no_active_trips(db, truck, "set to maintenance")

    if "expenses" in updates:
        updates["expenses"] = normalize_expenses(
            updates["expenses"], TRUCK_EXPENSE_CATEGORIES, base=truck.expenses
        )

    for field, value in updates.items():
        setattr(truck, field, value)

    truck.resale_profit = ProfitEngine.compute_truck_resale_profit(
        truck.purchase_price, truck.expenses, truck.sale
    )

    await _commit_registration(db, truck.registration_number)
    await db.refresh(truck)

    await log_fleet_event(
        db=db,
        action=AuditAction.TRUCK_UPDATED,
        current_user=current_user,
        entity_type="truck",
        entity_id=truck.id,
        metadata={"fields": sorted(updates.keys())}
    )

    return TruckResponse.model_validate(truck)


@router.put("/{truck_id}/status", response_model=TruckResponse)
async def update_truck_status(
    truck_id: int,
    status_data: TruckStatusUpdate,
    current_user: dict = Depends(require_permission("inventory", "editTrucks")),
    db: AsyncSession = Depends(get_db)
):
    """
    Change only the truck status.

    Raises:
        409: maintenance requested while the truck has pending or in-transit trips
    """
    truck = await _get_truck_or_404(db, truck_id, for_update=True)
    previous_status = truck.status

    if status_data.status == TruckStatus.MAINTENANCE and previous_status != TruckStatus.MAINTENANCE:
        await ensure_no_active_trips(db, truck, "set to maintenance")

    truck.status = status_data.status
    await db.commit()
    await db.refresh(truck)

    await log_fleet_event(
        db=db,
        action=AuditAction.TRUCK_STATUS_CHANGED,
        current_user=current_user,
        entity_type="truck",
        entity_id=truck.id,
        metadata={"from_status": previous_status.value, "to_status": truck.status.value}
    )

    return TruckResponse.model_validate(truck)


@router.delete("/{truck_id}", response_model=MessageResponse)
async def delete_truck(
    truck_id: int,
    current_user: dict = Depends(require_permission("inventory", "deleteTrucks")),
    db: AsyncSession = Depends(get_db)
):
    """
    Remove a truck from the inventory.

    Raises:
        409: truck still has pending or in-transit trips
    """
    truck = await _get_truck_or_404(db, truck_id, for_update=True)
    await ensure_no_active_trips(db, truck, "delete")

    registration_number = truck.registration_number
    await db.delete(truck)
    await db.commit()

    logger.info("Truck deleted", extra={"registration_number": registration_number})

    await log_fleet_event(
        db=db,
        action=AuditAction.TRUCK_DELETED,
        current_user=current_user,
        entity_type="truck",
        entity_id=truck_id,
        metadata={"registration_number": registration_number}
    )

    return MessageResponse(message="Truck deleted successfully")
