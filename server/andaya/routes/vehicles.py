"""Vehicle listings, owner management and the availability calendar."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from andaya.models.vehicle import VehicleType
from andaya.routes.deps import CurrentUser, get_current_user, get_optional_user, require_admin
from andaya.schemas import AvailabilityBlockCreate, VehicleCreate, VehicleRejectRequest, VehicleUpdate
from andaya.services.database import get_db
from andaya.services.email_client import EmailService, get_email_service
from andaya.tools import vehicle_tools
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/vehicles", status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    body: VehicleCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List a new vehicle. It stays in review until an admin approves it."""
    return await vehicle_tools.create_vehicle(db, user.id, body.model_dump(exclude_none=True))


@router.get("/vehicles")
async def list_vehicles(
    city: Optional[str] = Query(None),
    type: Optional[VehicleType] = Query(None),
    max_price: Optional[Decimal] = Query(None, gt=0),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.list_vehicles(
        db, city=city, vehicle_type=type, max_price=max_price, limit=limit, offset=offset
    )


@router.get("/vehicles/mine")
async def list_my_vehicles(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.list_owner_vehicles(db, user.id)


@router.get("/vehicles/{vehicle_id}")
async def get_vehicle(
    vehicle_id: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.get_vehicle(
        db,
        vehicle_id,
        viewer_id=user.id if user else None,
        is_admin=user.is_admin if user else False,
    )


@router.patch("/vehicles/{vehicle_id}")
async def update_vehicle(
    vehicle_id: str,
    body: VehicleUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.update_vehicle(
        db, vehicle_id, user.id, body.model_dump(exclude_unset=True), is_admin=user.is_admin
    )


@router.post("/vehicles/{vehicle_id}/pause")
async def pause_vehicle(
    vehicle_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.pause_vehicle(db, vehicle_id, user.id)


@router.post("/vehicles/{vehicle_id}/resume")
async def resume_vehicle(
    vehicle_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.resume_vehicle(db, vehicle_id, user.id)


@router.get("/vehicles/{vehicle_id}/availability")
async def get_availability(
    vehicle_id: str,
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
):
    """Unavailable and pending days for the booking calendar."""
    return await vehicle_tools.get_vehicle_availability(db, vehicle_id, from_date, to_date)


@router.post("/vehicles/{vehicle_id}/blocks", status_code=status.HTTP_201_CREATED)
async def add_block(
    vehicle_id: str,
    body: AvailabilityBlockCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.add_availability_block(
        db, vehicle_id, user.id, body.start_date, body.end_date, body.note
    )


# ============================================================================
# Review
# ============================================================================


@router.post("/admin/vehicles/{vehicle_id}/approve")
async def approve_vehicle(
    vehicle_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await vehicle_tools.approve_vehicle(db, vehicle_id, admin.id)


@router.post("/admin/vehicles/{vehicle_id}/reject")
async def reject_vehicle(
    vehicle_id: str,
    body: VehicleRejectRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    return await vehicle_tools.reject_vehicle(db, vehicle_id, admin.id, body.reason, email_service)
