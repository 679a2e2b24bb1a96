"""Reservation endpoints for renters and owners."""

from typing import Optional

from andaya.routes.deps import CurrentUser, get_current_user
from andaya.schemas import ReservationCreate
from andaya.services.database import get_db
from andaya.tools import payment_tools, reservation_tools
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.post("/reservations", status_code=status.HTTP_201_CREATED)
async def create_reservation(
    body: ReservationCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Request a booking; it stays pending until the owner reviews it."""
    return await reservation_tools.create_reservation(
        db, user.id, body.vehicle_id, body.start_at, body.end_at, body.notes
    )


@router.get("/reservations")
async def list_reservations(
    role: str = Query("renter"),
    status_filter: Optional[str] = Query(None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_tools.list_reservations(db, user.id, role=role, status=status_filter)


@router.get("/reservations/{reservation_id}")
async def get_reservation(
    reservation_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_tools.get_reservation(db, reservation_id, user.id, user.is_admin)


@router.get("/reservations/{reservation_id}/countdown")
async def get_countdown(
    reservation_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Time left until the return deadline and the grace period."""
    return await reservation_tools.get_reservation_countdown(
        db, reservation_id, user.id, user.is_admin
    )


@router.post("/reservations/{reservation_id}/cancel")
async def cancel_reservation(
    reservation_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reservation_tools.cancel_reservation(db, reservation_id, user.id)


@router.get("/payments/{reservation_id}")
async def get_payment(
    reservation_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await payment_tools.get_payment(db, reservation_id, user.id, user.is_admin)
