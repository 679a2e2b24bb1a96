"""Vehicle listing, calendar and review operations."""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from andaya.errors import BadRequestError, ForbiddenError, NotFoundError
from andaya.models import Profile, Reservation, UserRole, Vehicle, VehicleAvailability
from andaya.models.profile import AppRole
from andaya.models.reservation import BLOCKING_STATUSES, ReservationStatus
from andaya.models.vehicle import AvailabilityKind, VehicleStatus
from andaya.services.email_client import EmailService
from andaya.services.email_templates import vehicle_rejected_email
from andaya.tools.common import parse_uuid, record_audit, record_email
from andaya.tools.serializers import vehicle_to_dict
from andaya.utils.dates import as_utc, local_tz
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
DEFAULT_REJECTION_REASON = "No especificado"


async def get_vehicle_or_404(db: AsyncSession, vehicle_id: Any) -> Vehicle:
    vehicle = await db.get(Vehicle, parse_uuid(vehicle_id, "vehicle_id"))
    if not vehicle:
        raise NotFoundError("Vehículo no encontrado")
    return vehicle


def _ensure_owner(vehicle: Vehicle, user_id: uuid.UUID, is_admin: bool = False) -> None:
    if vehicle.owner_id != user_id and not is_admin:
        raise ForbiddenError("No tienes permisos sobre este vehículo")


# ============================================================================
# Owner operations
# ============================================================================


async def create_vehicle(db: AsyncSession, owner_id: uuid.UUID, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Publish a vehicle for review.

    New listings start in ``pending_review`` and only become bookable once an
    admin approves them. The publisher is granted the owner role if missing.
    """
    try:
        vehicle = Vehicle(owner_id=owner_id, status=VehicleStatus.PENDING_REVIEW, **data)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    db.add(vehicle)

    has_owner_role = await db.scalar(
        select(UserRole.id).where(UserRole.user_id == owner_id, UserRole.role == AppRole.OWNER)
    )
    if not has_owner_role:
        db.add(UserRole(user_id=owner_id, role=AppRole.OWNER))
        logger.info(f"Granted owner role to {owner_id}")

    await db.commit()
    await db.refresh(vehicle)

    logger.info(f"Vehicle {vehicle.id} created by {owner_id} ({vehicle.display_name})")
    return vehicle_to_dict(vehicle)


async def update_vehicle(
    db: AsyncSession,
    vehicle_id: Any,
    user_id: uuid.UUID,
    patch: Dict[str, Any],
    is_admin: bool = False,
) -> Dict[str, Any]:
    """Apply a partial update. An owner editing a rejected listing resubmits it for review."""
    vehicle = await get_vehicle_or_404(db, vehicle_id)
    _ensure_owner(vehicle, user_id, is_admin)

    try:
        for key, value in patch.items():
            setattr(vehicle, key, value)
    except ValueError as e:
        raise BadRequestError(str(e)) from e

    if vehicle.status == VehicleStatus.REJECTED and not is_admin:
        vehicle.status = VehicleStatus.PENDING_REVIEW
        vehicle.rejected_reason = None

    await db.commit()
    await db.refresh(vehicle)

    logger.info(f"Vehicle {vehicle.id} updated by {user_id}: {sorted(patch)}")
    return vehicle_to_dict(vehicle)


async def pause_vehicle(db: AsyncSession, vehicle_id: Any, user_id: uuid.UUID) -> Dict[str, Any]:
    vehicle = await get_vehicle_or_404(db, vehicle_id)
    _ensure_owner(vehicle, user_id)

    if vehicle.status != VehicleStatus.ACTIVE:
        raise BadRequestError("Solo se pueden pausar vehículos activos")

    vehicle.status = VehicleStatus.PAUSED
    vehicle.paused_at = datetime.now(timezone.utc)
    await db.commit()

    logger.info(f"Vehicle {vehicle.id} paused")
    return vehicle_to_dict(vehicle)


async def resume_vehicle(db: AsyncSession, vehicle_id: Any, user_id: uuid.UUID) -> Dict[str, Any]:
    vehicle = await get_vehicle_or_404(db, vehicle_id)
    _ensure_owner(vehicle, user_id)

    if vehicle.status != VehicleStatus.PAUSED:
        raise BadRequestError("El vehículo no está pausado")

    vehicle.status = VehicleStatus.ACTIVE
    vehicle.paused_at = None
    await db.commit()

    logger.info(f"Vehicle {vehicle.id} resumed")
    return vehicle_to_dict(vehicle)


async def add_availability_block(
    db: AsyncSession,
    vehicle_id: Any,
    user_id: uuid.UUID,
    start_date: date,
    end_date: date,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    """Block a range of days (inclusive) on the vehicle's calendar."""
    vehicle = await get_vehicle_or_404(db, vehicle_id)
    _ensure_owner(vehicle, user_id)

    if end_date < start_date:
        raise BadRequestError("end_date debe ser igual o posterior a start_date")

    block = VehicleAvailability(
        vehicle_id=vehicle.id,
        start_date=start_date,
        end_date=end_date,
        kind=AvailabilityKind.BLOCKED,
        note=note,
    )
    db.add(block)
    await db.commit()

    logger.info(f"Vehicle {vehicle.id} blocked {start_date}..{end_date}")
    return {
        "id": str(block.id),
        "vehicle_id": str(vehicle.id),
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "kind": AvailabilityKind.BLOCKED.value,
        "note": note,
    }


# ============================================================================
# Public catalogue
# ============================================================================


async def list_vehicles(
    db: AsyncSession,
    city: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    max_price: Optional[Decimal] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """List bookable (active) vehicles, cheapest first."""
    stmt = select(Vehicle).where(Vehicle.status == VehicleStatus.ACTIVE)

    if city:
        stmt = stmt.where(Vehicle.city.ilike(f"%{city}%"))
    if vehicle_type:
        stmt = stmt.where(Vehicle.type == vehicle_type)
    if max_price is not None:
        stmt = stmt.where(Vehicle.price_bs <= max_price)

    limit = max(1, min(limit, MAX_PAGE_SIZE))
    stmt = stmt.order_by(Vehicle.price_bs.asc(), Vehicle.created_at.desc()).limit(limit).offset(offset)

    result = await db.execute(stmt)
    return [vehicle_to_dict(v) for v in result.scalars().all()]


async def list_owner_vehicles(db: AsyncSession, owner_id: uuid.UUID) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(Vehicle).where(Vehicle.owner_id == owner_id).order_by(Vehicle.created_at.desc())
    )
    return [vehicle_to_dict(v) for v in result.scalars().all()]


async def get_vehicle(
    db: AsyncSession,
    vehicle_id: Any,
    viewer_id: Optional[uuid.UUID] = None,
    is_admin: bool = False,
) -> Dict[str, Any]:
    """Vehicles that are not active are only visible to their owner and admins."""
    vehicle = await get_vehicle_or_404(db, vehicle_id)
    if vehicle.status != VehicleStatus.ACTIVE and vehicle.owner_id != viewer_id and not is_admin:
        raise NotFoundError("Vehículo no encontrado")
    return vehicle_to_dict(vehicle)


# ============================================================================
# Calendar
# ============================================================================


def _days_between(first: date, last: date) -> List[date]:
    return [first + timedelta(days=offset) for offset in range((last - first).days + 1)]


def reservation_days(start_at: datetime, end_at: datetime) -> List[date]:
    """Local (Caracas) calendar days touched by a reservation, both ends included."""
    tz = local_tz()
    first = as_utc(start_at).astimezone(tz).date()
    last = as_utc(end_at).astimezone(tz).date()
    return _days_between(first, last)


async def load_calendar(
    db: AsyncSession,
    vehicle_id: uuid.UUID,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    exclude_reservation_id: Optional[uuid.UUID] = None,
) -> Tuple[Set[date], Set[date]]:
    """
    Build the vehicle's unavailable and pending day sets.

    Unavailable: owner blocks plus approved/active reservations.
    Pending: days requested by reservations still awaiting approval.
    """
    unavailable: Set[date] = set()
    pending: Set[date] = set()

    blocks = await db.execute(
        select(VehicleAvailability).where(
            VehicleAvailability.vehicle_id == vehicle_id,
            VehicleAvailability.kind == AvailabilityKind.BLOCKED,
        )
    )
    for block in blocks.scalars().all():
        unavailable.update(_days_between(block.start_date, block.end_date))

    stmt = select(Reservation).where(
        Reservation.vehicle_id == vehicle_id,
        Reservation.status.in_(BLOCKING_STATUSES + (ReservationStatus.PENDING,)),
    )
    if exclude_reservation_id:
        stmt = stmt.where(Reservation.id != exclude_reservation_id)

    reservations = await db.execute(stmt)
    for reservation in reservations.scalars().all():
        days = reservation_days(reservation.start_at, reservation.end_at)
        if reservation.status == ReservationStatus.PENDING:
            pending.update(days)
        else:
            unavailable.update(days)

    # A day both blocked and pending is shown as blocked
    pending -= unavailable

    if from_date:
        unavailable = {d for d in unavailable if d >= from_date}
        pending = {d for d in pending if d >= from_date}
    if to_date:
        unavailable = {d for d in unavailable if d <= to_date}
        pending = {d for d in pending if d <= to_date}

    return unavailable, pending


async def get_vehicle_availability(
    db: AsyncSession,
    vehicle_id: Any,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> Dict[str, Any]:
    vehicle = await get_vehicle_or_404(db, vehicle_id)
    unavailable, pending = await load_calendar(db, vehicle.id, from_date, to_date)
    return {
        "vehicle_id": str(vehicle.id),
        "unavailable_dates": sorted(d.isoformat() for d in unavailable),
        "pending_dates": sorted(d.isoformat() for d in pending),
    }


# ============================================================================
# Review (admin)
# ============================================================================


async def approve_vehicle(db: AsyncSession, vehicle_id: Any, admin_id: uuid.UUID) -> Dict[str, Any]:
    vehicle = await get_vehicle_or_404(db, vehicle_id)

    vehicle.status = VehicleStatus.ACTIVE
    vehicle.approved_at = datetime.now(timezone.utc)
    vehicle.approved_by = admin_id
    vehicle.rejected_reason = None

    record_audit(
        db,
        "vehicle_approved",
        actor_id=admin_id,
        entity_type="vehicle",
        entity_id=vehicle.id,
        meta={"vehicle_title": vehicle.title},
    )
    await db.commit()

    logger.info(f"Vehicle {vehicle.id} approved by {admin_id}")
    return vehicle_to_dict(vehicle)


async def reject_vehicle(
    db: AsyncSession,
    vehicle_id: Any,
    admin_id: uuid.UUID,
    reason: Optional[str],
    email_service: EmailService,
) -> Dict[str, Any]:
    """Reject a listing and notify its owner."""
    if not reason or not reason.strip():
        raise BadRequestError("Se requiere motivo de rechazo")

    vehicle = await get_vehicle_or_404(db, vehicle_id)
    vehicle.status = VehicleStatus.REJECTED
    vehicle.rejected_reason = reason.strip()
    vehicle.approved_at = None
    vehicle.approved_by = None
    await db.commit()

    logger.info(f"Vehicle {vehicle.id} rejected by {admin_id}")
    notification = await notify_vehicle_rejection(db, vehicle.id, reason.strip(), email_service)

    result = vehicle_to_dict(vehicle)
    result["notification"] = notification
    return result


async def notify_vehicle_rejection(
    db: AsyncSession,
    vehicle_id: Any,
    reason: Optional[str],
    email_service: EmailService,
) -> Dict[str, Any]:
    """
    Tell an owner their listing was rejected.

    Always leaves a ``vehicle_rejected`` audit entry; the email itself is
    best-effort.
    """
    if not vehicle_id:
        raise BadRequestError("vehicleId es requerido")

    vehicle = await db.get(Vehicle, parse_uuid(vehicle_id, "vehicleId"))
    if not vehicle:
        raise NotFoundError("Vehicle not found")

    reason = reason or vehicle.rejected_reason or DEFAULT_REJECTION_REASON
    owner = await db.get(Profile, vehicle.owner_id)
    owner_email = owner.email if owner else None
    owner_name = owner.display_name if owner else "Propietario"

    record_audit(
        db,
        "vehicle_rejected",
        actor_id=vehicle.owner_id,
        entity_type="vehicle",
        entity_id=vehicle.id,
        meta={
            "vehicle_title": vehicle.title,
            "rejection_reason": reason,
            "owner_email": owner_email,
            "notified_at": datetime.now(timezone.utc).isoformat(),
        },
    )

    email_sent = False
    if owner_email:
        subject, html = vehicle_rejected_email(owner_name, vehicle.title, reason)
        email_sent = await email_service.send_best_effort([owner_email], subject, html) is not None
        record_email(
            db,
            "vehicle_rejected",
            email_sent,
            user_id=vehicle.owner_id,
            meta={"vehicle_id": str(vehicle.id)},
        )
    else:
        logger.warning(f"Owner of vehicle {vehicle.id} has no email, skipping notification")

    await db.commit()

    return {"success": True, "audit_logged": True, "email_sent": email_sent}
