"""Reservation pricing, lifecycle and late-return operations."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from andaya.config import settings
from andaya.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from andaya.models import Profile, Reservation, ReservationEvent, Vehicle
from andaya.models.reservation import BLOCKING_STATUSES, PricingMode, ReservationStatus
from andaya.models.vehicle import VehicleStatus
from andaya.services.email_client import EmailService
from andaya.services.email_templates import (
    extension_request_email,
    receipt_email,
    reservation_approved_email,
    reservation_rejected_email,
)
from andaya.tools.common import parse_timestamp, parse_uuid, record_email
from andaya.tools.serializers import event_to_dict, reservation_to_dict, vehicle_to_dict
from andaya.tools.vehicle_tools import load_calendar
from andaya.utils.billing import calculate_overage, late_fee_rate, quote_pricing
from andaya.utils.countdown import reservation_countdown
from andaya.utils.date_range import DateRangeSelector
from andaya.utils.dates import as_utc, local_tz
from andaya.utils.phone import whatsapp_link
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "No especificado"
CANCELLABLE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.APPROVED)
EXTENDABLE_STATUSES = (ReservationStatus.APPROVED, ReservationStatus.ACTIVE)


async def _load_reservation(db: AsyncSession, reservation_id: Any) -> Reservation:
    stmt = (
        select(Reservation)
        .options(
            selectinload(Reservation.vehicle),
            selectinload(Reservation.renter),
            selectinload(Reservation.owner),
        )
        .where(Reservation.id == parse_uuid(reservation_id, "reservation_id"))
    )
    reservation = (await db.execute(stmt)).scalar_one_or_none()
    if not reservation:
        raise NotFoundError("Reserva no encontrada")
    return reservation


def _ensure_participant(reservation: Reservation, user_id: uuid.UUID, is_admin: bool) -> None:
    if is_admin or user_id in (reservation.renter_id, reservation.owner_id):
        return
    raise ForbiddenError("No tienes acceso a esta reserva")


async def _find_conflicts(
    db: AsyncSession,
    vehicle_id: uuid.UUID,
    start_at: datetime,
    end_at: datetime,
    exclude_id: Optional[uuid.UUID] = None,
) -> List[Reservation]:
    """Approved or active reservations of the vehicle overlapping [start_at, end_at)."""
    stmt = select(Reservation).where(
        Reservation.vehicle_id == vehicle_id,
        Reservation.status.in_(BLOCKING_STATUSES),
        Reservation.start_at < end_at,
        Reservation.end_at > start_at,
    )
    if exclude_id:
        stmt = stmt.where(Reservation.id != exclude_id)
    return list((await db.execute(stmt)).scalars().all())


# ============================================================================
# Pricing
# ============================================================================


async def quote_reservation(
    db: AsyncSession,
    vehicle_id: Optional[str],
    start_at: Optional[str],
    end_at: Optional[str],
) -> Dict[str, Any]:
    """
    Price a prospective rental of an active vehicle.

    Returns:
        {"success": True, "pricing": {...}}

    Raises:
        BadRequestError: Missing fields or end_at not after start_at
        NotFoundError: Vehicle missing or not active
    """
    if not vehicle_id or not start_at or not end_at:
        raise BadRequestError("Missing required fields: vehicle_id, start_at, end_at")

    start = parse_timestamp(start_at, "start_at")
    end = parse_timestamp(end_at, "end_at")
    if end <= start:
        raise BadRequestError("end_at must be after start_at")

    vehicle = await db.get(Vehicle, parse_uuid(vehicle_id, "vehicle_id"))
    if not vehicle or vehicle.status != VehicleStatus.ACTIVE:
        raise NotFoundError("Vehicle not found or not active")

    quote = quote_pricing(vehicle.price_bs, start, end, hourly_rate=vehicle.hourly_rate_bs)
    logger.info(
        f"Quoted vehicle {vehicle.id} {start.isoformat()}..{end.isoformat()}: "
        f"{quote.pricing_mode} total={quote.total_bs}"
    )
    return {"success": True, "pricing": quote.to_dict()}


# ============================================================================
# Booking
# ============================================================================


async def create_reservation(
    db: AsyncSession,
    renter_id: uuid.UUID,
    vehicle_id: str,
    start_at: datetime,
    end_at: datetime,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Request a booking.

    The requested days are run through the same calendar rules the booking
    picker applies (no past days, no blocked or pending days inside the
    range). The pricing is snapshotted on the reservation, which starts
    ``pending`` until the owner approves it.
    """
    start_at, end_at = as_utc(start_at), as_utc(end_at)
    if end_at <= start_at:
        raise BadRequestError("end_at must be after start_at")

    now = as_utc(now) if now else datetime.now(timezone.utc)
    if start_at < now:
        raise BadRequestError("La fecha de inicio no puede estar en el pasado")

    vehicle = await db.get(Vehicle, parse_uuid(vehicle_id, "vehicle_id"))
    if not vehicle or vehicle.status != VehicleStatus.ACTIVE:
        raise NotFoundError("Vehicle not found or not active")
    if vehicle.owner_id == renter_id:
        raise BadRequestError("No puedes reservar tu propio vehículo")

    tz = local_tz()
    unavailable, pending = await load_calendar(db, vehicle.id)
    selector = DateRangeSelector(
        unavailable_dates=unavailable,
        pending_dates=pending,
        min_date=now.astimezone(tz).date(),
    )
    if not selector.select(start_at.astimezone(tz), end_at.astimezone(tz)):
        raise ConflictError("Las fechas seleccionadas no están disponibles")

    if await _find_conflicts(db, vehicle.id, start_at, end_at):
        raise ConflictError("Vehicle not available for the requested period")

    quote = quote_pricing(vehicle.price_bs, start_at, end_at, hourly_rate=vehicle.hourly_rate_bs)
    min_days = vehicle.min_rental_days or 1
    if quote.pricing_mode == PricingMode.DAILY.value and quote.days < min_days:
        raise BadRequestError(f"La duración mínima de alquiler es de {min_days} días")

    reservation = Reservation(
        vehicle_id=vehicle.id,
        renter_id=renter_id,
        owner_id=vehicle.owner_id,
        start_at=start_at,
        end_at=end_at,
        grace_minutes=settings.DEFAULT_GRACE_MINUTES,
        status=ReservationStatus.PENDING,
        pricing_mode=PricingMode(quote.pricing_mode),
        daily_price_bs=quote.daily_rate_bs,
        hourly_rate_bs=quote.hourly_rate_bs,
        late_fee_per_hour_bs=vehicle.late_fee_per_hour_bs,
        subtotal_bs=quote.subtotal_bs,
        service_fee_bs=quote.service_fee_bs,
        total_price_bs=quote.total_bs,
        notes=notes,
    )
    db.add(reservation)
    await db.flush()

    db.add(
        ReservationEvent(
            reservation_id=reservation.id,
            type="created",
            created_by=renter_id,
            meta={"pricing": quote.to_dict()},
        )
    )
    await db.commit()

    logger.info(
        f"Reservation {reservation.id} requested by {renter_id} for vehicle {vehicle.id} "
        f"({quote.pricing_mode}, Bs {quote.total_bs})"
    )
    return reservation_to_dict(reservation)


async def list_reservations(
    db: AsyncSession,
    user_id: uuid.UUID,
    role: str = "renter",
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Reservations where the user is the renter (default) or the owner."""
    if role not in ("renter", "owner"):
        raise BadRequestError("role debe ser renter u owner")

    column = Reservation.renter_id if role == "renter" else Reservation.owner_id
    stmt = (
        select(Reservation)
        .options(selectinload(Reservation.vehicle))
        .where(column == user_id)
        .order_by(Reservation.start_at.desc())
    )
    if status:
        try:
            stmt = stmt.where(Reservation.status == ReservationStatus(status))
        except ValueError as e:
            raise BadRequestError(f"Estado inválido: {status}") from e

    result = await db.execute(stmt)
    items = []
    for reservation in result.scalars().all():
        item = reservation_to_dict(reservation)
        item["vehicle"] = vehicle_to_dict(reservation.vehicle) if reservation.vehicle else None
        items.append(item)
    return items


async def get_reservation(
    db: AsyncSession, reservation_id: Any, user_id: uuid.UUID, is_admin: bool = False
) -> Dict[str, Any]:
    reservation = await _load_reservation(db, reservation_id)
    _ensure_participant(reservation, user_id, is_admin)

    events = await db.execute(
        select(ReservationEvent)
        .where(ReservationEvent.reservation_id == reservation.id)
        .order_by(ReservationEvent.created_at)
    )

    data = reservation_to_dict(reservation)
    data["vehicle"] = vehicle_to_dict(reservation.vehicle)
    data["events"] = [event_to_dict(e) for e in events.scalars().all()]
    return data


async def get_reservation_countdown(
    db: AsyncSession,
    reservation_id: Any,
    user_id: uuid.UUID,
    is_admin: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    reservation = await _load_reservation(db, reservation_id)
    _ensure_participant(reservation, user_id, is_admin)

    countdown = reservation_countdown(
        reservation.end_at, reservation.grace_minutes, reservation.status, now=now
    )
    data = countdown.to_dict()
    data["reservation_id"] = str(reservation.id)
    return data


async def cancel_reservation(
    db: AsyncSession, reservation_id: Any, user_id: uuid.UUID
) -> Dict[str, Any]:
    """Renter cancels a reservation that has not started yet."""
    reservation = await _load_reservation(db, reservation_id)
    if reservation.renter_id != user_id:
        raise ForbiddenError("No tienes permisos para cancelar esta reserva")
    if reservation.status not in CANCELLABLE_STATUSES:
        raise BadRequestError("Solo se pueden cancelar reservas pendientes o aprobadas")

    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_at = datetime.now(timezone.utc)
    db.add(ReservationEvent(reservation_id=reservation.id, type="cancelled", created_by=user_id))
    await db.commit()

    logger.info(f"Reservation {reservation.id} cancelled by renter {user_id}")
    return reservation_to_dict(reservation)


# ============================================================================
# Owner review
# ============================================================================


async def _load_for_review(db: AsyncSession, reservation_id: Any, user_id: uuid.UUID, verb: str):
    if not reservation_id:
        raise BadRequestError("reservation_id es requerido")

    reservation = await _load_reservation(db, reservation_id)
    if reservation.vehicle.owner_id != user_id:
        raise ForbiddenError(f"No tienes permisos para {verb} esta reserva")
    if reservation.status != ReservationStatus.PENDING:
        raise BadRequestError("La reserva ya fue procesada")
    return reservation


async def approve_reservation(
    db: AsyncSession,
    reservation_id: Any,
    user_id: uuid.UUID,
    email_service: EmailService,
) -> Dict[str, Any]:
    """
    Owner approves a pending reservation.

    The approval email to the renter is sent afterwards and never fails the
    approval.
    """
    reservation = await _load_for_review(db, reservation_id, user_id, "aprobar")

    if await _find_conflicts(
        db, reservation.vehicle_id, reservation.start_at, reservation.end_at, reservation.id
    ):
        raise ConflictError("El vehículo ya tiene una reserva aprobada en esas fechas")

    reservation.status = ReservationStatus.APPROVED
    reservation.approved_by = user_id
    reservation.approved_at = datetime.now(timezone.utc)
    db.add(ReservationEvent(reservation_id=reservation.id, type="approved", created_by=user_id))
    await db.commit()

    logger.info(f"Reservation {reservation.id} approved by owner {user_id}")

    email = await _send_approval_email(db, reservation, email_service)
    return {
        "success": True,
        "reservation": reservation_to_dict(reservation),
        "email_sent": email is not None,
    }


async def reject_reservation(
    db: AsyncSession,
    reservation_id: Any,
    user_id: uuid.UUID,
    reason: Optional[str],
    email_service: EmailService,
) -> Dict[str, Any]:
    reservation = await _load_for_review(db, reservation_id, user_id, "rechazar")

    reservation.status = ReservationStatus.REJECTED
    reservation.rejected_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    reservation.rejected_at = datetime.now(timezone.utc)
    db.add(
        ReservationEvent(
            reservation_id=reservation.id,
            type="rejected",
            created_by=user_id,
            meta={"reason": reservation.rejected_reason},
        )
    )
    await db.commit()

    logger.info(f"Reservation {reservation.id} rejected by owner {user_id}")

    email_sent = False
    renter = reservation.renter
    if renter and renter.email:
        subject, html = reservation_rejected_email(
            reservation.vehicle.display_name, renter.display_name, reservation.rejected_reason
        )
        email_sent = await email_service.send_best_effort([renter.email], subject, html) is not None
        record_email(
            db,
            "reservation_rejected",
            email_sent,
            user_id=renter.id,
            meta={"reservation_id": str(reservation.id)},
        )
        await db.commit()

    return {
        "success": True,
        "reservation": reservation_to_dict(reservation),
        "email_sent": email_sent,
    }


async def _send_approval_email(
    db: AsyncSession, reservation: Reservation, email_service: EmailService
) -> Optional[str]:
    renter: Profile = reservation.renter
    owner: Profile = reservation.owner
    if not renter or not renter.email:
        logger.warning(f"Renter of reservation {reservation.id} has no email, skipping approval email")
        return None

    vehicle = reservation.vehicle
    owner_whatsapp = None
    if owner and owner.phone:
        owner_whatsapp = whatsapp_link(
            owner.phone,
            f"Hola {owner.display_name}, soy {renter.display_name}. "
            f"Te escribo por la reserva del {vehicle.display_name}.",
        )

    subject, html = reservation_approved_email(
        str(reservation.id),
        vehicle.display_name,
        renter.display_name,
        reservation.start_at,
        reservation.end_at,
        reservation.total_price_bs,
        owner_whatsapp,
    )
    message_id = await email_service.send_best_effort([renter.email], subject, html)

    record_email(
        db,
        "reservation_approved",
        message_id is not None,
        user_id=renter.id,
        meta={
            "reservation_id": str(reservation.id),
            "vehicle": vehicle.display_name,
            "message_id": message_id,
        },
    )
    await db.commit()
    return message_id


async def send_reservation_approved_email(
    db: AsyncSession,
    reservation_id: Any,
    user_id: uuid.UUID,
    email_service: EmailService,
    is_admin: bool = False,
) -> Dict[str, Any]:
    """Send (or re-send) the approval email for an approved reservation."""
    if not reservation_id:
        raise BadRequestError("reservation_id es requerido")

    reservation = await _load_reservation(db, reservation_id)
    if reservation.owner_id != user_id and not is_admin:
        raise ForbiddenError("No tienes permisos sobre esta reserva")
    if reservation.status not in EXTENDABLE_STATUSES:
        raise BadRequestError("La reserva no está aprobada")
    if not reservation.owner:
        raise NotFoundError("Owner not found")

    message_id = await _send_approval_email(db, reservation, email_service)
    return {"success": True, "email_sent": message_id is not None, "email_id": message_id}


# ============================================================================
# Extension & closing
# ============================================================================


async def request_extension(
    db: AsyncSession,
    reservation_id: Any,
    user_id: uuid.UUID,
    new_end_at: Optional[str],
    email_service: EmailService,
) -> Dict[str, Any]:
    """
    Renter asks to keep the vehicle longer.

    The extra period (current end to the new end) is priced with the
    reservation's rate snapshot and recorded as an ``extension_requested``
    event for the owner to act on.
    """
    if not reservation_id or not new_end_at:
        raise BadRequestError("Missing required fields")

    reservation = await _load_reservation(db, reservation_id)
    if reservation.renter_id != user_id:
        raise ForbiddenError("Unauthorized: not your reservation")
    if reservation.status not in EXTENDABLE_STATUSES:
        raise BadRequestError("Reservation must be active to request extension")

    current_end = as_utc(reservation.end_at)
    new_end = parse_timestamp(new_end_at, "new_end_at")
    if new_end <= current_end:
        raise BadRequestError("New end time must be after current end time")

    if await _find_conflicts(db, reservation.vehicle_id, current_end, new_end, reservation.id):
        raise ConflictError("Vehicle not available for the requested extension period")

    extension = quote_pricing(
        reservation.daily_price_bs,
        current_end,
        new_end,
        hourly_rate=reservation.hourly_rate_bs,
    )
    pricing = extension.to_dict()

    db.add(
        ReservationEvent(
            reservation_id=reservation.id,
            type="extension_requested",
            created_by=user_id,
            meta={
                "current_end_at": current_end.isoformat(),
                "requested_end_at": new_end.isoformat(),
                "extension_pricing": pricing,
            },
        )
    )
    await db.commit()

    logger.info(
        f"Extension requested for reservation {reservation.id}: "
        f"{current_end.isoformat()} -> {new_end.isoformat()} (Bs {extension.total_bs})"
    )

    owner = reservation.owner
    if owner and owner.email:
        subject, html = extension_request_email(
            owner.first_name or owner.display_name,
            reservation.renter.display_name if reservation.renter else "Un cliente",
            reservation.vehicle.display_name,
            current_end,
            new_end,
            extension.total_bs,
        )
        sent = await email_service.send_best_effort([owner.email], subject, html)
        record_email(
            db,
            "extension_requested",
            sent is not None,
            user_id=owner.id,
            meta={"reservation_id": str(reservation.id)},
        )
        await db.commit()

    return {
        "success": True,
        "message": "Extension request created successfully",
        "extension_pricing": pricing,
    }


async def close_reservation(
    db: AsyncSession,
    reservation_id: Any,
    actual_return_at: Optional[str],
    user_id: uuid.UUID,
    email_service: EmailService,
    is_admin: bool = False,
) -> Dict[str, Any]:
    """
    Close a reservation when the vehicle comes back.

    Time past ``end_at + grace_minutes`` is rounded up to the next half hour
    and charged at the late-fee rate. The final total is the reservation
    total plus late fees. Receipts go to renter and owner (best-effort).

    Returns:
        {"success", "overage_hours", "late_fees_bs", "final_total_bs"}
    """
    if not reservation_id or not actual_return_at:
        raise BadRequestError("Missing required fields")

    returned_at = parse_timestamp(actual_return_at, "actual_return_at")
    reservation = await _load_reservation(db, reservation_id)

    if reservation.owner_id != user_id and not is_admin:
        raise ForbiddenError("No tienes permisos para cerrar esta reserva")
    if reservation.status not in EXTENDABLE_STATUSES:
        raise BadRequestError("Solo se pueden cerrar reservas aprobadas o activas")

    rate = late_fee_rate(
        reservation.late_fee_per_hour_bs,
        reservation.hourly_rate_bs,
        reservation.daily_price_bs,
    )
    overage = calculate_overage(
        returned_at, reservation.end_at, reservation.grace_minutes, rate
    )
    final_total = reservation.total_price_bs + overage.late_fees_bs

    reservation.status = ReservationStatus.COMPLETED
    reservation.overage_hours = overage.overage_hours
    reservation.final_total_bs = final_total
    reservation.closed_at = datetime.now(timezone.utc)

    db.add(
        ReservationEvent(
            reservation_id=reservation.id,
            type="closed",
            created_by=user_id,
            meta={
                "actual_return_at": returned_at.isoformat(),
                "planned_end_at": as_utc(reservation.end_at).isoformat(),
                "grace_end_at": overage.grace_end_at.isoformat(),
                "overage_hours": float(overage.overage_hours),
                "late_fees_bs": float(overage.late_fees_bs),
                "final_total_bs": float(final_total),
            },
        )
    )
    await db.commit()

    logger.info(
        f"Reservation {reservation.id} closed: overage={overage.overage_hours}h "
        f"late_fees=Bs {overage.late_fees_bs} final=Bs {final_total}"
    )

    vehicle_name = reservation.vehicle.display_name
    html = receipt_email(
        vehicle_name,
        reservation.total_price_bs,
        overage.overage_hours,
        overage.late_fees_bs,
        final_total,
    )
    recipients = (
        (reservation.renter, f"Recibo final — {vehicle_name}"),
        (reservation.owner, f"Reserva completada — {vehicle_name}"),
    )
    for profile, subject in recipients:
        if not profile or not profile.email:
            continue
        sent = await email_service.send_best_effort([profile.email], subject, html)
        record_email(
            db,
            "reservation_receipt",
            sent is not None,
            user_id=profile.id,
            meta={"reservation_id": str(reservation.id)},
        )
    await db.commit()

    return {
        "success": True,
        "overage_hours": float(overage.overage_hours),
        "late_fees_bs": float(overage.late_fees_bs),
        "final_total_bs": float(final_total),
    }
