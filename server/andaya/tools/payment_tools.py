"""Simulated payments (Cashea installments / Mercantil full payment)."""

import logging
import time
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from andaya.config import settings
from andaya.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from andaya.models import Payment, Reservation
from andaya.models.payment import PaymentMethod, PaymentStatus
from andaya.models.reservation import ReservationPaymentStatus, ReservationStatus
from andaya.tools.common import parse_uuid, record_audit
from andaya.tools.serializers import payment_to_dict
from andaya.utils.currency import to_decimal
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Checkout options shown to renters and the payment method stored for each
CHECKOUT_METHODS = {
    "cashea": PaymentMethod.CASHEA_SIM,
    "mercantil": PaymentMethod.FULL,
}


def split_payment(method: str, amount: Decimal) -> Dict[str, Any]:
    """
    Upfront amount and number of installments for a checkout method.

    Cashea charges a rounded 25% upfront and the rest in 3 installments;
    every other method pays the full amount at once.
    """
    if method == "cashea":
        upfront = (amount * to_decimal(settings.CASHEA_UPFRONT_RATE)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return {"upfront": upfront, "installments": settings.CASHEA_INSTALLMENTS}
    return {"upfront": amount, "installments": 0}


async def _record_payment(
    db: AsyncSession,
    reservation_id: Any,
    method: Optional[str],
    user_id: uuid.UUID,
    amount_bs: Optional[Decimal],
    ref_prefix: str,
    audit_action: str,
) -> Payment:
    if not reservation_id or not method:
        raise BadRequestError("Missing required fields: reservation_id and method")
    if method not in CHECKOUT_METHODS:
        raise BadRequestError("Invalid payment method. Must be cashea or mercantil")

    reservation = await db.get(Reservation, parse_uuid(reservation_id, "reservation_id"))
    if not reservation:
        raise NotFoundError("Reservation not found")
    if reservation.renter_id != user_id:
        raise ForbiddenError("You are not authorized to pay for this reservation")
    if reservation.status != ReservationStatus.APPROVED:
        raise BadRequestError("Reservation must be approved before payment")

    existing = await db.scalar(select(Payment.id).where(Payment.reservation_id == reservation.id))
    if existing:
        raise BadRequestError("This reservation has already been paid")

    amount = to_decimal(amount_bs or reservation.final_total_bs or reservation.total_price_bs)
    split = split_payment(method, amount)

    payment = Payment(
        reservation_id=reservation.id,
        amount_total=amount,
        upfront=split["upfront"],
        installments=split["installments"],
        method=CHECKOUT_METHODS[method],
        status=PaymentStatus.PAID,
        currency="Bs",
        provider_ref=f"{ref_prefix}-{method.upper()}-{int(time.time() * 1000)}",
    )
    db.add(payment)
    reservation.payment_status = ReservationPaymentStatus.SIMULATED

    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("This reservation has already been paid") from e

    meta = {
        "payment_id": str(payment.id),
        "method": method,
        "amount": float(amount),
        "simulated": True,
    }
    if ref_prefix == "FALLBACK":
        meta["fallback"] = True

    record_audit(
        db,
        audit_action,
        actor_id=user_id,
        entity_type="reservation",
        entity_id=reservation.id,
        meta=meta,
    )
    await db.commit()

    logger.info(
        f"Simulated {method} payment {payment.provider_ref} for reservation {reservation.id}: "
        f"Bs {amount} (upfront {split['upfront']}, {split['installments']} installments)"
    )
    return payment


async def simulate_payment(
    db: AsyncSession,
    reservation_id: Any,
    method: Optional[str],
    user_id: uuid.UUID,
) -> Dict[str, Any]:
    """
    Record a simulated payment for an approved reservation.

    The amount is the final total when the reservation was closed, otherwise
    the booked total.
    """
    payment = await _record_payment(
        db, reservation_id, method, user_id, None, "SIM", "payment_simulated"
    )
    return {
        "success": True,
        "payment": payment_to_dict(payment),
        "message": "Payment simulated successfully",
    }


async def mark_payment_simulated(
    db: AsyncSession,
    reservation_id: Any,
    method: Optional[str],
    user_id: uuid.UUID,
    amount_bs: Optional[Decimal] = None,
) -> Dict[str, Any]:
    """Fallback path of :func:`simulate_payment` that accepts an explicit amount."""
    payment = await _record_payment(
        db,
        reservation_id,
        method,
        user_id,
        amount_bs,
        "FALLBACK",
        "payment_simulated_fallback",
    )
    return {
        "success": True,
        "payment": payment_to_dict(payment),
        "message": "Payment simulated (fallback)",
    }


async def get_payment(
    db: AsyncSession, reservation_id: Any, user_id: uuid.UUID, is_admin: bool = False
) -> Dict[str, Any]:
    reservation = await db.get(Reservation, parse_uuid(reservation_id, "reservation_id"))
    if not reservation:
        raise NotFoundError("Reservation not found")
    if not is_admin and user_id not in (reservation.renter_id, reservation.owner_id):
        raise ForbiddenError("No tienes acceso a esta reserva")

    payment = await db.scalar(select(Payment).where(Payment.reservation_id == reservation.id))
    if not payment:
        raise NotFoundError("Payment not found")
    return payment_to_dict(payment)
