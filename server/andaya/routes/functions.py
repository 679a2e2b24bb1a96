"""
Function-style endpoints (``/functions/<name>``).

Each endpoint validates its JSON body, runs one business operation and
returns its JSON result. Errors surface as ``{"error": ...}`` through the
application's exception handlers.
"""

import logging
from typing import Optional

from andaya.errors import BadRequestError, ForbiddenError
from andaya.routes.deps import CurrentUser, get_current_user, require_admin
from andaya.schemas import (
    CloseReservationRequest,
    ExtensionRequest,
    MarkPaymentSimulatedRequest,
    NotifyKYCRequest,
    NotifyVehicleRejectionRequest,
    PricingQuoteRequest,
    ReservationIdRequest,
    ReservationRejectRequest,
    SimulatePaymentRequest,
)
from andaya.services.database import get_db
from andaya.services.email_client import EmailService, get_email_service
from andaya.services.fx_provider import FxProviderClient
from andaya.tools import fx_tools, kyc_tools, payment_tools, reservation_tools, vehicle_tools
from andaya.tools.common import parse_uuid
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

router = APIRouter()


def get_fx_provider() -> FxProviderClient:
    return FxProviderClient()


# ============================================================================
# Reservations
# ============================================================================


@router.post("/pricing-quote")
async def pricing_quote(body: PricingQuoteRequest, db: AsyncSession = Depends(get_db)):
    """Price a rental window for an active vehicle."""
    return await reservation_tools.quote_reservation(db, body.vehicle_id, body.start_at, body.end_at)


@router.post("/reservation-approve")
async def reservation_approve(
    body: ReservationIdRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Vehicle owner approves a pending reservation."""
    return await reservation_tools.approve_reservation(
        db, body.reservation_id, user.id, email_service
    )


@router.post("/reservation-reject")
async def reservation_reject(
    body: ReservationRejectRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Vehicle owner rejects a pending reservation."""
    return await reservation_tools.reject_reservation(
        db, body.reservation_id, user.id, body.reason, email_service
    )


@router.post("/reservation-approved")
async def reservation_approved(
    body: ReservationIdRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """(Re)send the approval email to the renter."""
    return await reservation_tools.send_reservation_approved_email(
        db, body.reservation_id, user.id, email_service, is_admin=user.is_admin
    )


@router.post("/request-extension")
async def request_extension(
    body: ExtensionRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    return await reservation_tools.request_extension(
        db, body.reservation_id, user.id, body.new_end_at, email_service
    )


@router.post("/close-reservation")
async def close_reservation(
    body: CloseReservationRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Close a reservation on return, charging late fees past the grace period."""
    return await reservation_tools.close_reservation(
        db,
        body.reservation_id,
        body.actual_return_at,
        user.id,
        email_service,
        is_admin=user.is_admin,
    )


# ============================================================================
# Payments
# ============================================================================


@router.post("/simulate-payment")
async def simulate_payment(
    body: SimulatePaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await payment_tools.simulate_payment(db, body.reservation_id, body.method, user.id)


@router.post("/mark-payment-simulated")
async def mark_payment_simulated(
    body: MarkPaymentSimulatedRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await payment_tools.mark_payment_simulated(
        db, body.reservation_id, body.method, user.id, body.amount_bs
    )


# ============================================================================
# Notifications
# ============================================================================


@router.post("/notify-kyc-submission")
async def notify_kyc_submission(
    body: NotifyKYCRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not body.user_id:
        raise BadRequestError("user_id is required")
    if parse_uuid(body.user_id, "user_id") != user.id and not user.is_admin:
        raise ForbiddenError("Acceso denegado")
    return await kyc_tools.notify_kyc_submission(db, body.user_id)


@router.post("/notify-vehicle-rejection")
async def notify_vehicle_rejection(
    body: NotifyVehicleRejectionRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    return await vehicle_tools.notify_vehicle_rejection(
        db, body.vehicle_id, body.reason, email_service
    )


# ============================================================================
# Exchange rates
# ============================================================================


@router.get("/fx-latest")
async def fx_latest(
    background_tasks: BackgroundTasks,
    provider: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Latest stored rate; a stale rate schedules a refresh after the response."""
    result = await fx_tools.get_latest_rate(db, provider, code)
    if result["stale"]:
        background_tasks.add_task(fx_tools.refresh_rates_background)
    return result


@router.post("/fx-refresh")
async def fx_refresh(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    provider_client: FxProviderClient = Depends(get_fx_provider),
):
    logger.info(f"Manual FX refresh requested by {admin.id}")
    return await fx_tools.refresh_rates(db, provider_client)
