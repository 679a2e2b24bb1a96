"""Business operations for vehicles, reservations, payments, KYC, admin and FX."""

from andaya.tools.fx_tools import get_latest_rate, refresh_rates
from andaya.tools.payment_tools import mark_payment_simulated, simulate_payment
from andaya.tools.reservation_tools import (
    approve_reservation,
    close_reservation,
    create_reservation,
    quote_reservation,
    reject_reservation,
    request_extension,
)
from andaya.tools.vehicle_tools import get_vehicle_availability, notify_vehicle_rejection

__all__ = [
    "quote_reservation",
    "create_reservation",
    "approve_reservation",
    "reject_reservation",
    "request_extension",
    "close_reservation",
    "get_vehicle_availability",
    "notify_vehicle_rejection",
    "simulate_payment",
    "mark_payment_simulated",
    "get_latest_rate",
    "refresh_rates",
]
