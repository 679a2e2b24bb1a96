"""Database models for the application."""

from andaya.models.audit import AuditLog, EmailLog, ImpersonationSession
from andaya.models.base import Base
from andaya.models.exchange_rate import ExchangeRate, FxSettings
from andaya.models.kyc import KYCVerification
from andaya.models.payment import Payment
from andaya.models.profile import AdminNote, Profile, UserRole
from andaya.models.reservation import Reservation, ReservationEvent
from andaya.models.vehicle import Vehicle, VehicleAvailability

__all__ = [
    "Base",
    "Profile",
    "UserRole",
    "AdminNote",
    "Vehicle",
    "VehicleAvailability",
    "Reservation",
    "ReservationEvent",
    "Payment",
    "KYCVerification",
    "ExchangeRate",
    "FxSettings",
    "AuditLog",
    "EmailLog",
    "ImpersonationSession",
]
