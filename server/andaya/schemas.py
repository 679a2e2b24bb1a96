"""
Pydantic request bodies for the HTTP API.

Bodies of the ``/functions/*`` endpoints keep every field optional: the
operations check required fields themselves so a missing field answers
400 with ``{"error": ...}`` like every other business error.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from andaya.models.vehicle import VehicleType
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Reservations
# ============================================================================


class PricingQuoteRequest(BaseModel):
    vehicle_id: Optional[str] = None
    start_at: Optional[str] = None
    end_at: Optional[str] = None


class ReservationCreate(BaseModel):
    vehicle_id: str
    start_at: datetime
    end_at: datetime
    notes: Optional[str] = Field(None, max_length=2000)


class ReservationIdRequest(BaseModel):
    reservation_id: Optional[str] = None


class ReservationRejectRequest(ReservationIdRequest):
    reason: Optional[str] = Field(None, max_length=500)


class ExtensionRequest(ReservationIdRequest):
    new_end_at: Optional[str] = None


class CloseReservationRequest(ReservationIdRequest):
    actual_return_at: Optional[str] = None


# ============================================================================
# Vehicles
# ============================================================================


class VehicleBase(BaseModel):
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=50)
    transmission: Optional[str] = Field(None, max_length=20)
    fuel_type: Optional[str] = Field(None, max_length=20)
    kilometraje: Optional[int] = Field(None, ge=0)
    plate: Optional[str] = Field(None, max_length=20)
    vin: Optional[str] = None
    hourly_rate_bs: Optional[Decimal] = Field(None, gt=0)
    late_fee_per_hour_bs: Optional[Decimal] = Field(None, ge=0)
    deposit_bs: Optional[Decimal] = Field(None, ge=0)
    cleaning_fee_bs: Optional[Decimal] = Field(None, ge=0)
    delivery_cost_bs: Optional[Decimal] = Field(None, ge=0)
    extra_km_fee_bs: Optional[Decimal] = Field(None, ge=0)
    km_included: Optional[int] = Field(None, ge=0)
    min_rental_days: Optional[int] = Field(None, ge=1)
    city: Optional[str] = Field(None, max_length=100)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    rules: Optional[Dict[str, Any]] = None
    insurance_company: Optional[str] = None
    insurance_number: Optional[str] = None
    insurance_expiry: Optional[date] = None
    cancellation_policy: Optional[str] = None


class VehicleCreate(VehicleBase):
    title: str = Field(..., min_length=1, max_length=200)
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int
    type: VehicleType = VehicleType.SEDAN
    price_bs: Decimal = Field(..., gt=0)


class VehicleUpdate(VehicleBase):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = None
    type: Optional[VehicleType] = None
    price_bs: Optional[Decimal] = Field(None, gt=0)


class AvailabilityBlockCreate(BaseModel):
    start_date: date
    end_date: date
    note: Optional[str] = Field(None, max_length=500)


class VehicleRejectRequest(BaseModel):
    reason: Optional[str] = None


class NotifyVehicleRejectionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vehicle_id: Optional[str] = Field(None, alias="vehicleId")
    reason: Optional[str] = None


# ============================================================================
# Payments
# ============================================================================


class SimulatePaymentRequest(BaseModel):
    reservation_id: Optional[str] = None
    method: Optional[str] = None


class MarkPaymentSimulatedRequest(SimulatePaymentRequest):
    amount_bs: Optional[Decimal] = Field(None, gt=0)


# ============================================================================
# KYC
# ============================================================================


class KYCSubmit(BaseModel):
    id_number: str = Field(..., min_length=5, max_length=20)
    driver_license_number: Optional[str] = Field(None, max_length=30)
    id_front_url: Optional[str] = None
    id_back_url: Optional[str] = None
    license_front_url: Optional[str] = None
    license_back_url: Optional[str] = None


class NotifyKYCRequest(BaseModel):
    user_id: Optional[str] = None


class KYCStatusUpdate(BaseModel):
    user_id: Optional[str] = None
    status: Optional[str] = None
    rejection_reason: Optional[str] = None


# ============================================================================
# Admin
# ============================================================================


class SetRolesRequest(BaseModel):
    user_id: Optional[str] = None
    roles: Optional[List[str]] = None
    reason: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = None
    profile_patch: Optional[Dict[str, Any]] = Field(None, alias="profilePatch")


class ProfilePatch(BaseModel):
    """Profile columns an admin may edit. Unknown keys and nulls are rejected."""

    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(None, max_length=200)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    is_active: Optional[bool] = None
    preferred_currency: Optional[str] = Field(None, pattern="^(VES|USD|EUR)$")
    preferred_provider: Optional[str] = Field(None, min_length=1, max_length=50)

    @field_validator("is_active", "preferred_currency", "preferred_provider")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value


class ResetPasswordRequest(BaseModel):
    user_id: Optional[str] = None
    reason: Optional[str] = None


class ImpersonateRequest(BaseModel):
    user_id: Optional[str] = None
    reason: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=1, le=240)


class AdminNoteCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


# ============================================================================
# Exchange rates
# ============================================================================


class FxSettingsUpdate(BaseModel):
    default_provider: Optional[str] = Field(None, min_length=1, max_length=50)
    default_currency: Optional[str] = Field(None, pattern="^(USD|EUR)$")
    refresh_minutes: Optional[int] = Field(None, ge=1, le=1440)
    eur_usd_fallback_rate: Optional[float] = Field(None, gt=0)

    @field_validator("*")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value
