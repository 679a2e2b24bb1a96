"""Conversion of ORM rows into JSON-ready dictionaries."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from andaya.models import (
    AdminNote,
    AuditLog,
    ExchangeRate,
    FxSettings,
    KYCVerification,
    Payment,
    Profile,
    Reservation,
    ReservationEvent,
    Vehicle,
)
from andaya.utils.dates import as_utc


def money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def enum_value(value) -> Optional[str]:
    return getattr(value, "value", value)


def profile_to_dict(profile: Profile) -> Dict[str, Any]:
    return {
        "id": str(profile.id),
        "full_name": profile.full_name,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "email": profile.email,
        "phone": profile.phone,
        "preferred_currency": profile.preferred_currency,
        "preferred_provider": profile.preferred_provider,
        "is_active": profile.is_active,
        "created_at": iso(profile.created_at),
        "updated_at": iso(profile.updated_at),
    }


def vehicle_to_dict(vehicle: Vehicle) -> Dict[str, Any]:
    return {
        "id": str(vehicle.id),
        "owner_id": str(vehicle.owner_id),
        "title": vehicle.title,
        "description": vehicle.description,
        "status": enum_value(vehicle.status),
        "brand": vehicle.brand,
        "model": vehicle.model,
        "year": vehicle.year,
        "type": enum_value(vehicle.type),
        "color": vehicle.color,
        "transmission": vehicle.transmission,
        "fuel_type": vehicle.fuel_type,
        "kilometraje": vehicle.kilometraje,
        "plate": vehicle.plate,
        "vin": vehicle.vin,
        "price_bs": money(vehicle.price_bs),
        "hourly_rate_bs": money(vehicle.hourly_rate_bs),
        "late_fee_per_hour_bs": money(vehicle.late_fee_per_hour_bs),
        "deposit_bs": money(vehicle.deposit_bs),
        "cleaning_fee_bs": money(vehicle.cleaning_fee_bs),
        "delivery_cost_bs": money(vehicle.delivery_cost_bs),
        "extra_km_fee_bs": money(vehicle.extra_km_fee_bs),
        "km_included": vehicle.km_included,
        "min_rental_days": vehicle.min_rental_days,
        "city": vehicle.city,
        "lat": vehicle.lat,
        "lng": vehicle.lng,
        "rules": vehicle.rules,
        "insurance_company": vehicle.insurance_company,
        "insurance_number": vehicle.insurance_number,
        "insurance_expiry": iso(vehicle.insurance_expiry),
        "cancellation_policy": vehicle.cancellation_policy,
        "approved_at": iso(vehicle.approved_at),
        "rejected_reason": vehicle.rejected_reason,
        "paused_at": iso(vehicle.paused_at),
        "rating_avg": vehicle.rating_avg,
        "created_at": iso(vehicle.created_at),
    }


def event_to_dict(event: ReservationEvent) -> Dict[str, Any]:
    return {
        "id": str(event.id),
        "type": event.type,
        "created_by": str(event.created_by) if event.created_by else None,
        "meta": event.meta,
        "created_at": iso(event.created_at),
    }


def reservation_to_dict(reservation: Reservation) -> Dict[str, Any]:
    return {
        "id": str(reservation.id),
        "vehicle_id": str(reservation.vehicle_id),
        "renter_id": str(reservation.renter_id),
        "owner_id": str(reservation.owner_id),
        "start_at": iso(reservation.start_at),
        "end_at": iso(reservation.end_at),
        "grace_minutes": reservation.grace_minutes,
        "status": enum_value(reservation.status),
        "payment_status": enum_value(reservation.payment_status),
        "pricing_mode": enum_value(reservation.pricing_mode),
        "daily_price_bs": money(reservation.daily_price_bs),
        "hourly_rate_bs": money(reservation.hourly_rate_bs),
        "late_fee_per_hour_bs": money(reservation.late_fee_per_hour_bs),
        "subtotal_bs": money(reservation.subtotal_bs),
        "service_fee_bs": money(reservation.service_fee_bs),
        "total_price_bs": money(reservation.total_price_bs),
        "overage_hours": money(reservation.overage_hours),
        "final_total_bs": money(reservation.final_total_bs),
        "closed_at": iso(reservation.closed_at),
        "approved_by": str(reservation.approved_by) if reservation.approved_by else None,
        "approved_at": iso(reservation.approved_at),
        "rejected_reason": reservation.rejected_reason,
        "rejected_at": iso(reservation.rejected_at),
        "cancelled_at": iso(reservation.cancelled_at),
        "notes": reservation.notes,
        "created_at": iso(reservation.created_at),
    }


def payment_to_dict(payment: Payment) -> Dict[str, Any]:
    return {
        "id": str(payment.id),
        "reservation_id": str(payment.reservation_id),
        "amount_total": money(payment.amount_total),
        "upfront": money(payment.upfront),
        "installments": payment.installments,
        "method": enum_value(payment.method),
        "status": enum_value(payment.status),
        "currency": payment.currency,
        "provider_ref": payment.provider_ref,
        "created_at": iso(payment.created_at),
    }


def kyc_to_dict(kyc: KYCVerification) -> Dict[str, Any]:
    return {
        "id": str(kyc.id),
        "user_id": str(kyc.user_id),
        "status": enum_value(kyc.status),
        "id_number": kyc.id_number,
        "driver_license_number": kyc.driver_license_number,
        "id_front_url": kyc.id_front_url,
        "id_back_url": kyc.id_back_url,
        "license_front_url": kyc.license_front_url,
        "license_back_url": kyc.license_back_url,
        "rejection_reason": kyc.rejection_reason,
        "reviewed_by": str(kyc.reviewed_by) if kyc.reviewed_by else None,
        "reviewed_at": iso(kyc.reviewed_at),
        "created_at": iso(kyc.created_at),
        "updated_at": iso(kyc.updated_at),
    }


def audit_to_dict(entry: AuditLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "actor_id": str(entry.actor_id) if entry.actor_id else None,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "metadata": entry.meta,
        "created_at": iso(entry.created_at),
    }


def note_to_dict(note: AdminNote) -> Dict[str, Any]:
    return {
        "id": str(note.id),
        "user_id": str(note.user_id),
        "author_id": str(note.author_id),
        "content": note.content,
        "created_at": iso(note.created_at),
    }


def exchange_rate_to_dict(rate: ExchangeRate) -> Dict[str, Any]:
    return {
        "provider": rate.provider,
        "code": rate.code,
        "buy": money(rate.buy),
        "sell": money(rate.sell),
        "value": money(rate.value),
        "fetched_at": iso(rate.fetched_at),
    }


def fx_settings_to_dict(fx_settings: FxSettings) -> Dict[str, Any]:
    return {
        "default_provider": fx_settings.default_provider,
        "default_currency": fx_settings.default_currency,
        "refresh_minutes": fx_settings.refresh_minutes,
        "eur_usd_fallback_rate": fx_settings.eur_usd_fallback_rate,
        "updated_at": iso(fx_settings.updated_at),
    }
