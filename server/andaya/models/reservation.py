"""Reservation and reservation event models."""

import enum
import uuid

from andaya.models.base import Base, TimestampMixin
from sqlalchemy import JSON, Column, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship


class ReservationStatus(str, enum.Enum):
    """Reservation lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that hold the vehicle's calendar
BLOCKING_STATUSES = (ReservationStatus.APPROVED, ReservationStatus.ACTIVE)


class ReservationPaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    SIMULATED = "simulated"


class PricingMode(str, enum.Enum):
    HOURLY = "hourly"
    DAILY = "daily"


class Reservation(Base, TimestampMixin):
    """Rental of a vehicle by a renter for a time window.

    Pricing fields are a snapshot taken when the reservation is created so
    later changes to the vehicle's price never alter an existing booking.
    """

    __tablename__ = "reservations"

    __table_args__ = (
        Index("ix_reservations_vehicle_status", "vehicle_id", "status"),
        Index("ix_reservations_renter_start", "renter_id", "start_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=False, index=True)
    renter_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    owner_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)

    # Schedule
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    grace_minutes = Column(Integer, default=30)

    # Status
    status = Column(SQLEnum(ReservationStatus), default=ReservationStatus.PENDING, index=True)
    payment_status = Column(
        SQLEnum(ReservationPaymentStatus), default=ReservationPaymentStatus.UNPAID
    )

    # Pricing snapshot (Bs)
    pricing_mode = Column(SQLEnum(PricingMode), default=PricingMode.DAILY)
    daily_price_bs = Column(Numeric(12, 2), nullable=False)
    hourly_rate_bs = Column(Numeric(12, 2))
    late_fee_per_hour_bs = Column(Numeric(12, 2))
    subtotal_bs = Column(Numeric(12, 2), nullable=False)
    service_fee_bs = Column(Numeric(12, 2), default=0)
    total_price_bs = Column(Numeric(12, 2), nullable=False)

    # Closing
    overage_hours = Column(Numeric(6, 1))
    final_total_bs = Column(Numeric(12, 2))
    closed_at = Column(DateTime(timezone=True))

    # Review
    approved_by = Column(Uuid)
    approved_at = Column(DateTime(timezone=True))
    rejected_reason = Column(String(500))
    rejected_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    notes = Column(Text)

    # Relationships
    vehicle = relationship("Vehicle", back_populates="reservations")
    renter = relationship("Profile", foreign_keys=[renter_id])
    owner = relationship("Profile", foreign_keys=[owner_id])
    events = relationship(
        "ReservationEvent",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ReservationEvent.created_at",
    )
    payment = relationship("Payment", back_populates="reservation", uselist=False)

    def __repr__(self):
        return (
            f"<Reservation(id={self.id}, vehicle_id={self.vehicle_id}, "
            f"start_at='{self.start_at}', end_at='{self.end_at}', status='{self.status}')>"
        )


class ReservationEvent(Base, TimestampMixin):
    """Timeline entry for a reservation (created, extension_requested, closed...)."""

    __tablename__ = "reservation_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    created_by = Column(Uuid)
    meta = Column(JSON)

    reservation = relationship("Reservation", back_populates="events")
