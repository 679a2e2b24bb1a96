"""Vehicle and availability models."""

import enum
import re
import uuid

from andaya.models.base import Base, TimestampMixin
from sqlalchemy import JSON, Column, Date, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import Float, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship, validates


class VehicleStatus(str, enum.Enum):
    """Listing status enum."""

    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    PAUSED = "paused"
    REJECTED = "rejected"


class VehicleType(str, enum.Enum):
    """Body type enum."""

    SEDAN = "sedan"
    SUV = "suv"
    HATCHBACK = "hatchback"
    PICKUP = "pickup"
    MOTO = "moto"
    VAN = "van"
    COUPE = "coupe"
    OTRO = "otro"


class AvailabilityKind(str, enum.Enum):
    AVAILABLE = "available"
    BLOCKED = "blocked"


class Vehicle(Base, TimestampMixin):
    """Vehicle listed for rent by an owner.

    Stores:
    - Identification (plate, VIN)
    - Specifications (brand, model, year, type, transmission, fuel)
    - Pricing in bolivares (daily price, optional hourly and late-fee rates)
    - Pickup location
    - Review workflow (approval / rejection)
    """

    __tablename__ = "vehicles"

    __table_args__ = (Index("ix_vehicles_status_city", "status", "city"),)

    # Primary Identity
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)

    # Listing
    title = Column(String(200), nullable=False)
    description = Column(Text)
    status = Column(SQLEnum(VehicleStatus), default=VehicleStatus.PENDING_REVIEW, index=True)

    # Vehicle Details
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    type = Column(SQLEnum(VehicleType), default=VehicleType.SEDAN, nullable=False)
    color = Column(String(50))
    transmission = Column(String(20))  # manual, automatica
    fuel_type = Column(String(20))
    kilometraje = Column(Integer)

    # Identification
    plate = Column(String(20))
    vin = Column(String(17))

    # Pricing (Bs)
    price_bs = Column(Numeric(12, 2), nullable=False)  # Daily price
    hourly_rate_bs = Column(Numeric(12, 2))
    late_fee_per_hour_bs = Column(Numeric(12, 2))
    deposit_bs = Column(Numeric(12, 2))
    cleaning_fee_bs = Column(Numeric(12, 2))
    delivery_cost_bs = Column(Numeric(12, 2))
    extra_km_fee_bs = Column(Numeric(12, 2))
    km_included = Column(Integer)
    min_rental_days = Column(Integer, default=1)

    # Location
    city = Column(String(100))
    lat = Column(Float)
    lng = Column(Float)

    # Rules & insurance
    rules = Column(JSON)
    insurance_company = Column(String(100))
    insurance_number = Column(String(100))
    insurance_expiry = Column(Date)
    cancellation_policy = Column(String(50))

    # Review workflow
    approved_at = Column(DateTime(timezone=True))
    approved_by = Column(Uuid)
    rejected_reason = Column(Text)
    paused_at = Column(DateTime(timezone=True))

    rating_avg = Column(Float)

    # Relationships
    owner = relationship("Profile")
    availability = relationship(
        "VehicleAvailability", back_populates="vehicle", cascade="all, delete-orphan"
    )
    reservations = relationship("Reservation", back_populates="vehicle")

    @validates("vin")
    def validate_vin(self, key, value):
        """Validate VIN format (17 characters, no I/O/Q), enforcing uppercase."""
        if not value:
            return None

        value = value.upper()
        if len(value) != 17:
            raise ValueError(f"VIN must be exactly 17 characters, got {len(value)}")

        if not re.match(r"^[A-HJ-NPR-Z0-9]{17}$", value):
            raise ValueError(
                f"Invalid VIN format: {value}. VIN must contain only letters (except I, O, Q) and numbers"
            )

        return value

    @validates("plate")
    def validate_plate(self, key, value):
        if not value:
            return None
        return re.sub(r"[\s-]", "", value).upper()

    @validates("year")
    def validate_year(self, key, value):
        if value is None or value < 1950 or value > 2100:
            raise ValueError(f"Invalid vehicle year: {value}")
        return value

    @validates("price_bs")
    def validate_price(self, key, value):
        if value is None or value <= 0:
            raise ValueError("price_bs must be greater than zero")
        return value

    @property
    def display_name(self) -> str:
        return f"{self.brand} {self.model} {self.year}"

    def __repr__(self):
        return f"<Vehicle(id={self.id}, {self.year} {self.brand} {self.model}, status='{self.status}')>"


class VehicleAvailability(Base, TimestampMixin):
    """Date range an owner marked as available or blocked."""

    __tablename__ = "vehicle_availability"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    kind = Column(SQLEnum(AvailabilityKind), default=AvailabilityKind.BLOCKED, nullable=False)
    note = Column(Text)

    vehicle = relationship("Vehicle", back_populates="availability")
