"""Payment model (simulated payments only)."""

import enum
import uuid

from andaya.models.base import Base, TimestampMixin
from sqlalchemy import Column
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import relationship


class PaymentMethod(str, enum.Enum):
    FULL = "full"
    CASHEA_SIM = "cashea_sim"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base, TimestampMixin):
    """Payment for a reservation. At most one per reservation."""

    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id = Column(
        Uuid, ForeignKey("reservations.id"), nullable=False, unique=True, index=True
    )

    amount_total = Column(Numeric(12, 2), nullable=False)
    upfront = Column(Numeric(12, 2))
    installments = Column(Integer, default=0)
    method = Column(SQLEnum(PaymentMethod), nullable=False)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING)
    currency = Column(String(3), default="Bs")
    provider_ref = Column(String(100))

    reservation = relationship("Reservation", back_populates="payment")

    def __repr__(self):
        return f"<Payment(id={self.id}, reservation_id={self.reservation_id}, amount={self.amount_total})>"
