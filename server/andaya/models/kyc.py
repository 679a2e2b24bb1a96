"""KYC verification model."""

import enum
import uuid

from andaya.models.base import Base, TimestampMixin
from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, String, Text, Uuid


class KYCStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class KYCVerification(Base, TimestampMixin):
    """Identity verification submitted by a user (one row per user)."""

    __tablename__ = "kyc_verifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, unique=True, index=True)
    status = Column(SQLEnum(KYCStatus), default=KYCStatus.PENDING, index=True)

    # Documents (storage URLs)
    id_number = Column(String(20))
    driver_license_number = Column(String(30))
    id_front_url = Column(String(500))
    id_back_url = Column(String(500))
    license_front_url = Column(String(500))
    license_back_url = Column(String(500))

    # Review
    rejection_reason = Column(Text)
    reviewed_by = Column(Uuid)
    reviewed_at = Column(DateTime(timezone=True))
