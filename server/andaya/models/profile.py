"""Profile, role and admin note models."""

import enum
import re
import uuid

from andaya.models.base import Base, TimestampMixin
from andaya.utils.phone import normalize_ve_phone
from sqlalchemy import Boolean, Column
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship, validates


class AppRole(str, enum.Enum):
    """Application role enum."""

    RENTER = "renter"
    OWNER = "owner"
    ADMIN_PRIMARY = "admin_primary"
    ADMIN_SECURITY = "admin_security"


ADMIN_ROLES = (AppRole.ADMIN_PRIMARY, AppRole.ADMIN_SECURITY)


class Profile(Base, TimestampMixin):
    """Public profile of an authenticated user.

    The primary key is the id issued by the hosted auth provider, so a
    profile row never exists without a matching auth user.
    """

    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True)

    # Identity
    full_name = Column(String(200))
    first_name = Column(String(100))
    last_name = Column(String(100))
    email = Column(String(255), index=True)
    phone = Column(String(20))

    # Preferences
    preferred_currency = Column(String(3), default="VES")
    preferred_provider = Column(String(50), default="bcv")

    is_active = Column(Boolean, default=True)

    roles = relationship("UserRole", back_populates="profile", cascade="all, delete-orphan")

    @validates("phone")
    def validate_phone(self, key, value):
        """Store Venezuelan mobile numbers in E.164 form (+58XXXXXXXXXX)."""
        if not value:
            return None
        normalized = normalize_ve_phone(value)
        if not normalized:
            raise ValueError(f"Invalid Venezuelan mobile number: {value}")
        return normalized

    @validates("email")
    def validate_email(self, key, value):
        """Validate email format and normalize to lowercase."""
        if not value:
            return value

        value = value.lower()
        if len(value) > 255:
            raise ValueError(f"Email must be <= 255 characters, got {len(value)}")

        email_pattern = (
            r"^[a-z0-9]([a-z0-9._+-]*[a-z0-9])?@[a-z0-9]([a-z0-9.-]*[a-z0-9])?\.[a-z]{2,}$"
        )
        if not re.match(email_pattern, value):
            raise ValueError(f"Invalid email format: {value}")

        return value

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or "Usuario"

    def __repr__(self):
        return f"<Profile(id={self.id}, name='{self.display_name}')>"


class UserRole(Base, TimestampMixin):
    """Role granted to a user. A user may hold several roles."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    role = Column(SQLEnum(AppRole), nullable=False)

    profile = relationship("Profile", back_populates="roles")

    def __repr__(self):
        return f"<UserRole(user_id={self.user_id}, role='{self.role}')>"


class AdminNote(Base, TimestampMixin):
    """Internal note written by an admin about a user."""

    __tablename__ = "admin_notes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)
    author_id = Column(Uuid, nullable=False)
    content = Column(Text, nullable=False)
