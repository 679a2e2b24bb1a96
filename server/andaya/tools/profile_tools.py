"""Profile bootstrap for authenticated users."""

import logging
import uuid
from typing import Any, Dict

from andaya.errors import NotFoundError
from andaya.models import KYCVerification, Profile, UserRole
from andaya.models.profile import AppRole
from andaya.services.auth_client import AuthUser
from andaya.tools.admin_tools import get_user_roles
from andaya.tools.serializers import enum_value, profile_to_dict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def ensure_profile(db: AsyncSession, auth_user: AuthUser) -> Profile:
    """
    Return the caller's profile, creating it on first sight.

    New profiles start with the renter role.
    """
    profile = await db.get(Profile, auth_user.id)
    if profile:
        return profile

    metadata = auth_user.user_metadata
    profile = Profile(
        id=auth_user.id,
        full_name=metadata.get("full_name"),
        first_name=metadata.get("first_name"),
        last_name=metadata.get("last_name"),
        email=auth_user.email,
    )
    try:
        profile.phone = auth_user.phone or metadata.get("phone")
    except ValueError:
        logger.warning(f"Ignoring invalid phone for new profile {auth_user.id}")

    db.add(profile)
    db.add(UserRole(user_id=auth_user.id, role=AppRole.RENTER))
    await db.commit()

    logger.info(f"Created profile for {auth_user.id}")
    return profile


async def get_me(db: AsyncSession, user_id: uuid.UUID) -> Dict[str, Any]:
    profile = await db.get(Profile, user_id)
    if not profile:
        raise NotFoundError("Usuario no encontrado")

    kyc_status = await db.scalar(
        select(KYCVerification.status).where(KYCVerification.user_id == user_id)
    )
    data = profile_to_dict(profile)
    data["roles"] = await get_user_roles(db, user_id)
    data["kyc_status"] = enum_value(kyc_status)
    return data
